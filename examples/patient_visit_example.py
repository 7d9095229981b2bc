#!/usr/bin/env python3
"""
FHE Clinic Example - Step-by-Step Patient Visit

Walks one set of vitals through every participant by hand, printing each
audit record, then checks the protocol log chain and shows what tampering
does to it.

Run with: python examples/patient_visit_example.py [vitals.json]
"""

import json
import sys
from dataclasses import replace

from fheclinic import (
    AgentRole,
    FheSimulator,
    FixedClock,
    ProtocolLog,
    SeededRandomness,
    SequenceIdentity,
    VitalsRecord,
    urgency_rating,
    verify_log_chain,
)
from fheclinic.render import render_envelope, render_log_entry
from fheclinic.scenario import DEFAULT_VITALS, decrypt_for_patient


def load_vitals(argv) -> VitalsRecord:
    if len(argv) > 1:
        with open(argv[1], 'r', encoding='utf-8') as f:
            return VitalsRecord.from_dict(json.load(f))
    return DEFAULT_VITALS


def show(log: ProtocolLog, source: AgentRole, action: str, record) -> None:
    entry = log.record_operation(source, action, record)
    print(render_log_entry(entry))
    print()


def main():
    print("=" * 70)
    print("FHE Clinic - Patient Visit Walkthrough")
    print("=" * 70)

    # Replayable sources: the same output on every run
    clock = FixedClock(1_767_225_600_000, step_ms=750)
    sim = FheSimulator(
        randomness=SeededRandomness(2026),
        clock=clock,
        identity=SequenceIdentity(prefix="visit"),
    )
    log = ProtocolLog(clock, SequenceIdentity(prefix="log"))
    vitals = load_vitals(sys.argv)

    print("\n[STEP 1] Patient encrypts vitals")
    encrypted = sim.encrypt_value(vitals)
    show(log, AgentRole.PATIENT, "ENCRYPT_VITALS", encrypted)

    print("[STEP 2] Specialist, lab and billing compute on the ciphertext")
    diagnosis = sim.homomorphic_diagnosis(encrypted.target)
    show(log, AgentRole.SPECIALIST, "NN_INFERENCE", diagnosis)

    lab = sim.homomorphic_lab_analysis(encrypted.target)
    show(log, AgentRole.MEDICAL_LAB, "STAT_ANALYSIS", lab)

    bill = sim.homomorphic_billing(encrypted.target)
    show(log, AgentRole.BILLING, "GENERATE_BILL", bill)

    print("[STEP 3] Human doctor approves the diagnosis")
    review = sim.human_doctor_review(diagnosis.target)
    show(log, AgentRole.HUMAN_DOCTOR, "APPROVE", review)

    print("[STEP 4] Patient decrypts")
    decrypted = decrypt_for_patient(review.target)
    print(render_envelope(decrypted))
    rating = urgency_rating(decrypted.raw_value.value)
    print(f"  -> {rating.label}: {rating.description}")

    print("\n[STEP 5] Toy LWE arithmetic behind the label")
    example = sim.codec.build_toy_lwe_example(decrypted.raw_value.value)
    print(json.dumps(example.to_dict(), indent=2))

    print("\n[STEP 6] Protocol log integrity")
    print(f"  Intact log:   {log.verify().to_dict()}")

    entries = log.entries()
    entries[1] = replace(entries[1], details="Diagnosis skipped.")
    print(f"  Edited entry: {verify_log_chain(entries).to_dict()}")


if __name__ == "__main__":
    main()
