"""
Patient Visit Scenario

Sequences the simulation into one hospital visit and records every step
in a ProtocolLog:

    PATIENT (A)       encrypts vitals
    GEN. DOCTOR (B)   forwards the ciphertext unread
    SPECIALIST (C)    diagnosis on the encrypted vitals
    MEDICAL LAB (D)   statistical analysis on the encrypted vitals
    BILLING (E)       bill from the encrypted vitals
    HUMAN DOCTOR      approves the diagnosis
    PATIENT (A)       decrypts the approved result

Diagnosis, lab and billing each branch from the same encrypted vitals
envelope; Envelopes are immutable so the branches cannot interfere.

Commentary is optional. It only adds log lines and never touches an
Envelope.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .audit import AuditRecord
from .commentary import CommentaryService, ProtocolAnalysis
from .config import ANALYSIS_WINDOW
from .envelope import Envelope, EnvelopeState
from .logging_config import set_visit_id
from .participants import AgentRole, urgency_rating
from .payloads import VitalsRecord
from .protocol_log import ProtocolLog
from .simulator import FheSimulator


LABEL_DECRYPTION = "Client Decryption"

DEFAULT_VITALS = VitalsRecord(
    heart_rate=110,
    systolic=150,
    diastolic=95,
    temperature=38,
    oxygen_sat=90,
    symptom_severity=40,
)


def decrypt_for_patient(envelope: Envelope) -> Envelope:
    """The patient's decryption: same value, DECRYPTED state."""
    return envelope.evolve(LABEL_DECRYPTION, state=EnvelopeState.DECRYPTED)


@dataclass
class VisitResult:
    """Everything one visit produced."""
    encryption: AuditRecord
    diagnosis: AuditRecord
    lab: AuditRecord
    billing: AuditRecord
    review: AuditRecord
    decrypted: Envelope
    log: ProtocolLog
    analysis: Optional[ProtocolAnalysis] = None
    agent_messages: Dict[AgentRole, str] = field(default_factory=dict)

    def records(self) -> List[AuditRecord]:
        return [self.encryption, self.diagnosis, self.lab, self.billing, self.review]

    def summary(self) -> Dict[str, Any]:
        score = self.review.target.raw_value.value
        rating = urgency_rating(score)
        return {
            "diagnosisScore": self.diagnosis.target.raw_value.value,
            "labDeviationScore": self.lab.target.raw_value.value,
            "billAmount": self.billing.target.raw_value.value,
            "approvedScore": score,
            "urgency": rating.label,
            "urgencyDescription": rating.description,
        }

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "summary": self.summary(),
            "records": [r.to_dict() for r in self.records()],
            "decrypted": self.decrypted.to_dict(),
            "log": self.log.to_list(),
        }
        if self.analysis is not None:
            d["analysis"] = self.analysis.to_dict()
        if self.agent_messages:
            d["agentMessages"] = {r.value: m for r, m in self.agent_messages.items()}
        return d


class PatientVisit:
    """Orchestrates one visit over a simulator and a protocol log."""

    def __init__(
        self,
        simulator: Optional[FheSimulator] = None,
        log: Optional[ProtocolLog] = None,
        commentary: Optional[CommentaryService] = None,
        analysis_window: int = ANALYSIS_WINDOW
    ):
        self.simulator = simulator or FheSimulator()
        self.log = log or ProtocolLog(self.simulator.clock, self.simulator.identity)
        self.commentary = commentary
        self.analysis_window = analysis_window

    def run(self, vitals: VitalsRecord = DEFAULT_VITALS) -> VisitResult:
        set_visit_id()
        sim = self.simulator
        log = self.log

        encryption = sim.encrypt_value(vitals)
        log.record_operation(AgentRole.PATIENT, "ENCRYPT_VITALS", encryption)
        vitals_ct = encryption.target

        log.append(
            AgentRole.GENERAL_DOCTOR,
            "FORWARD_CIPHERTEXT",
            f"Forwarded encrypted vitals {vitals_ct.encrypted_blob} to Specialist, "
            "Lab and Billing without decrypting.",
        )

        diagnosis = sim.homomorphic_diagnosis(vitals_ct)
        log.record_operation(AgentRole.SPECIALIST, "NN_INFERENCE", diagnosis)

        lab = sim.homomorphic_lab_analysis(vitals_ct)
        log.record_operation(AgentRole.MEDICAL_LAB, "STAT_ANALYSIS", lab)

        billing = sim.homomorphic_billing(vitals_ct)
        log.record_operation(AgentRole.BILLING, "GENERATE_BILL", billing)

        review = sim.human_doctor_review(diagnosis.target)
        log.record_operation(AgentRole.HUMAN_DOCTOR, "APPROVE", review)

        decrypted = decrypt_for_patient(review.target)
        score = decrypted.raw_value.value
        log.append(
            AgentRole.PATIENT,
            "DECRYPT_RESULT",
            f"Decrypted approved urgency score {score} ({urgency_rating(score).label}).",
        )

        result = VisitResult(
            encryption=encryption,
            diagnosis=diagnosis,
            lab=lab,
            billing=billing,
            review=review,
            decrypted=decrypted,
            log=log,
        )
        if self.commentary is not None:
            self._add_commentary(result)
        return result

    def _add_commentary(self, result: VisitResult) -> None:
        """Ask the auditor and each agent for flavor text; log only."""
        for entry in self.log.entries():
            if entry.source not in result.agent_messages:
                result.agent_messages[entry.source] = self.commentary.generate_agent_message(
                    entry.source.display_name, entry.action
                )

        result.analysis = self.commentary.analyze_protocol_step(
            self.log.recent(self.analysis_window)
        )
        if result.analysis is not None:
            self.log.append(
                AgentRole.AUDITOR,
                "AUDITOR_ANALYSIS",
                f"{result.analysis.analysis} "
                f"(security score {result.analysis.security_score:g})",
            )
