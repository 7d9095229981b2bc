"""
FHE Clinic Simulation

Version: 1.0.0
License: Apache 2.0

A staged, educational simulation of a hospital workflow over "encrypted"
patient data. A record (a score or a set of vital signs) is wrapped in an
Envelope and passed between participants; each one applies a scoring rule
and emits an audit record with a display formula and a step-by-step trace.

No confidentiality-preserving computation takes place. The encryption and
homomorphic vocabulary is cosmetic, built from ordinary arithmetic plus
injected randomness.

Usage:
    from fheclinic import (
        FheSimulator,
        SeededRandomness,
        VitalsRecord,
        ProtocolLog,
        AgentRole,
    )

    sim = FheSimulator(randomness=SeededRandomness(7))
    log = ProtocolLog()

    encrypted = sim.encrypt_value(VitalsRecord(
        heart_rate=110, systolic=150, diastolic=95,
        temperature=38, oxygen_sat=90, symptom_severity=40,
    ))
    log.record_operation(AgentRole.PATIENT, "ENCRYPT_VITALS", encrypted)

    diagnosis = sim.homomorphic_diagnosis(encrypted.target)
    diagnosis.target.raw_value      # Scalar(value=99)
    diagnosis.steps                 # ordered step trace
    diagnosis.target.history        # ('Initial Encryption', 'Specialist Diagnosis (NN)')
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Payloads
from .errors import FheClinicError, PayloadShapeError
from .payloads import (
    Scalar,
    VitalsRecord,
    ProfileRecord,
    RawPayload,
    payload_from_value,
    payload_seed,
    is_structured,
)

# Sources
from .sources import (
    RandomnessSource,
    ClockSource,
    IdentitySource,
    SystemRandomness,
    SeededRandomness,
    SequenceRandomness,
    SystemClock,
    FixedClock,
    UuidIdentity,
    SequenceIdentity,
    SourceExhausted,
)

# Codec, envelope, audit
from .ciphertext import CiphertextCodec, ToyLWEExample, is_ciphertext_label
from .envelope import Envelope, EnvelopeState
from .audit import AuditRecord, LogEntry, build_audit_record
from .participants import AgentRole, UrgencyRating, urgency_rating

# Simulation
from .simulator import (
    FheSimulator,
    encrypt_value,
    homomorphic_diagnosis,
    homomorphic_lab_analysis,
    homomorphic_billing,
    human_doctor_review,
    render_ciphertext_label,
    build_toy_lwe_example,
)

# Collaborators
from .protocol_log import ProtocolLog, ChainVerification, verify_log_chain
from .commentary import (
    CommentaryService,
    ProtocolAnalysis,
    analyze_protocol_step,
    generate_agent_message,
)
from .scenario import PatientVisit, VisitResult


__all__ = [
    "__version__",

    # Errors
    "FheClinicError",
    "PayloadShapeError",

    # Payloads
    "Scalar",
    "VitalsRecord",
    "ProfileRecord",
    "RawPayload",
    "payload_from_value",
    "payload_seed",
    "is_structured",

    # Sources
    "RandomnessSource",
    "ClockSource",
    "IdentitySource",
    "SystemRandomness",
    "SeededRandomness",
    "SequenceRandomness",
    "SystemClock",
    "FixedClock",
    "UuidIdentity",
    "SequenceIdentity",
    "SourceExhausted",

    # Codec, envelope, audit
    "CiphertextCodec",
    "ToyLWEExample",
    "is_ciphertext_label",
    "Envelope",
    "EnvelopeState",
    "AuditRecord",
    "LogEntry",
    "build_audit_record",
    "AgentRole",
    "UrgencyRating",
    "urgency_rating",

    # Simulation
    "FheSimulator",
    "encrypt_value",
    "homomorphic_diagnosis",
    "homomorphic_lab_analysis",
    "homomorphic_billing",
    "human_doctor_review",
    "render_ciphertext_label",
    "build_toy_lwe_example",

    # Collaborators
    "ProtocolLog",
    "ChainVerification",
    "verify_log_chain",
    "CommentaryService",
    "ProtocolAnalysis",
    "analyze_protocol_step",
    "generate_agent_message",
    "PatientVisit",
    "VisitResult",
]
