"""
FHE Workflow Simulator

The transformation-and-audit-trail pipeline:
- encrypt_value wraps a raw value in a fresh Envelope
- each participant transform scores the Envelope's payload and returns a
  new Envelope with one more history label
- every call returns an AuditRecord (narrative, formula, steps, metrics)

Nothing here is real homomorphic encryption. Scores are ordinary
arithmetic on the plaintext payload; the vocabulary is for display.

Randomness consumption order (relevant when replaying a SequenceRandomness):
- encrypt_value: label suffix, then (scalars only) 4 mask entries, 1 error
- diagnosis, lab analysis: label suffix
- billing: (structured only) 1 cost draw, then label suffix
- human review: nothing
"""

import math
from typing import Any, Optional

from .audit import AuditRecord, build_audit_record, format_number
from .ciphertext import CiphertextCodec
from .config import LWE_SCALE
from .envelope import Envelope, EnvelopeState
from .errors import PayloadShapeError
from .logging_config import audit_log
from .payloads import (
    ProfileRecord,
    RawPayload,
    Scalar,
    VitalsRecord,
    is_structured,
    payload_from_value,
)
from .sources import (
    ClockSource,
    IdentitySource,
    RandomnessSource,
    SystemClock,
    SystemRandomness,
    UuidIdentity,
)


# History labels
LABEL_ENCRYPTION = "Initial Encryption"
LABEL_DIAGNOSIS = "Specialist Diagnosis (NN)"
LABEL_LAB = "Lab Analysis (Stats)"
LABEL_BILLING = "Billing Generated"
LABEL_REVIEW = "Human Doctor Approved"

# Score caps
DIAGNOSIS_CAP = 99
LAB_CAP = 100

# Diagnosis rule weights
HR_HIGH, HR_LOW, HR_WEIGHT = 100, 50, 20
SYSTOLIC_HIGH, SYSTOLIC_WEIGHT = 140, 20
FEVER_THRESHOLD, FEVER_WEIGHT = 37.5, 25
HYPOXIA_THRESHOLD, HYPOXIA_WEIGHT = 95, 30
SEVERITY_WEIGHT = 0.3
SCALAR_DIAGNOSIS_FACTOR = 1.5

# Lab baselines
HR_BASELINE = 70
SYSTOLIC_BASELINE = 120
O2_BASELINE = 98
O2_DEVIATION_WEIGHT = 5
SCALAR_LAB_FACTOR = 1.2

# Billing
BILLING_BASE = 150
BILLING_EXTRAS_RANGE = 50   # extras drawn from [0, 50)
SCALAR_BILLING_COST = 50


def _clamp_score(raw: float, cap: int) -> int:
    """floor, then clamp into [0, cap]."""
    if raw >= cap:
        return cap
    if raw <= 0:
        return 0
    return math.floor(raw)


def diagnosis_raw_score(vitals: VitalsRecord) -> float:
    """Weighted rule score before flooring and capping."""
    score = 0.0
    if vitals.heart_rate > HR_HIGH or vitals.heart_rate < HR_LOW:
        score += HR_WEIGHT
    if vitals.systolic > SYSTOLIC_HIGH:
        score += SYSTOLIC_WEIGHT
    if vitals.temperature > FEVER_THRESHOLD:
        score += FEVER_WEIGHT
    if vitals.oxygen_sat < HYPOXIA_THRESHOLD:
        score += HYPOXIA_WEIGHT
    score += vitals.symptom_severity * SEVERITY_WEIGHT
    return score


def lab_squared_deviation(vitals: VitalsRecord) -> float:
    """Sum of squared deviations from baseline, oxygen weighted 5x."""
    d_hr = (vitals.heart_rate - HR_BASELINE) ** 2
    d_sys = (vitals.systolic - SYSTOLIC_BASELINE) ** 2
    d_o2 = (vitals.oxygen_sat - O2_BASELINE) ** 2 * O2_DEVIATION_WEIGHT
    return d_hr + d_sys + d_o2


def _payload_kind(payload: RawPayload) -> str:
    if isinstance(payload, Scalar):
        return "scalar"
    if isinstance(payload, VitalsRecord):
        return "vitals"
    if isinstance(payload, ProfileRecord):
        return "profile"
    raise PayloadShapeError(f"Unknown payload variant: {type(payload).__name__}")


class FheSimulator:
    """
    Runs the simulated encryption and participant computations.

    The three ambient sources are injected; by default they are live
    (system random, system clock, uuid4).
    """

    def __init__(
        self,
        randomness: Optional[RandomnessSource] = None,
        clock: Optional[ClockSource] = None,
        identity: Optional[IdentitySource] = None,
        scale: int = LWE_SCALE
    ):
        self.randomness = randomness or SystemRandomness()
        self.clock = clock or SystemClock()
        self.identity = identity or UuidIdentity()
        self.codec = CiphertextCodec(self.randomness, self.clock)
        self.scale = scale

    # --------------------------------------------------------
    # Encryption
    # --------------------------------------------------------

    def encrypt_value(self, raw: Any) -> AuditRecord:
        """
        Wrap a raw value in a new ENCRYPTED Envelope.

        Scalars get a seven-step toy LWE trace with the live numbers;
        structured payloads get the fixed vector-packing narrative.

        Raises:
            PayloadShapeError: if raw is not a RawPayload shape
        """
        payload = payload_from_value(raw)
        envelope = Envelope(
            id=self.identity.new_id(),
            raw_value=payload,
            encrypted_blob=self.codec.render_ciphertext_label(payload),
            state=EnvelopeState.ENCRYPTED,
            history=(LABEL_ENCRYPTION,),
        )
        audit_log.envelope_encrypted(envelope.id, _payload_kind(payload))

        if is_structured(payload):
            return build_audit_record(
                envelope,
                narrative=(
                    "Encrypted Patient Vitals Vector. Each parameter (HR, BP, Temp) "
                    "is individually encrypted but bundled."
                ),
                formula="Ct = Enc(Vitals_Vector, Public_Params)",
                steps=[
                    "1. Serialization: Convert Patient Vitals vector to tensor.",
                    "2. KeyGen: Generate Secret Key (S) and Cloud Key (CK).",
                    "3. Packing: Encrypt multiple vitals into LWE ciphertexts.",
                    "4. Noise Addition: Sample Gaussian error for security.",
                    "5. Result: Encrypted Vitals Vector ready for transmission.",
                ],
                metrics={
                    "security_level": "128-bit",
                    "dimension": "n=2048",
                    "noise_variance": "σ² ≈ 2^-25",
                },
            )

        m = payload.value
        lwe = self.codec.build_toy_lwe_example(m, self.scale)
        s = [format_number(x) for x in lwe.secret]
        a = [format_number(x) for x in lwe.mask]
        terms = " + ".join(f"({ai}*{si})" for ai, si in zip(a, s))
        m_txt = format_number(m)
        dm_txt = format_number(lwe.scaled_message)
        return build_audit_record(
            envelope,
            narrative="Encrypted Scalar Value using TFHE scheme.",
            formula="Ciphertext = (Mask, (Mask • Secret) + (Message • Scale) + Error)",
            steps=[
                "1. Setup: Define dimension n=4, Modulus q=2^32.",
                f"2. Secret Key (s): [{', '.join(s)}] (Only known to Client)",
                f"3. Scaling: Map message m={m_txt} to Torus: "
                f"Δm = {m_txt} * {format_number(self.scale)} = {dm_txt}",
                f"4. Random Mask (a): [{', '.join(a)}] (Publicly generated)",
                f"5. Compute Inner Product <a, s>: {terms} = {lwe.dot_product}",
                f"6. Add Noise (e): Sample Gaussian error e = {lwe.error}",
                f"7. Compute Body (b): {lwe.dot_product} + {dm_txt} + {lwe.error} "
                f"= {format_number(lwe.body)}",
            ],
            metrics={
                "security_level": "128-bit",
                "dimension": "n=1024",
                "noise_variance": "σ² ≈ 2^-25",
            },
        )

    # --------------------------------------------------------
    # Participant transforms
    # --------------------------------------------------------

    def homomorphic_diagnosis(self, envelope: Envelope) -> AuditRecord:
        """
        Specialist: encrypted neural-network style triage score in [0, 99].

        Raises:
            PayloadShapeError: for ProfileRecord payloads, which have no
                diagnosis rule
        """
        payload = envelope.raw_value
        if isinstance(payload, VitalsRecord):
            result = _clamp_score(diagnosis_raw_score(payload), DIAGNOSIS_CAP)
            steps = [
                "1. Input: Encrypted Feature Vector x = [HR, BP, Temp, O2, ...].",
                "2. Linear Layer: Compute Dot Product Enc(z) = Σ (w_i • Enc(x_i)) + Enc(bias).",
                "3. Programmable Bootstrapping (PBS): Apply Activation Function φ(z).",
                "4. Activation: Using lookup table for Sigmoid/ReLU over Torus.",
                f"5. Result: Encrypted Diagnosis Confidence {result}%.",
            ]
        elif isinstance(payload, Scalar):
            result = _clamp_score(payload.value * SCALAR_DIAGNOSIS_FACTOR, DIAGNOSIS_CAP)
            steps = ["1. Input: Scalar", "2. Op: Linear Eval", f"3. Result: {result}"]
        elif isinstance(payload, ProfileRecord):
            raise PayloadShapeError("Diagnosis has no rule for profile payloads")
        else:
            raise PayloadShapeError(f"Unknown payload variant: {type(payload).__name__}")

        target = self._advance(envelope, result, LABEL_DIAGNOSIS)
        return build_audit_record(
            target,
            narrative=(
                "Specialist executed an encrypted Neural Network inference layer "
                "using Programmable Bootstrapping (PBS)."
            ),
            formula="y = PBS_ReLU( W • Enc(x) + b )",
            steps=steps,
            metrics={
                "model_type": "FHE-Neural-Net",
                "layers": "1 Linear + 1 PBS",
                "pbs_latency": "420ms",
            },
        )

    def homomorphic_lab_analysis(self, envelope: Envelope) -> AuditRecord:
        """
        Medical lab: deviation-from-baseline score in [0, 100].

        Raises:
            PayloadShapeError: for ProfileRecord payloads
        """
        payload = envelope.raw_value
        if isinstance(payload, VitalsRecord):
            result = _clamp_score(math.sqrt(lab_squared_deviation(payload)), LAB_CAP)
            steps = [
                "1. Normalization: Enc(x_norm) = Enc(x) - Enc(μ).",
                "2. Square Calculation: PBS_Square( Enc(x_norm) ) mapping x -> x².",
                "3. Accumulation: Σ Enc(x²_i) (Homomorphic Addition).",
                "4. Thresholding: Compare Enc(Sum) > Enc(Limit).",
                f"5. Result: Encrypted Deviation Score {result}.",
            ]
        elif isinstance(payload, Scalar):
            result = _clamp_score(payload.value * SCALAR_LAB_FACTOR, LAB_CAP)
            steps = ["1. Input: Scalar", "2. Op: Analysis", f"3. Result: {result}"]
        elif isinstance(payload, ProfileRecord):
            raise PayloadShapeError("Lab analysis has no rule for profile payloads")
        else:
            raise PayloadShapeError(f"Unknown payload variant: {type(payload).__name__}")

        target = self._advance(envelope, result, LABEL_LAB)
        return build_audit_record(
            target,
            narrative=(
                "Medical Lab performed homomorphic statistical analysis "
                "(Variance Calculation) to detect anomalies."
            ),
            formula="σ² = Σ PBS_Square( Enc(x_i) - Enc(μ) )",
            steps=steps,
            metrics={
                "algo": "FHE-Statistical-Analysis",
                "ops": "3x PBS (Squaring)",
                "precision": "6-bit",
            },
        )

    def homomorphic_billing(self, envelope: Envelope) -> AuditRecord:
        """
        Billing: $150-$199 for structured records, a flat $50 for scalars.
        """
        if is_structured(envelope.raw_value):
            cost = BILLING_BASE + self.randomness.uniform_int(BILLING_EXTRAS_RANGE)
        else:
            cost = SCALAR_BILLING_COST

        target = self._advance(envelope, cost, LABEL_BILLING)
        return build_audit_record(
            target,
            narrative=(
                "Billing Agent calculated total cost securely. "
                "Patient financial info never exposed."
            ),
            formula="Bill = Σ FHE_Lookup( Enc(Service_i) )",
            steps=[
                "1. Input: Encrypted Procedure Codes.",
                "2. Lookup: Homomorphic Table Lookup (Enc(Code) -> Enc(Cost)).",
                "3. Sum: Enc(Total) = Enc(Base) + Enc(Extras).",
                f"4. Output: Encrypted Bill Amount ${cost}.",
            ],
            metrics={
                "ops": "Table Lookup",
                "execution_time": "0.9s",
            },
        )

    def human_doctor_review(self, envelope: Envelope) -> AuditRecord:
        """Human doctor approval: value and state pass through unchanged."""
        target = envelope.evolve(LABEL_REVIEW)
        audit_log.transform_applied(
            target.id, LABEL_REVIEW, target.state.value, len(target.history)
        )
        return build_audit_record(
            target,
            narrative="Human Doctor reviewed case in Trusted Execution Environment (TEE).",
            formula="Auth = Sign( Dec(Result) )",
            steps=[
                "1. Receive Encrypted Diagnosis/Lab Results.",
                "2. Secure Enclave: Decrypt for Human Review (in Trusted Hardware).",
                "3. Doctor Decision: APPROVE treatment plan.",
                "4. Output: Re-encrypted Authorization Token.",
            ],
            metrics={
                "mode": "Hybrid (FHE + TEE)",
                "authority": "Dr. Smith",
            },
        )

    def _advance(self, envelope: Envelope, result: int, label: str) -> Envelope:
        """New PROCESSED envelope carrying a scalar result."""
        value = Scalar(result)
        target = envelope.evolve(
            label,
            raw_value=value,
            encrypted_blob=self.codec.render_ciphertext_label(value),
            state=EnvelopeState.PROCESSED,
        )
        audit_log.transform_applied(
            target.id, label, target.state.value, len(target.history)
        )
        return target


# ============================================================
# Module-level operations on a shared default simulator
# ============================================================

_default_simulator: Optional[FheSimulator] = None


def get_default_simulator() -> FheSimulator:
    global _default_simulator
    if _default_simulator is None:
        _default_simulator = FheSimulator()
    return _default_simulator


def set_default_simulator(simulator: Optional[FheSimulator]) -> None:
    """Replace (or with None, reset) the shared simulator."""
    global _default_simulator
    _default_simulator = simulator


def encrypt_value(raw: Any) -> AuditRecord:
    return get_default_simulator().encrypt_value(raw)


def homomorphic_diagnosis(envelope: Envelope) -> AuditRecord:
    return get_default_simulator().homomorphic_diagnosis(envelope)


def homomorphic_lab_analysis(envelope: Envelope) -> AuditRecord:
    return get_default_simulator().homomorphic_lab_analysis(envelope)


def homomorphic_billing(envelope: Envelope) -> AuditRecord:
    return get_default_simulator().homomorphic_billing(envelope)


def human_doctor_review(envelope: Envelope) -> AuditRecord:
    return get_default_simulator().human_doctor_review(envelope)


def render_ciphertext_label(value: Any) -> str:
    return get_default_simulator().codec.render_ciphertext_label(value)


def build_toy_lwe_example(message, scale=LWE_SCALE):
    return get_default_simulator().codec.build_toy_lwe_example(message, scale)
