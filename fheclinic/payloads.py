"""
Raw Payloads

The value shapes an Envelope can carry. Exactly one is active per Envelope:
- Scalar: a single numeric score
- VitalsRecord: a patient's vital signs
- ProfileRecord: arbitrary named numeric fields

ProfileRecord is accepted by the codec and by encryption, but no participant
defines scoring rules for it beyond the "structured payload" branches.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Union

from .errors import PayloadShapeError


Number = Union[int, float]

# Largest accepted magnitude for any numeric field
MAX_MAGNITUDE = 2 ** 53


def require_number(name: str, value: Any) -> Number:
    """Reject anything that is not a finite int/float (bool included) within MAX_MAGNITUDE."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadShapeError(
            f"{name} must be a number, got {type(value).__name__}"
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise PayloadShapeError(f"{name} must be finite, got {value}")
    if abs(value) > MAX_MAGNITUDE:
        raise PayloadShapeError(f"{name} exceeds magnitude bound 2**53, got {value}")
    return value


@dataclass(frozen=True)
class Scalar:
    """A single numeric score."""
    value: Number

    def __post_init__(self):
        require_number("value", self.value)

    def to_plain(self) -> Number:
        return self.value


@dataclass(frozen=True)
class VitalsRecord:
    """
    Patient vital signs.

    Units: heart rate in BPM, blood pressure in mmHg, temperature in
    degrees Celsius, oxygen saturation in percent, symptom severity 0-100.
    """
    heart_rate: Number
    systolic: Number
    diastolic: Number
    temperature: Number
    oxygen_sat: Number
    symptom_severity: Number

    # camelCase keys used by the UI collaborator
    WIRE_KEYS = {
        "heart_rate": "heartRate",
        "systolic": "systolic",
        "diastolic": "diastolic",
        "temperature": "temperature",
        "oxygen_sat": "oxygenSat",
        "symptom_severity": "symptomSeverity",
    }

    def __post_init__(self):
        for name in self.WIRE_KEYS:
            require_number(name, getattr(self, name))

    def to_dict(self) -> Dict[str, Number]:
        """Convert to the camelCase dictionary shape."""
        return {wire: getattr(self, name) for name, wire in self.WIRE_KEYS.items()}

    def to_plain(self) -> Dict[str, Number]:
        return self.to_dict()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'VitalsRecord':
        """Create from a dictionary using camelCase or snake_case keys."""
        values = {}
        missing = []
        for name, wire in cls.WIRE_KEYS.items():
            if wire in data:
                values[name] = data[wire]
            elif name in data:
                values[name] = data[name]
            else:
                missing.append(wire)
        if missing:
            raise PayloadShapeError(f"Missing vitals fields: {missing}")
        return cls(**values)


@dataclass(frozen=True)
class ProfileRecord:
    """Arbitrary named numeric fields."""
    values: Dict[str, Number] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.values, Mapping) or not self.values:
            raise PayloadShapeError("ProfileRecord needs at least one numeric field")
        for name, value in self.values.items():
            require_number(name, value)
        # Detach from the caller's mapping
        object.__setattr__(self, "values", dict(self.values))

    def to_dict(self) -> Dict[str, Number]:
        return dict(self.values)

    def to_plain(self) -> Dict[str, Number]:
        return self.to_dict()


RawPayload = Union[Scalar, VitalsRecord, ProfileRecord]

PAYLOAD_TYPES = (Scalar, VitalsRecord, ProfileRecord)


def payload_from_value(value: Any) -> RawPayload:
    """
    Coerce a plain value into a RawPayload.

    - int/float -> Scalar
    - mapping with a heartRate/heart_rate key -> VitalsRecord
    - any other non-empty mapping of numbers -> ProfileRecord

    Raises:
        PayloadShapeError: if the value fits none of the shapes
    """
    if isinstance(value, PAYLOAD_TYPES):
        return value
    if isinstance(value, bool):
        raise PayloadShapeError("Booleans are not numeric payloads")
    if isinstance(value, (int, float)):
        return Scalar(value)
    if isinstance(value, Mapping):
        if "heartRate" in value or "heart_rate" in value:
            return VitalsRecord.from_dict(value)
        return ProfileRecord(dict(value))
    raise PayloadShapeError(f"Unsupported payload type: {type(value).__name__}")


def is_structured(payload: RawPayload) -> bool:
    """True for every payload shape except Scalar."""
    if isinstance(payload, Scalar):
        return False
    if isinstance(payload, (VitalsRecord, ProfileRecord)):
        return True
    raise PayloadShapeError(f"Unknown payload variant: {type(payload).__name__}")


def payload_seed(payload: RawPayload) -> Number:
    """
    Numeric seed for the ciphertext label.

    Scalar: the value itself. Vitals: heart rate + systolic + temperature.
    Profile: the sum of all field values.
    """
    if isinstance(payload, Scalar):
        return payload.value
    if isinstance(payload, VitalsRecord):
        return payload.heart_rate + payload.systolic + payload.temperature
    if isinstance(payload, ProfileRecord):
        return sum(payload.values.values())
    raise PayloadShapeError(f"Unknown payload variant: {type(payload).__name__}")


def payload_to_plain(payload: RawPayload) -> Any:
    """Number for scalars, camelCase dict for structured payloads."""
    if isinstance(payload, PAYLOAD_TYPES):
        return payload.to_plain()
    raise PayloadShapeError(f"Unknown payload variant: {type(payload).__name__}")
