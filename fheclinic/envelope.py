"""
Envelope

The value-with-provenance wrapper that travels between participants.

GUARANTEES:
- Envelopes are frozen; every change produces a new Envelope
- history is an append-only tuple, extended by exactly one label per step
- id never changes once assigned
- a new raw_value always comes with a freshly rendered encrypted_blob
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .payloads import RawPayload, PAYLOAD_TYPES, payload_to_plain


class EnvelopeState(str, Enum):
    """
    Lifecycle of an Envelope.

    PLAINTEXT: raw value, never leaves the patient
    ENCRYPTED: produced by encryption
    PROCESSED: produced by a participant computation
    DECRYPTED: assigned outside the simulation core
    """
    PLAINTEXT = "PLAINTEXT"
    ENCRYPTED = "ENCRYPTED"
    PROCESSED = "PROCESSED"
    DECRYPTED = "DECRYPTED"


@dataclass(frozen=True)
class Envelope:
    """A payload, its display ciphertext, its state and its history."""
    id: str
    raw_value: RawPayload
    encrypted_blob: str
    state: EnvelopeState
    history: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.id:
            raise ValueError("Envelope id must not be empty")
        if not isinstance(self.raw_value, PAYLOAD_TYPES):
            raise TypeError(
                f"raw_value must be a RawPayload, got {type(self.raw_value).__name__}"
            )
        if not isinstance(self.history, tuple):
            object.__setattr__(self, "history", tuple(self.history))

    def evolve(
        self,
        label: str,
        raw_value: Optional[RawPayload] = None,
        encrypted_blob: Optional[str] = None,
        state: Optional[EnvelopeState] = None
    ) -> 'Envelope':
        """
        Return a copy with one more history label and optional new fields.

        The receiver is left untouched.
        """
        if raw_value is not None and encrypted_blob is None:
            raise ValueError("A new raw_value requires a re-rendered encrypted_blob")

        changes: Dict[str, Any] = {"history": self.history + (label,)}
        if raw_value is not None:
            changes["raw_value"] = raw_value
            changes["encrypted_blob"] = encrypted_blob
        if state is not None:
            changes["state"] = state
        return replace(self, **changes)

    def latest_event(self) -> Optional[str]:
        return self.history[-1] if self.history else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape consumed by the UI collaborator."""
        return {
            "id": self.id,
            "rawValue": payload_to_plain(self.raw_value),
            "encryptedBlob": self.encrypted_blob,
            "state": self.state.value,
            "history": list(self.history),
        }
