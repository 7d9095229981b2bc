"""
Ciphertext Codec

Cosmetic ciphertext labels and the toy LWE example.

Nothing here is encryption. The label is a display string derived from the
value, the wall clock and a random suffix; the toy LWE example reproduces
the arithmetic shape of an LWE ciphertext (b = <a, s> + m * scale + e) with
small numbers so the audit trail can show every term.

Label format:
    ct_0x<6 lowercase hex digits>...<random base-36 suffix>
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .payloads import Number, payload_from_value, payload_seed, require_number
from .sources import (
    ClockSource,
    RandomnessSource,
    SystemClock,
    SystemRandomness,
)


LABEL_PATTERN = re.compile(r'^ct_0x[0-9a-f]{6}\.\.\.[0-9a-z]+$')

SEED_MULTIPLIER = 1337
LABEL_MASK = 0xFFFFFF

LWE_DIMENSION = 4
LWE_SECRET: Tuple[int, ...] = (1, 0, 1, 0)
LWE_MASK_BOUND = 1000   # mask entries drawn from [0, 1000)
LWE_MAX_ERROR = 5       # error drawn from [1, 5]
DEFAULT_SCALE = 100


@dataclass(frozen=True)
class ToyLWEExample:
    """
    One worked toy LWE encryption.

    INVARIANT: body == dot_product + scaled_message + error
    """
    message: Number
    scale: Number
    secret: Tuple[int, ...]
    mask: Tuple[int, ...]
    error: int
    dot_product: int
    scaled_message: Number
    body: Number

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "scale": self.scale,
            "secret": list(self.secret),
            "mask": list(self.mask),
            "error": self.error,
            "dotProduct": self.dot_product,
            "scaledMessage": self.scaled_message,
            "body": self.body,
        }


class CiphertextCodec:
    """
    Produces ciphertext labels and toy LWE examples.

    Both operations consume the injected sources; nothing is cached, so a
    label must be re-rendered whenever the underlying value changes.
    """

    def __init__(
        self,
        randomness: Optional[RandomnessSource] = None,
        clock: Optional[ClockSource] = None,
        suffix_length: int = 5
    ):
        if suffix_length < 1:
            raise ValueError("suffix_length must be at least 1")
        self.randomness = randomness or SystemRandomness()
        self.clock = clock or SystemClock()
        self._suffix_length = suffix_length

    def render_ciphertext_label(self, value: Any) -> str:
        """
        Render the display ciphertext for a payload.

        The low 24 bits of floor(seed * 1337 + now_ms) become the six hex
        digits; a random base-36 token becomes the suffix.
        """
        seed = payload_seed(payload_from_value(value))
        combined = math.floor(seed * SEED_MULTIPLIER + self.clock.now_ms())
        suffix = self.randomness.token(self._suffix_length)
        return f"ct_0x{combined & LABEL_MASK:06x}...{suffix}"

    def build_toy_lwe_example(
        self,
        message: Number,
        scale: Number = DEFAULT_SCALE
    ) -> ToyLWEExample:
        """
        Build a toy LWE ciphertext for a scalar message.

        Draws four mask entries from [0, 1000) and one error from [1, 5].
        """
        require_number("message", message)
        require_number("scale", scale)
        mask = tuple(
            self.randomness.uniform_int(LWE_MASK_BOUND) for _ in range(LWE_DIMENSION)
        )
        error = self.randomness.uniform_int(LWE_MAX_ERROR) + 1
        scaled_message = message * scale
        dot_product = sum(a * s for a, s in zip(mask, LWE_SECRET))
        body = dot_product + scaled_message + error

        return ToyLWEExample(
            message=message,
            scale=scale,
            secret=LWE_SECRET,
            mask=mask,
            error=error,
            dot_product=dot_product,
            scaled_message=scaled_message,
            body=body,
        )


def is_ciphertext_label(label: str) -> bool:
    """Check a string against the label format."""
    return bool(LABEL_PATTERN.match(label))
