"""
Canonical JSON for protocol log hashing.

Semantically identical log entries must produce identical bytes, so the
integrity hash does not depend on dict ordering or whitespace.

Rules:
- Object keys sorted lexicographically, all keys must be strings
- Compact separators, no whitespace
- UTF-8, non-ASCII kept as-is (σ, Δ, • appear in formulas)
- Enums encoded by value, tuples as arrays
- Integral floats encoded as integers (40.0 -> 40); NaN/inf rejected
"""

import json
import math
from enum import Enum
from typing import Any


def normalize(value: Any) -> Any:
    """Reduce a value to plain JSON types following the rules above."""
    if isinstance(value, Enum):
        value = value.value

    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"Non-finite number in log body: {value}")
        return int(value) if value.is_integer() else value
    if isinstance(value, (list, tuple)):
        return [normalize(v) for v in value]
    if isinstance(value, dict):
        bad = [k for k in value if not isinstance(k, str)]
        if bad:
            raise ValueError(f"Non-string keys in log body: {bad!r}")
        return {k: normalize(value[k]) for k in sorted(value)}

    raise ValueError(f"Type {type(value).__name__} has no canonical JSON form")


def canonicalize(obj: Any) -> bytes:
    text = json.dumps(normalize(obj), separators=(",", ":"), ensure_ascii=False, sort_keys=True)
    return text.encode("utf-8")


def canonicalize_str(obj: Any) -> str:
    return canonicalize(obj).decode("utf-8")
