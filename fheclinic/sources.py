"""
Ambient Sources

Injectable randomness, wall-clock and identity sources.

The simulation never reaches for the random module, the system clock or
uuid directly. Every draw goes through one of these seams so that a test
or a replayed demo can supply fixed sequences and assert exact outputs.

Two flavours of each source:
- System*: live process-wide behaviour (the default)
- Seeded/Sequence/Fixed: reproducible behaviour for tests and replays

A replay source that runs out raises SourceExhausted. That failure is fatal
to the calling operation; nothing retries it.
"""

import random
import string
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, List, Optional


_BASE36 = string.digits + string.ascii_lowercase


class SourceExhausted(Exception):
    """Raised when a replay source runs out of recorded values."""
    pass


# ============================================================
# Randomness
# ============================================================

class RandomnessSource(ABC):
    """Uniform pseudo-random floats in [0, 1)."""

    @abstractmethod
    def random(self) -> float:
        """Next uniform float in [0, 1)."""
        pass

    def uniform_int(self, upper: int) -> int:
        """Uniform integer in [0, upper)."""
        return int(self.random() * upper)

    def token(self, length: int = 5) -> str:
        """Lowercase base-36 token of the given length."""
        return "".join(_BASE36[self.uniform_int(36)] for _ in range(length))


class SystemRandomness(RandomnessSource):
    """
    Backed by a private random.Random instance.

    Pass a seed for a reproducible stream (see SeededRandomness).
    """

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def random(self) -> float:
        return self._rng.random()


class SeededRandomness(SystemRandomness):
    """Reproducible stream from an integer seed."""

    def __init__(self, seed: int):
        super().__init__(seed)
        self.seed = seed


class SequenceRandomness(RandomnessSource):
    """Replays a recorded list of floats in order."""

    def __init__(self, values: Iterable[float]):
        self._values: List[float] = list(values)
        for v in self._values:
            if not 0.0 <= v < 1.0:
                raise ValueError(f"Recorded random value out of range [0, 1): {v}")
        self._index = 0

    def random(self) -> float:
        if self._index >= len(self._values):
            raise SourceExhausted(
                f"Randomness sequence exhausted after {len(self._values)} draws"
            )
        value = self._values[self._index]
        self._index += 1
        return value

    def draws(self) -> int:
        """Number of values consumed so far."""
        return self._index


# ============================================================
# Wall clock
# ============================================================

class ClockSource(ABC):
    """Wall-clock reader with millisecond resolution."""

    @abstractmethod
    def now_ms(self) -> int:
        """Milliseconds since the Unix epoch."""
        pass

    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.now_ms() / 1000.0, tz=timezone.utc)


class SystemClock(ClockSource):
    """Reads the system clock."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class FixedClock(ClockSource):
    """
    Clock that starts at a fixed instant.

    With step_ms > 0 each read advances the clock, which keeps log
    timestamps ordered in replays.
    """

    def __init__(self, start_ms: int, step_ms: int = 0):
        self._current = start_ms
        self._step = step_ms

    def now_ms(self) -> int:
        value = self._current
        self._current += self._step
        return value


# ============================================================
# Identity
# ============================================================

class IdentitySource(ABC):
    """Generator of opaque unique identifiers."""

    @abstractmethod
    def new_id(self) -> str:
        pass


class UuidIdentity(IdentitySource):
    """Random UUID4 strings."""

    def new_id(self) -> str:
        return str(uuid.uuid4())


class SequenceIdentity(IdentitySource):
    """
    Predictable identifiers: "<prefix>-0001", "<prefix>-0002", ...

    If explicit ids are given they are handed out in order instead, and
    running out raises SourceExhausted.
    """

    def __init__(self, prefix: str = "id", ids: Optional[Iterable[str]] = None):
        self._prefix = prefix
        self._ids = list(ids) if ids is not None else None
        self._counter = 0

    def new_id(self) -> str:
        if self._ids is not None:
            if self._counter >= len(self._ids):
                raise SourceExhausted(
                    f"Identity sequence exhausted after {len(self._ids)} ids"
                )
            value = self._ids[self._counter]
            self._counter += 1
            return value
        self._counter += 1
        return f"{self._prefix}-{self._counter:04d}"
