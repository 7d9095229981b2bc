"""
Protocol Log

The append-only hospital audit log. It owns everything the simulation
does not: each LogEntry's id, timestamp and integrity hash.

GUARANTEES:
- Entries are never modified or removed once appended
- Each hash chains to the previous entry (tamper-evident)
- Readers get copies of the entry list, never the list itself
"""

import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence

from .audit import AuditRecord, LogEntry
from .hashing import log_entry_hash, verify_entry_hash
from .logging_config import audit_log
from .participants import AgentRole
from .sources import ClockSource, IdentitySource, SystemClock, UuidIdentity


def iso_timestamp(clock: ClockSource) -> str:
    """UTC timestamp with millisecond precision, e.g. 2026-01-01T12:00:00.000Z"""
    now = clock.now()
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class ChainVerification:
    """Outcome of re-computing a log's hash chain."""
    valid: bool
    entries: int
    broken_at: Optional[int] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {"valid": self.valid, "entries": self.entries}
        if self.broken_at is not None:
            d["broken_at"] = self.broken_at
        if self.reason:
            d["reason"] = self.reason
        return d


def verify_log_chain(entries: Sequence[LogEntry]) -> ChainVerification:
    """
    Recompute every entry hash in order.

    Stops at the first entry whose declared hash is missing or does not
    match its body chained to the previous declared hash.
    """
    prev_hash = None
    for index, entry in enumerate(entries):
        if entry.hash is None:
            result = ChainVerification(False, len(entries), index, "MISSING_HASH")
            break
        if not verify_entry_hash(entry.hash, entry.body(), prev_hash):
            result = ChainVerification(False, len(entries), index, "HASH_MISMATCH")
            break
        prev_hash = entry.hash
    else:
        result = ChainVerification(True, len(entries))

    audit_log.chain_verification(result.entries, result.valid, result.broken_at)
    return result


class ProtocolLog:
    """
    In-memory, hash-chained protocol log.

    Not persistent. Export with to_list() and check offline with
    verify_log_chain().
    """

    def __init__(
        self,
        clock: Optional[ClockSource] = None,
        identity: Optional[IdentitySource] = None
    ):
        self._clock = clock or SystemClock()
        self._identity = identity or UuidIdentity()
        self._entries: List[LogEntry] = []
        self._lock = threading.Lock()

    def append(
        self,
        source: AgentRole,
        action: str,
        details: str,
        record: Optional[AuditRecord] = None
    ) -> LogEntry:
        """
        Append an entry; formula, steps and metrics are taken from record.
        """
        with self._lock:
            prev_hash = self._entries[-1].hash if self._entries else None
            unsigned = LogEntry(
                id=self._identity.new_id(),
                timestamp=iso_timestamp(self._clock),
                source=AgentRole(source),
                action=action,
                details=details,
                formula=record.formula if record else None,
                steps=record.steps if record else None,
                metrics=dict(record.metrics) if record else None,
            )
            entry = replace(unsigned, hash=log_entry_hash(unsigned.body(), prev_hash))
            self._entries.append(entry)
            return entry

    def record_operation(
        self,
        source: AgentRole,
        action: str,
        record: AuditRecord
    ) -> LogEntry:
        """Append the entry for a simulation operation (details = narrative)."""
        return self.append(source, action, record.narrative, record)

    def entries(self) -> List[LogEntry]:
        with self._lock:
            return self._entries[:]

    def recent(self, count: int) -> List[LogEntry]:
        """The last `count` entries, oldest first."""
        if count <= 0:
            return []
        with self._lock:
            return self._entries[-count:]

    def verify(self) -> ChainVerification:
        return verify_log_chain(self.entries())

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
