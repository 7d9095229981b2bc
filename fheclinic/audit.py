"""
Audit Records

AuditRecord is what every simulation operation returns: the resulting
Envelope plus the material the audit log displays (prose, a display
formula, an ordered step trace and metric tags).

LogEntry is the shape exchanged with the protocol log. The simulation
supplies formula, steps and metrics; id, timestamp and hash are assigned by
the log itself.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .envelope import Envelope
from .participants import AgentRole


def format_number(value: Any) -> str:
    """Render numbers the way the step traces show them (40, not 40.0)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class AuditRecord:
    """Result of one simulation operation."""
    target: Envelope
    narrative: str
    formula: str
    steps: Tuple[str, ...] = ()
    metrics: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.target.to_dict(),
            "logDetails": self.narrative,
            "mathFormula": self.formula,
            "stepByStepCalculation": list(self.steps),
            "metrics": dict(self.metrics),
        }


def build_audit_record(
    target: Envelope,
    narrative: str,
    formula: str,
    steps: Iterable[str],
    metrics: Mapping[str, str]
) -> AuditRecord:
    """Bundle an operation's output; steps and metrics are copied."""
    return AuditRecord(
        target=target,
        narrative=narrative,
        formula=formula,
        steps=tuple(steps),
        metrics=dict(metrics),
    )


@dataclass(frozen=True)
class LogEntry:
    """
    One line of the protocol log.

    formula, steps and metrics come from an AuditRecord when the entry
    records a simulation operation; plain status entries leave them unset.
    """
    id: str
    timestamp: str
    source: AgentRole
    action: str
    details: str
    formula: Optional[str] = None
    steps: Optional[Tuple[str, ...]] = None
    metrics: Optional[Dict[str, str]] = None
    hash: Optional[str] = None

    def body(self) -> Dict[str, Any]:
        """Every field except the hash, in the exported shape."""
        d = {
            "id": self.id,
            "timestamp": self.timestamp,
            "source": self.source.value,
            "action": self.action,
            "details": self.details,
        }
        if self.formula is not None:
            d["mathFormula"] = self.formula
        if self.steps is not None:
            d["stepByStepCalculation"] = list(self.steps)
        if self.metrics is not None:
            d["metrics"] = dict(self.metrics)
        return d

    def to_dict(self) -> Dict[str, Any]:
        d = self.body()
        if self.hash is not None:
            d["hash"] = self.hash
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        required = ["id", "timestamp", "source", "action", "details"]
        missing = [f for f in required if f not in data]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")

        steps = data.get("stepByStepCalculation")
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            source=AgentRole(data["source"]),
            action=data["action"],
            details=data["details"],
            formula=data.get("mathFormula"),
            steps=tuple(steps) if steps is not None else None,
            metrics=data.get("metrics"),
            hash=data.get("hash"),
        )
