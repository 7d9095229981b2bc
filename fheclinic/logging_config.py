"""
Logging configuration for the FHE clinic simulation.

Simulation events go through AuditLogger, one method per event type, and
are rendered one JSON object per line by StructuredFormatter. Events carry
envelope ids, states and history labels only; raw patient values never
reach the log.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Set once per patient visit, attached to every record
visit_id_var: ContextVar[str] = ContextVar('visit_id', default='')

PLAIN_FORMAT = '%(asctime)s %(levelname)-7s %(name)s | %(message)s'


class StructuredFormatter(logging.Formatter):
    """Renders a record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        visit_id = visit_id_var.get()
        if visit_id:
            payload["visit_id"] = visit_id

        event = getattr(record, "event", None)
        if event:
            payload.update(event)

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class AuditLogger:
    """Typed simulation events on top of a standard logger."""

    def __init__(self, name: str = "fheclinic.audit"):
        self._logger = logging.getLogger(name)

    def _emit(self, level: int, event_type: str, message: str, **fields) -> None:
        if not self._logger.isEnabledFor(level):
            return
        event = {"event_type": event_type, **fields}
        self._logger.log(level, "%s: %s", event_type, message, extra={"event": event})

    def envelope_encrypted(self, envelope_id: str, payload_kind: str) -> None:
        self._emit(
            logging.INFO,
            "ENVELOPE_ENCRYPTED",
            f"{payload_kind} payload sealed in envelope {envelope_id}",
            envelope_id=envelope_id,
            payload_kind=payload_kind,
        )

    def transform_applied(
        self,
        envelope_id: str,
        label: str,
        state: str,
        history_length: int
    ) -> None:
        self._emit(
            logging.INFO,
            "TRANSFORM_APPLIED",
            f"{label} on envelope {envelope_id}",
            envelope_id=envelope_id,
            label=label,
            state=state,
            history_length=history_length,
        )

    def commentary_fallback(self, operation: str, reason: str) -> None:
        """A commentary call gave up and returned its fixed fallback."""
        self._emit(
            logging.WARNING,
            "COMMENTARY_FALLBACK",
            f"{operation} fell back ({reason})",
            operation=operation,
            reason=reason,
        )

    def chain_verification(
        self,
        entries: int,
        valid: bool,
        broken_at: Optional[int] = None
    ) -> None:
        self._emit(
            logging.INFO if valid else logging.ERROR,
            "CHAIN_VERIFICATION",
            f"{entries} entries, {'intact' if valid else f'broken at {broken_at}'}",
            entries=entries,
            valid=valid,
            broken_at=broken_at,
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Install root handlers, replacing any existing ones.

    Output goes to stderr so stdout stays clean for CLI results; log_file
    adds a second handler with the same formatter.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = StructuredFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level.upper(), handlers=handlers, force=True)


def set_visit_id(visit_id: Optional[str] = None) -> str:
    """Tag subsequent records in this context; generates an id if none given."""
    visit_id = visit_id or uuid.uuid4().hex[:12]
    visit_id_var.set(visit_id)
    return visit_id


def get_visit_id() -> str:
    return visit_id_var.get()


audit_log = AuditLogger()
