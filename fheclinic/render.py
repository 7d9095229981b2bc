"""
Plain-text rendering of protocol log entries and envelopes for terminals.

Rendering only reads records; it never changes them.
"""

from typing import Iterable, List

from .audit import LogEntry
from .envelope import Envelope
from .participants import urgency_rating
from .payloads import Scalar, VitalsRecord


RULE = "-" * 72


def render_log_entry(entry: LogEntry) -> str:
    """
    One entry: time, agent, action, details, then the optional formula,
    numbered steps, metrics and hash.
    """
    time_part = entry.timestamp.split("T")[1][:8] if "T" in entry.timestamp else entry.timestamp
    lines = [
        f"[{time_part}] {entry.source.display_name}  <{entry.action}>",
        f"    {entry.details}",
    ]

    if entry.formula:
        lines.append("    CRYPTOGRAPHIC PRIMITIVE")
        lines.append(f"      {entry.formula}")

    if entry.steps:
        lines.append("    STEP-BY-STEP VERIFICATION")
        for idx, step in enumerate(entry.steps, start=1):
            lines.append(f"      {idx:02d}  {step}")

    if entry.metrics:
        tags = [f"{key.replace('_', ' ').upper()}: {val}" for key, val in entry.metrics.items()]
        lines.append("    " + " | ".join(tags))

    if entry.hash:
        lines.append(f"    hash: {entry.hash}")

    return "\n".join(lines)


def render_log(entries: Iterable[LogEntry]) -> str:
    rendered = [render_log_entry(e) for e in entries]
    if not rendered:
        return "Waiting for patient admission..."
    return f"\n{RULE}\n".join(rendered)


def render_envelope(envelope: Envelope) -> str:
    """State, ciphertext, value summary and history of one envelope."""
    lines: List[str] = [
        f"Envelope {envelope.id} [{envelope.state.value}]",
        f"  ciphertext: {envelope.encrypted_blob}",
    ]

    payload = envelope.raw_value
    if isinstance(payload, VitalsRecord):
        lines.append(
            f"  vitals: HR {payload.heart_rate} BPM, BP {payload.systolic}/{payload.diastolic}, "
            f"Temp {payload.temperature}°C, SpO2 {payload.oxygen_sat}%, "
            f"Severity {payload.symptom_severity}"
        )
    elif isinstance(payload, Scalar):
        rating = urgency_rating(payload.value)
        lines.append(f"  score: {payload.value} ({rating.label}, {rating.description})")
    else:
        fields = ", ".join(f"{k}={v}" for k, v in payload.to_dict().items())
        lines.append(f"  profile: {fields}")

    lines.append("  history: " + " -> ".join(envelope.history))
    return "\n".join(lines)
