"""
Participants in the simulated hospital workflow and the urgency scale used
to read their scalar results.
"""

from dataclasses import dataclass
from enum import Enum

from .payloads import Number


class AgentRole(str, Enum):
    """Named stages of a patient visit."""
    PATIENT = "PATIENT"
    GENERAL_DOCTOR = "GENERAL_DOCTOR"
    SPECIALIST = "SPECIALIST"
    MEDICAL_LAB = "MEDICAL_LAB"
    BILLING = "BILLING"
    HUMAN_DOCTOR = "HUMAN_DOCTOR"
    AUDITOR = "AUDITOR"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    AgentRole.PATIENT: "PATIENT (A)",
    AgentRole.GENERAL_DOCTOR: "GEN. DOCTOR (B)",
    AgentRole.SPECIALIST: "SPECIALIST (C)",
    AgentRole.MEDICAL_LAB: "MEDICAL LAB (D)",
    AgentRole.BILLING: "BILLING (E)",
    AgentRole.HUMAN_DOCTOR: "HUMAN DOCTOR",
    AgentRole.AUDITOR: "VERIFICATION ORACLE",
}


@dataclass(frozen=True)
class UrgencyRating:
    label: str
    description: str


LOW_PRIORITY = UrgencyRating("LOW PRIORITY", "Routine")
MODERATE = UrgencyRating("MODERATE", "Monitor")
HIGH_PRIORITY = UrgencyRating("HIGH PRIORITY", "Urgent")
CRITICAL = UrgencyRating("CRITICAL", "Immediate")


def urgency_rating(score: Number) -> UrgencyRating:
    """Bucket a 0-100 score: <30 low, <60 moderate, <85 high, else critical."""
    if score < 30:
        return LOW_PRIORITY
    if score < 60:
        return MODERATE
    if score < 85:
        return HIGH_PRIORITY
    return CRITICAL
