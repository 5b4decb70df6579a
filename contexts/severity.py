"""
Reply severity classification.

Scans generated replies for urgency wording. High-severity wording wins over
medium-severity wording.
"""

from enum import Enum
from typing import Tuple


class Severity(Enum):
    """Coarse urgency of a generated reply."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def needs_alert(self) -> bool:
        return self in (Severity.MEDIUM, Severity.HIGH)


HIGH_SEVERITY_KEYWORDS: Tuple[str, ...] = (
    "emergency",
    "immediate medical attention",
    "urgent",
    "severe",
    "call 911",
    "call 112",
    "life-threatening",
)

MEDIUM_SEVERITY_KEYWORDS: Tuple[str, ...] = (
    "consult",
    "should see a doctor",
    "medical attention",
    "concerning",
)


def classify_severity(reply: str) -> Severity:
    """Classify a generated reply as low, medium or high severity."""
    text = (reply or "").lower()
    if any(keyword in text for keyword in HIGH_SEVERITY_KEYWORDS):
        return Severity.HIGH
    if any(keyword in text for keyword in MEDIUM_SEVERITY_KEYWORDS):
        return Severity.MEDIUM
    return Severity.LOW
