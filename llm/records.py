"""
Domain records for the RadioCare chatbot.

Plain dataclasses shared by the orchestrator, the follow-up flow and the
stores. Storage backends convert to and from these.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_TOTAL_COVERAGE = 500_000.0


class FollowUpState(Enum):
    """Pending step of the insurance-coverage follow-up."""
    NONE = "none"
    AWAITING_CARD_POSSESSION = "awaiting_card_possession"
    AWAITING_USAGE_AMOUNT = "awaiting_usage_amount"

    @property
    def is_pending(self) -> bool:
        return self is not FollowUpState.NONE


@dataclass
class ConversationTurn:
    """One patient message and the reply it received."""
    user_message: str
    bot_message: str
    severity: str = "low"
    timestamp: datetime = field(default_factory=datetime.utcnow)
    context_key: Optional[str] = None
    context_name: Optional[str] = None
    processing_time_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user_message,
            "bot": self.bot_message,
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity,
            "contextUsed": self.context_key,
            "contextName": self.context_name,
            "processingTime": self.processing_time_ms,
        }


@dataclass
class ConversationRecord:
    """All turns of one user plus the pending follow-up marker."""
    user_id: str
    turns: List[ConversationTurn] = field(default_factory=list)
    pending_follow_up: FollowUpState = FollowUpState.NONE

    def recent_turns(self, limit: int) -> List[ConversationTurn]:
        if limit <= 0:
            return []
        return self.turns[-limit:]


@dataclass
class UsageEntry:
    """A single claim against the benefit account."""
    amount: float
    description: str = "Medical treatment"
    facility: str = ""
    date: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "amountUsed": self.amount,
            "hospital": self.facility,
        }


@dataclass
class BenefitAccount:
    """
    Insurance-style coverage of one user.

    ``has_coverage`` is tri-state: None means the patient has not told us yet.
    The remaining amount is derived and never negative.
    """
    user_id: str
    has_coverage: Optional[bool] = None
    card_number: str = ""
    total_coverage: float = DEFAULT_TOTAL_COVERAGE
    amount_used: float = 0.0
    last_updated: datetime = field(default_factory=datetime.utcnow)
    usage_history: List[UsageEntry] = field(default_factory=list)

    @property
    def amount_remaining(self) -> float:
        return max(self.total_coverage - self.amount_used, 0.0)

    @property
    def percent_used(self) -> float:
        if self.total_coverage <= 0:
            return 0.0
        return self.amount_used / self.total_coverage * 100

    def set_amount_used(self, amount: float):
        self.amount_used = amount
        self.last_updated = datetime.utcnow()

    def add_usage(self, entry: UsageEntry):
        self.usage_history.append(entry)
        self.set_amount_used(self.amount_used + entry.amount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasCard": self.has_coverage,
            "cardNumber": self.card_number,
            "totalCoverageAmount": self.total_coverage,
            "amountUsed": self.amount_used,
            "amountRemaining": self.amount_remaining,
            "lastUpdated": self.last_updated.isoformat(),
            "usageHistory": [u.to_dict() for u in self.usage_history],
        }


@dataclass
class AlertRecord:
    """A medium or high severity reply flagged for clinicians."""
    user_id: str
    severity: str
    message: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "severity": self.severity,
            "message": self.message,
            "date": self.created_at.isoformat(),
        }
