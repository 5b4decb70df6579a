"""
Store protocols for the RadioCare chatbot.

Abstracts persistence so the orchestrator can work with either in-memory
dicts or a database backend. Each protocol has an in-memory implementation
here; the SQLAlchemy implementations live in ``llm.db_conversation_store``.
"""

import copy
from typing import Dict, List, Optional, Protocol, runtime_checkable

from .records import (
    AlertRecord,
    BenefitAccount,
    ConversationRecord,
    ConversationTurn,
    FollowUpState,
)


@runtime_checkable
class ConversationStore(Protocol):
    """Protocol for per-user conversation persistence."""

    async def get_record(self, user_id: str, window: Optional[int] = None) -> Optional[ConversationRecord]:
        """
        Get the user's record, or None if the user has never chatted.

        With ``window`` only the most recent turns are loaded.
        """
        ...

    async def append_turn(self, user_id: str, turn: ConversationTurn) -> None:
        """Append a turn, creating the record on first write."""
        ...

    async def set_pending_follow_up(self, user_id: str, state: FollowUpState) -> None:
        """Set the pending follow-up marker, creating the record on first write."""
        ...

    async def get_history(self, user_id: str) -> List[ConversationTurn]:
        """All turns of the user, oldest first."""
        ...


@runtime_checkable
class BenefitAccountStore(Protocol):
    """Protocol for benefit-account persistence."""

    async def get_account(self, user_id: str) -> Optional[BenefitAccount]:
        ...

    async def save_account(self, account: BenefitAccount) -> BenefitAccount:
        """Insert or replace the account (usage history included)."""
        ...

    async def list_accounts(self) -> List[BenefitAccount]:
        ...


@runtime_checkable
class AlertStore(Protocol):
    """Protocol for alert persistence."""

    async def create(self, alert: AlertRecord) -> AlertRecord:
        ...

    async def list_for_user(self, user_id: str) -> List[AlertRecord]:
        """Alerts of the user, newest first."""
        ...


class InMemoryConversationStore:
    """Conversation store backed by a dict (single process)."""

    def __init__(self):
        self._records: Dict[str, ConversationRecord] = {}

    def _upsert(self, user_id: str) -> ConversationRecord:
        record = self._records.get(user_id)
        if record is None:
            record = ConversationRecord(user_id=user_id)
            self._records[user_id] = record
        return record

    async def get_record(self, user_id: str, window: Optional[int] = None) -> Optional[ConversationRecord]:
        record = self._records.get(user_id)
        if record is None:
            return None
        turns = record.turns if window is None else record.recent_turns(window)
        return ConversationRecord(
            user_id=user_id,
            turns=copy.deepcopy(turns),
            pending_follow_up=record.pending_follow_up,
        )

    async def append_turn(self, user_id: str, turn: ConversationTurn) -> None:
        self._upsert(user_id).turns.append(copy.deepcopy(turn))

    async def set_pending_follow_up(self, user_id: str, state: FollowUpState) -> None:
        self._upsert(user_id).pending_follow_up = state

    async def get_history(self, user_id: str) -> List[ConversationTurn]:
        record = self._records.get(user_id)
        return copy.deepcopy(record.turns) if record else []

    def clear(self):
        self._records.clear()


class InMemoryBenefitAccountStore:
    """Benefit-account store backed by a dict."""

    def __init__(self):
        self._accounts: Dict[str, BenefitAccount] = {}

    async def get_account(self, user_id: str) -> Optional[BenefitAccount]:
        account = self._accounts.get(user_id)
        return copy.deepcopy(account) if account else None

    async def save_account(self, account: BenefitAccount) -> BenefitAccount:
        self._accounts[account.user_id] = copy.deepcopy(account)
        return account

    async def list_accounts(self) -> List[BenefitAccount]:
        return [copy.deepcopy(a) for a in self._accounts.values()]


class InMemoryAlertStore:
    """Alert store backed by a list."""

    def __init__(self):
        self._alerts: List[AlertRecord] = []

    async def create(self, alert: AlertRecord) -> AlertRecord:
        self._alerts.append(alert)
        return alert

    async def list_for_user(self, user_id: str) -> List[AlertRecord]:
        alerts = [a for a in self._alerts if a.user_id == user_id]
        return sorted(alerts, key=lambda a: a.created_at, reverse=True)
