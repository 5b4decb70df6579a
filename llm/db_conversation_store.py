"""
Database-backed stores for the RadioCare chatbot.

Implements the store protocols using the repository layer. Every method
opens its own session, so writes spawned in the background do not depend
on the request that triggered them.
"""

import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import Alert, ChatTurn, CoverageAccount
from database.repositories import AlertRepository, ConversationRepository, CoverageRepository
from database.session import session_scope

from .records import (
    AlertRecord,
    BenefitAccount,
    ConversationRecord,
    ConversationTurn,
    FollowUpState,
    UsageEntry,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _turn_from_row(row: ChatTurn) -> ConversationTurn:
    return ConversationTurn(
        user_message=row.user_message,
        bot_message=row.bot_message,
        severity=row.severity,
        timestamp=row.created_at,
        context_key=row.context_key,
        context_name=row.context_name,
        processing_time_ms=row.processing_time_ms,
    )


def _account_from_row(row: CoverageAccount) -> BenefitAccount:
    return BenefitAccount(
        user_id=row.user_id,
        has_coverage=row.has_coverage,
        card_number=row.card_number or "",
        total_coverage=row.total_coverage,
        amount_used=row.amount_used,
        last_updated=row.last_updated,
        usage_history=[
            UsageEntry(
                amount=u.amount,
                description=u.description or "",
                facility=u.facility or "",
                date=u.date,
            )
            for u in row.usage
        ],
    )


def _alert_from_row(row: Alert) -> AlertRecord:
    return AlertRecord(
        id=row.id,
        user_id=row.user_id,
        severity=row.severity,
        message=row.message,
        created_at=row.created_at,
    )


async def _with_first_write_retry(
    factory: async_sessionmaker[AsyncSession],
    operation: Callable[[AsyncSession], Awaitable[T]],
    user_id: str,
) -> T:
    """
    Run a write that may create the user's row.

    Two first writes for the same user race on the unique ``user_id``; the
    loser gets IntegrityError and retries once against the winner's row.
    """
    try:
        async with session_scope(factory) as session:
            return await operation(session)
    except IntegrityError:
        logger.warning(f"Concurrent first write for user {user_id}, retrying")
        async with session_scope(factory) as session:
            return await operation(session)


class DbConversationStore:
    """Persistent conversation store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    async def get_record(self, user_id: str, window: Optional[int] = None) -> Optional[ConversationRecord]:
        async with session_scope(self._factory) as session:
            repo = ConversationRepository(session)
            conv = await repo.get_by_user(user_id)
            if not conv:
                return None
            if window is not None and window <= 0:
                turns = []
            else:
                turns = await repo.get_turns(user_id, limit=window)
            return ConversationRecord(
                user_id=user_id,
                turns=[_turn_from_row(t) for t in turns],
                pending_follow_up=FollowUpState(conv.pending_follow_up),
            )

    async def append_turn(self, user_id: str, turn: ConversationTurn) -> None:
        async def _op(session: AsyncSession):
            await ConversationRepository(session).add_turn(
                user_id=user_id,
                user_message=turn.user_message,
                bot_message=turn.bot_message,
                severity=turn.severity,
                context_key=turn.context_key,
                context_name=turn.context_name,
                processing_time_ms=turn.processing_time_ms,
                created_at=turn.timestamp,
            )

        await _with_first_write_retry(self._factory, _op, user_id)

    async def set_pending_follow_up(self, user_id: str, state: FollowUpState) -> None:
        async def _op(session: AsyncSession):
            await ConversationRepository(session).set_pending_follow_up(user_id, state.value)

        await _with_first_write_retry(self._factory, _op, user_id)

    async def get_history(self, user_id: str) -> List[ConversationTurn]:
        async with session_scope(self._factory) as session:
            turns = await ConversationRepository(session).get_turns(user_id)
            return [_turn_from_row(t) for t in turns]


class DbBenefitAccountStore:
    """Persistent benefit-account store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    async def get_account(self, user_id: str) -> Optional[BenefitAccount]:
        async with session_scope(self._factory) as session:
            row = await CoverageRepository(session).get_by_user(user_id)
            return _account_from_row(row) if row else None

    async def save_account(self, account: BenefitAccount) -> BenefitAccount:
        async def _op(session: AsyncSession) -> BenefitAccount:
            repo = CoverageRepository(session)
            row = await repo.get_or_create(account.user_id, account.total_coverage)
            row.has_coverage = account.has_coverage
            row.card_number = account.card_number
            row.total_coverage = account.total_coverage
            row.amount_used = account.amount_used
            row.amount_remaining = account.amount_remaining
            row.last_updated = account.last_updated

            # usage history is append-only
            for entry in account.usage_history[len(row.usage):]:
                await repo.add_usage(row, entry.amount, entry.description, entry.facility, entry.date)
            return account

        return await _with_first_write_retry(self._factory, _op, account.user_id)

    async def list_accounts(self) -> List[BenefitAccount]:
        async with session_scope(self._factory) as session:
            rows = await CoverageRepository(session).list_all()
            return [_account_from_row(r) for r in rows]


class DbAlertStore:
    """Persistent alert store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    async def create(self, alert: AlertRecord) -> AlertRecord:
        async with session_scope(self._factory) as session:
            await AlertRepository(session).create(
                id=alert.id,
                user_id=alert.user_id,
                severity=alert.severity,
                message=alert.message,
                created_at=alert.created_at,
            )
        return alert

    async def list_for_user(self, user_id: str) -> List[AlertRecord]:
        async with session_scope(self._factory) as session:
            rows = await AlertRepository(session).list_for_user(user_id)
            return [_alert_from_row(r) for r in rows]
