"""
Repository classes for the RadioCare chatbot data access layer.

Each repository encapsulates the queries for a specific model.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import Conversation, ChatTurn, CoverageAccount, CoverageUsage, Alert

logger = logging.getLogger(__name__)


class ConversationRepository:
    """Data access for per-user conversations and their turns."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user(self, user_id: str) -> Optional[Conversation]:
        result = await self.session.execute(
            select(Conversation).where(Conversation.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str) -> Conversation:
        """
        Return the user's conversation, creating it if missing.

        A concurrent creator surfaces as IntegrityError on flush; the
        caller retries in a fresh session.
        """
        conv = await self.get_by_user(user_id)
        if conv:
            return conv
        conv = Conversation(user_id=user_id)
        self.session.add(conv)
        await self.session.flush()
        return conv

    async def add_turn(
        self,
        user_id: str,
        user_message: str,
        bot_message: str,
        severity: str = "low",
        context_key: Optional[str] = None,
        context_name: Optional[str] = None,
        processing_time_ms: Optional[float] = None,
        created_at: Optional[datetime] = None,
    ) -> ChatTurn:
        conv = await self.get_or_create(user_id)
        turn = ChatTurn(
            conversation_id=conv.id,
            user_message=user_message,
            bot_message=bot_message,
            severity=severity,
            context_key=context_key,
            context_name=context_name,
            processing_time_ms=processing_time_ms,
            created_at=created_at or datetime.utcnow(),
        )
        self.session.add(turn)
        await self.session.execute(
            update(Conversation)
            .where(Conversation.id == conv.id)
            .values(last_active_at=datetime.utcnow())
        )
        await self.session.flush()
        return turn

    async def set_pending_follow_up(self, user_id: str, state: str) -> Conversation:
        conv = await self.get_or_create(user_id)
        conv.pending_follow_up = state
        await self.session.flush()
        return conv

    async def get_turns(self, user_id: str, limit: Optional[int] = None) -> List[ChatTurn]:
        """Turns of the user, oldest first (``limit`` keeps the most recent)."""
        q = (
            select(ChatTurn)
            .join(Conversation, ChatTurn.conversation_id == Conversation.id)
            .where(Conversation.user_id == user_id)
        )
        if limit:
            q = q.order_by(ChatTurn.created_at.desc()).limit(limit)
            result = await self.session.execute(q)
            return list(reversed(result.scalars().all()))

        result = await self.session.execute(q.order_by(ChatTurn.created_at.asc()))
        return list(result.scalars().all())


class CoverageRepository:
    """Data access for benefit accounts and usage history."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user(self, user_id: str) -> Optional[CoverageAccount]:
        result = await self.session.execute(
            select(CoverageAccount)
            .options(selectinload(CoverageAccount.usage))
            .where(CoverageAccount.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str, total_coverage: float) -> CoverageAccount:
        account = await self.get_by_user(user_id)
        if account:
            return account
        account = CoverageAccount(
            user_id=user_id,
            total_coverage=total_coverage,
            amount_used=0,
            amount_remaining=total_coverage,
            usage=[],
        )
        self.session.add(account)
        await self.session.flush()
        return account

    async def add_usage(
        self,
        account: CoverageAccount,
        amount: float,
        description: Optional[str],
        facility: Optional[str],
        date: Optional[datetime] = None,
    ) -> CoverageUsage:
        usage = CoverageUsage(
            account_id=account.id,
            amount=amount,
            description=description,
            facility=facility,
            date=date or datetime.utcnow(),
        )
        account.usage.append(usage)
        await self.session.flush()
        return usage

    async def list_all(self) -> List[CoverageAccount]:
        result = await self.session.execute(
            select(CoverageAccount).options(selectinload(CoverageAccount.usage))
        )
        return list(result.scalars().all())


class AlertRepository:
    """Data access for clinician alerts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Alert:
        alert = Alert(**kwargs)
        self.session.add(alert)
        await self.session.flush()
        return alert

    async def list_for_user(self, user_id: str, limit: int = 100) -> List[Alert]:
        result = await self.session.execute(
            select(Alert)
            .where(Alert.user_id == user_id)
            .order_by(Alert.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
