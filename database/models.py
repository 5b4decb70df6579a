"""
SQLAlchemy ORM models for the RadioCare chatbot.

Persistent entities: per-user conversations and their turns, benefit
(coverage) accounts with usage history, and clinician alerts.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Float, Boolean, DateTime, Text, ForeignKey, Index,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class Conversation(Base):
    """One record per user; owns the turn sequence and the follow-up marker."""
    __tablename__ = "conversation_records"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(128), unique=True, nullable=False, index=True)
    pending_follow_up = Column(String(40), nullable=False, default="none")
    created_at = Column(DateTime, default=datetime.utcnow)
    last_active_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    turns = relationship(
        "ChatTurn",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ChatTurn.created_at",
    )


class ChatTurn(Base):
    __tablename__ = "conversation_turns"

    id = Column(String(36), primary_key=True, default=_uuid)
    conversation_id = Column(
        String(36), ForeignKey("conversation_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_message = Column(Text, nullable=False)
    bot_message = Column(Text, nullable=False)
    severity = Column(String(10), nullable=False, default="low")  # low, medium, high
    context_key = Column(String(64), nullable=True)
    context_name = Column(String(255), nullable=True)
    processing_time_ms = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    conversation = relationship("Conversation", back_populates="turns")

    __table_args__ = (
        Index("ix_turn_conv_created", "conversation_id", "created_at"),
    )


class CoverageAccount(Base):
    """Benefit account (Ayushman Bharat style coverage) of a user."""
    __tablename__ = "benefit_accounts"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(128), unique=True, nullable=False, index=True)
    has_coverage = Column(Boolean, nullable=True)  # NULL = not asked yet
    card_number = Column(String(64), default="")
    total_coverage = Column(Float, nullable=False, default=500_000)
    amount_used = Column(Float, nullable=False, default=0)
    amount_remaining = Column(Float, nullable=False, default=500_000)
    last_updated = Column(DateTime, default=datetime.utcnow)

    usage = relationship(
        "CoverageUsage",
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="CoverageUsage.date",
    )


class CoverageUsage(Base):
    __tablename__ = "benefit_usage"

    id = Column(String(36), primary_key=True, default=_uuid)
    account_id = Column(
        String(36), ForeignKey("benefit_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = Column(DateTime, default=datetime.utcnow)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False)
    facility = Column(String(255), nullable=True)

    account = relationship("CoverageAccount", back_populates="usage")


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(128), nullable=False, index=True)
    severity = Column(String(10), nullable=False)  # medium, high
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
