"""
Coverage (Ayushman Bharat benefit account) API Routes for the RadioCare chatbot.
"""

import logging
from typing import List, Dict, Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from config.settings import get_settings
from llm.records import UsageEntry
from ..services import get_services

logger = logging.getLogger(__name__)

router = APIRouter()


# Models
class CoverageUpdate(BaseModel):
    """Coverage update request."""
    hasCard: Optional[bool] = None
    cardNumber: Optional[str] = None
    amountUsed: Optional[float] = Field(default=None, ge=0)
    totalCoverageAmount: Optional[float] = Field(default=None, gt=0)


class UsageCreate(BaseModel):
    """Usage entry request."""
    amountUsed: Optional[float] = None
    description: Optional[str] = None
    hospital: Optional[str] = None


def _usage_bucket(percent: float) -> str:
    if percent == 0:
        return "none"
    if percent <= 25:
        return "low"
    if percent <= 50:
        return "medium"
    if percent <= 75:
        return "high"
    return "veryHigh"


def _require_ready():
    services = get_services()
    if not services.is_ready:
        raise HTTPException(status_code=503, detail="Coverage service is not ready")
    return services


# Endpoints (fixed paths before /{user_id})
@router.get("/coverage/stats/all")
async def coverage_stats() -> Dict[str, Any]:
    """Aggregate usage over all users known to hold a card."""
    services = _require_ready()
    accounts = [a for a in await services.benefit_store.list_accounts() if a.has_coverage]

    distribution = {"none": 0, "low": 0, "medium": 0, "high": 0, "veryHigh": 0}
    total_used = 0.0
    total_remaining = 0.0
    for account in accounts:
        total_used += account.amount_used
        total_remaining += account.amount_remaining
        distribution[_usage_bucket(account.percent_used)] += 1

    return {
        "totalUsersWithCard": len(accounts),
        "totalAmountUsed": total_used,
        "totalAmountRemaining": total_remaining,
        "averageUsage": total_used / len(accounts) if accounts else 0,
        "usageDistribution": distribution,
    }


@router.get("/coverage/{user_id}")
async def get_coverage(user_id: str) -> Dict[str, Any]:
    """Get a user's coverage (default view if nothing is recorded yet)."""
    services = _require_ready()
    account = await services.follow_up.get_account(user_id)
    return account.to_dict()


@router.put("/coverage/{user_id}")
async def update_coverage(user_id: str, update: CoverageUpdate) -> Dict[str, Any]:
    """Update card possession, card number, coverage total or amount used."""
    services = _require_ready()
    account = await services.follow_up.get_account(user_id)

    if update.hasCard is not None:
        account.has_coverage = update.hasCard
    if update.cardNumber is not None:
        account.card_number = update.cardNumber
    if update.totalCoverageAmount is not None:
        account.total_coverage = update.totalCoverageAmount
    account.set_amount_used(
        update.amountUsed if update.amountUsed is not None else account.amount_used
    )

    await services.benefit_store.save_account(account)
    logger.info(f"Coverage updated for user {user_id}")
    return {"message": "Coverage information updated", "data": account.to_dict()}


@router.post("/coverage/{user_id}/usage")
async def add_usage(user_id: str, usage: UsageCreate) -> Dict[str, Any]:
    """Record a treatment claim against the user's coverage."""
    if not usage.amountUsed or usage.amountUsed <= 0:
        raise HTTPException(status_code=400, detail={"error": "Valid amount is required"})

    services = _require_ready()
    settings = get_settings()
    account = await services.follow_up.get_account(user_id)
    if account.has_coverage is None:
        account.has_coverage = True

    entry = UsageEntry(
        amount=usage.amountUsed,
        description=usage.description or "Medical treatment",
        facility=usage.hospital or settings.default_facility,
    )
    account.add_usage(entry)
    await services.benefit_store.save_account(account)
    logger.info(f"Usage of {entry.amount:.0f} recorded for user {user_id}")

    return {
        "message": "Usage history updated",
        "data": {
            "newUsage": entry.to_dict(),
            "totalUsed": account.amount_used,
            "remaining": account.amount_remaining,
        },
    }


@router.get("/coverage/{user_id}/usage")
async def get_usage(user_id: str) -> List[Dict[str, Any]]:
    """List a user's recorded claims."""
    services = _require_ready()
    account = await services.benefit_store.get_account(user_id)
    if account is None:
        return []
    return [u.to_dict() for u in account.usage_history]
