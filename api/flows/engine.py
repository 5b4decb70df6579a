"""
Insurance-coverage follow-up flow for the RadioCare chatbot.

A two-step sub-dialogue started when a patient asks about insurance and
we do not yet know whether they hold a coverage card:

    NONE -> AWAITING_CARD_POSSESSION -> AWAITING_USAGE_AMOUNT -> NONE

While a step is pending, the patient's next message is answered here
instead of by the LLM.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from llm.conversation_store import BenefitAccountStore
from llm.records import BenefitAccount, FollowUpState, DEFAULT_TOTAL_COVERAGE

from .definitions import (
    NO_CARD_REPLY,
    UNPARSED_AMOUNT_REPLY,
    card_possession_question,
    format_coverage_summary,
    usage_amount_prompt,
)

logger = logging.getLogger(__name__)

AFFIRMATIVE_MARKERS = ("yes", "have", "got", "possess")
_NONE_RE = re.compile(r"\b(none|nothing|zero|nil|not used|haven't used|have not used)\b")
_NUMBER_RE = re.compile(r"\d[\d,]*")


def is_affirmative(message: str) -> bool:
    """Loose yes/no reading: any affirmative marker counts as yes."""
    text = message.lower()
    return any(marker in text for marker in AFFIRMATIVE_MARKERS)


def parse_usage_amount(message: str, total_coverage: float = DEFAULT_TOTAL_COVERAGE) -> Optional[float]:
    """
    Read the amount of coverage used from a free-text reply.

    The first integer in the text is the amount, or a percentage of
    ``total_coverage`` when the text contains a percent sign. Without a
    number, a whole-word "none", "zero" or "not used" means 0.

    Returns:
        The amount in rupees, or None if no amount could be read
    """
    text = message.lower()
    match = _NUMBER_RE.search(text)
    if not match:
        return 0.0 if _NONE_RE.search(text) else None

    value = int(match.group().replace(",", ""))
    if "%" in text:
        return total_coverage * value / 100
    return float(value)


@dataclass
class FollowUpResult:
    """Reply and next state produced by one follow-up step."""
    reply: str
    next_state: FollowUpState
    account: BenefitAccount


class CoverageFollowUp:
    """
    Runs the coverage questionnaire against the benefit-account store.

    The caller owns the pending-state marker; this class only interprets
    the patient's answer, updates the account and says what comes next.
    """

    def __init__(self, accounts: BenefitAccountStore, default_total_coverage: float = DEFAULT_TOTAL_COVERAGE):
        self.accounts = accounts
        self.default_total_coverage = default_total_coverage

    async def get_account(self, user_id: str) -> BenefitAccount:
        """The user's account, or a fresh default one (not yet saved)."""
        account = await self.accounts.get_account(user_id)
        if account is None:
            account = BenefitAccount(user_id=user_id, total_coverage=self.default_total_coverage)
        return account

    async def should_start(self, user_id: str) -> bool:
        """True when we do not know yet whether the user holds a card."""
        account = await self.get_account(user_id)
        return account.has_coverage is None

    def opening_question(self, account: Optional[BenefitAccount] = None) -> str:
        total = account.total_coverage if account else self.default_total_coverage
        return card_possession_question(total)

    async def handle(self, user_id: str, state: FollowUpState, message: str) -> FollowUpResult:
        """
        Answer the pending step.

        Raises:
            ValueError: if no step is pending
        """
        if state is FollowUpState.AWAITING_CARD_POSSESSION:
            return await self._handle_card_possession(user_id, message)
        if state is FollowUpState.AWAITING_USAGE_AMOUNT:
            return await self._handle_usage_amount(user_id, message)
        raise ValueError(f"No follow-up step pending for user {user_id}")

    async def _handle_card_possession(self, user_id: str, message: str) -> FollowUpResult:
        account = await self.get_account(user_id)
        has_card = is_affirmative(message)
        account.has_coverage = has_card
        account.last_updated = datetime.utcnow()
        await self.accounts.save_account(account)
        logger.info(f"Follow-up for {user_id}: has_coverage={has_card}")

        if has_card:
            return FollowUpResult(
                reply=usage_amount_prompt(account.total_coverage),
                next_state=FollowUpState.AWAITING_USAGE_AMOUNT,
                account=account,
            )
        return FollowUpResult(reply=NO_CARD_REPLY, next_state=FollowUpState.NONE, account=account)

    async def _handle_usage_amount(self, user_id: str, message: str) -> FollowUpResult:
        account = await self.get_account(user_id)
        amount = parse_usage_amount(message, account.total_coverage)

        if amount is None:
            logger.info(f"Follow-up for {user_id}: no amount in reply, leaving account unchanged")
            return FollowUpResult(reply=UNPARSED_AMOUNT_REPLY, next_state=FollowUpState.NONE, account=account)

        account.set_amount_used(amount)
        await self.accounts.save_account(account)
        logger.info(
            f"Follow-up for {user_id}: amount_used={amount:.0f}, remaining={account.amount_remaining:.0f}"
        )
        return FollowUpResult(
            reply=format_coverage_summary(account),
            next_state=FollowUpState.NONE,
            account=account,
        )
