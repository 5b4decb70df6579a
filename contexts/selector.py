"""
Context selection for the RadioCare chatbot.

Picks the response context for a patient message. The primary path asks
the LLM to name a context key under a short time budget; whenever that
fails (timeout, error, unknown key, no provider) a deterministic keyword
scorer over the same catalog keywords takes over.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from llm.oracle import OracleClient, OracleError, OracleTimeoutError
from llm.prompt_templates import PromptTemplates

from .catalog import (
    DEFAULT_CONTEXT_KEY,
    INSURANCE_CONTEXT_KEY,
    CatalogSnapshot,
    ContextCatalog,
)

logger = logging.getLogger(__name__)

KeywordTable = Iterable[Tuple[str, Sequence[str]]]


def fallback_context_selection(
    message: str,
    keyword_table: KeywordTable,
    default: str = DEFAULT_CONTEXT_KEY,
) -> str:
    """
    Pick a context by counting keyword hits in the message.

    The context with the strictly greatest number of substring hits wins;
    ties keep the earliest context in ``keyword_table`` order. No hits at
    all yields ``default``.

    Args:
        message: Patient message
        keyword_table: (context key, keywords) pairs in declaration order
        default: Context returned when nothing matches

    Returns:
        Selected context key
    """
    text = message.lower()
    best_key = default
    best_score = 0

    for key, keywords in keyword_table:
        score = sum(1 for keyword in keywords if keyword.lower() in text)
        if score > best_score:
            best_key = key
            best_score = score

    return best_key


def is_insurance_related(context_key: str) -> bool:
    """True if the selected context concerns insurance coverage."""
    return context_key == INSURANCE_CONTEXT_KEY


@dataclass
class ContextSelection:
    """Outcome of context selection."""
    key: str
    source: str  # oracle | fallback
    reason: Optional[str] = None


class ContextSelector:
    """
    Selects the response context for each fresh turn.

    Both paths read the same catalog snapshot, so the LLM path and the
    keyword fallback always agree on the set of valid keys.
    """

    def __init__(self, catalog: ContextCatalog, oracle: Optional[OracleClient] = None):
        self.catalog = catalog
        self.oracle = oracle

    async def select_context(self, message: str, history: str = "") -> str:
        """Return the context key for a message."""
        selection = await self.select(message, history)
        return selection.key

    async def select(
        self,
        message: str,
        history: str = "",
        snapshot: Optional[CatalogSnapshot] = None,
    ) -> ContextSelection:
        """
        Select a context, recording which path produced it.

        Never raises for LLM failures.
        """
        snap = snapshot or self.catalog.snapshot

        if self.oracle is None or not self.oracle.is_available:
            reason = "llm unavailable"
        else:
            prompt = PromptTemplates.build_selection_prompt(snap.contexts, message, history)
            try:
                raw = await self.oracle.select(prompt)
                key = (raw or "").strip()
                if key in snap.contexts:
                    logger.info(f"Context selected by LLM: {key}")
                    return ContextSelection(key=key, source="oracle")
                reason = f"invalid key {key[:40]!r}"
            except OracleTimeoutError:
                reason = "timeout"
            except OracleError as e:
                reason = f"error: {e}"

        key = fallback_context_selection(message, snap.keyword_table())
        logger.info(f"Context selected by keyword fallback: {key} ({reason})")
        return ContextSelection(key=key, source="fallback", reason=reason)
