"""
Text-completion gateway for the RadioCare chatbot.

Wraps an LLM provider with a per-call timeout and bounded retries with
exponential backoff. Two budgets are used: a short one for context
selection and a longer one for reply generation.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class OracleError(Exception):
    """The text-completion call failed."""


class OracleTimeoutError(OracleError):
    """The text-completion call exceeded its time budget."""


class OracleUnavailableError(OracleError):
    """No LLM provider is configured."""


@dataclass(frozen=True)
class CallBudget:
    """Timeout, retry and sampling limits for one kind of call."""
    label: str
    timeout_seconds: float
    retries: int = 0
    max_tokens: int = 1024
    temperature: float = 0.5

    @property
    def attempts(self) -> int:
        return self.retries + 1


class OracleClient:
    """
    Bounded access to the text-completion provider.

    The provider only needs an ``agenerate(prompt, system, max_tokens,
    temperature)`` coroutine; see ``llm.providers``.
    """

    def __init__(
        self,
        provider: Optional[Any],
        selection_budget: CallBudget,
        generation_budget: CallBudget,
        base_delay: float = 1.0,
        max_delay: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if selection_budget.timeout_seconds >= generation_budget.timeout_seconds:
            raise ValueError("selection budget must be shorter than generation budget")

        self._provider = provider
        self.selection_budget = selection_budget
        self.generation_budget = generation_budget
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    @property
    def is_available(self) -> bool:
        return self._provider is not None

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    async def generate(
        self,
        prompt: str,
        budget: CallBudget,
        system: Optional[str] = None,
    ) -> str:
        """
        Run one completion within the given budget.

        Raises:
            OracleUnavailableError: no provider configured
            OracleTimeoutError: the final attempt timed out
            OracleError: the final attempt failed for another reason
        """
        if self._provider is None:
            raise OracleUnavailableError("LLM provider is not configured")

        last_error: Optional[OracleError] = None
        for attempt in range(1, budget.attempts + 1):
            start = time.time()
            try:
                text = await asyncio.wait_for(
                    self._provider.agenerate(
                        prompt,
                        system=system,
                        max_tokens=budget.max_tokens,
                        temperature=budget.temperature,
                    ),
                    timeout=budget.timeout_seconds,
                )
                logger.debug(f"{budget.label} call finished in {(time.time() - start) * 1000:.0f}ms")
                return text or ""
            except asyncio.TimeoutError:
                last_error = OracleTimeoutError(
                    f"{budget.label} call timed out after {budget.timeout_seconds}s"
                )
            except Exception as e:
                last_error = OracleError(f"{budget.label} call failed: {e}")

            if attempt < budget.attempts:
                delay = self.backoff_delay(attempt)
                logger.warning(
                    f"{budget.label} attempt {attempt} failed ({last_error}), retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        logger.error(f"{budget.label} call failed after {budget.attempts} attempts: {last_error}")
        raise last_error

    async def select(self, prompt: str) -> str:
        """Context-selection call (short budget)."""
        return await self.generate(prompt, self.selection_budget)

    async def respond(self, prompt: str, system: Optional[str] = None) -> str:
        """Reply-generation call (long budget)."""
        return await self.generate(prompt, self.generation_budget, system=system)
