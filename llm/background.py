"""
Fire-and-forget side effects for the RadioCare chatbot.

Alert creation and turn persistence run as detached tasks so the patient
gets a reply without waiting on them. Failures are logged, never raised
into the request that spawned them.
"""

import asyncio
import logging
from typing import Coroutine, Any, Set

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Spawns detached tasks and keeps them alive until they finish."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.failures = 0

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Schedule ``coro`` on the running loop and return its task."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.error(
                f"Background task {task.get_name()} failed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """Wait for every outstanding task (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
