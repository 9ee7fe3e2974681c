"""
Compensating Writes
===================
Undo log for multi-store lifecycle operations.

Usage:
    undo = Compensation()
    async with undo.step("discard_secret", store.put, name, tombstone):
        await store.put(name, value)
    ...
    failed = await undo.unwind()
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Tuple

import structlog
from tenacity import AsyncRetrying, before_sleep_log, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)
retry_logger = logging.getLogger(__name__)

UndoStep = Tuple[str, Callable[..., Awaitable[Any]], Tuple[Any, ...]]


class Compensation:
    """
    Ordered list of undo actions for writes that have taken effect.

    A write registers its undo through ``step``. The undo is kept when the
    write succeeds, or when it is interrupted by cancellation and its effect
    is unknown. A write that fails with an ordinary exception is assumed not
    to have landed and registers nothing.
    """

    def __init__(self, attempts: int = 3):
        self.attempts = attempts
        self._steps: List[UndoStep] = []

    def __len__(self) -> int:
        return len(self._steps)

    @asynccontextmanager
    async def step(
        self,
        action: str,
        undo: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> AsyncIterator[None]:
        entry = (action, undo, args)
        try:
            yield
        except asyncio.CancelledError:
            self._steps.append(entry)
            raise
        self._steps.append(entry)

    async def _attempt(self, undo: Callable[..., Awaitable[Any]], args: Tuple[Any, ...]) -> None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=0.05, max=1),
            before_sleep=before_sleep_log(retry_logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                await undo(*args)

    async def unwind(self) -> List[str]:
        """
        Run every registered undo, newest first.

        Returns:
            Names of the undo actions that still failed after retries
        """
        failed = []
        while self._steps:
            action, undo, args = self._steps.pop()
            try:
                await self._attempt(undo, args)
            except Exception as e:
                logger.error("compensation_failed", action=action, error=str(e))
                failed.append(action)
            else:
                logger.info("compensation_applied", action=action)
        return failed
