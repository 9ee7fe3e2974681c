"""
Expiration Sweeper
==================
Background task moving ACTIVE credentials past their expiry to EXPIRED.

Usage:
    sweeper = ExpirationSweeper(manager)
    await sweeper.start()
    ...
    await sweeper.stop()
"""

import asyncio
from typing import Optional

import structlog

from .lifecycle.manager import CredentialManager
from .logging_setup import mask_credential_id
from .metrics import SWEEPER_EXPIRED, SWEEPER_FAILURES

logger = structlog.get_logger(__name__)


class ExpirationSweeper:
    """
    Periodically expires credentials.

    A failing row or a failing tick is logged and the loop carries on.
    stop() lets the batch in progress finish before returning.
    """

    def __init__(
        self,
        manager: CredentialManager,
        interval_seconds: Optional[float] = None,
    ):
        self.manager = manager
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else manager.settings.sweep_interval_seconds
        )
        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info("expiration_sweeper_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        if self._task:
            try:
                await self._task
            finally:
                self._task = None
                self._stop = None
                logger.info("expiration_sweeper_stopped")

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.shield(self.run_once())
            except Exception as e:
                SWEEPER_FAILURES.inc()
                logger.error("expiration_sweep_failed", error=str(e))
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    async def run_once(self) -> int:
        """
        Run a single sweep.

        Returns:
            Number of credentials moved to EXPIRED
        """
        now = self.manager.now()
        candidates = await self.manager.repository.find_expired(now)
        expired = 0
        for credential in candidates:
            try:
                if await self.manager.expire(credential.id):
                    expired += 1
            except Exception as e:
                SWEEPER_FAILURES.inc()
                logger.error(
                    "credential_expiry_failed",
                    credential_id=mask_credential_id(credential.id),
                    error=str(e),
                )

        if expired:
            SWEEPER_EXPIRED.inc(expired)
        logger.info("expiration_sweep_completed", candidates=len(candidates), expired=expired)
        return expired
