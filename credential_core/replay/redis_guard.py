"""
Redis Replay Guard
==================
Replay guard shared across processes, using Redis SET NX for atomic insert-if-absent.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional
import structlog

from ..metrics import REPLAY_REJECTIONS
from ..models import utcnow
from .window import parse_timestamp, within_window

logger = structlog.get_logger(__name__)


class RedisReplayGuard:
    """
    Redis-backed replay guard.

    Each accepted nonce is written with ``NX`` and an expiry equal to the
    window, so Redis both arbitrates concurrent callers and purges old nonces.
    Fails closed when Redis is unreachable.
    """

    def __init__(
        self,
        redis_client,
        window_minutes: int = 5,
        key_prefix: str = "replay:nonce",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            redis_client: Async Redis client (redis.asyncio.Redis)
            window_minutes: Allowed clock skew and nonce retention
            key_prefix: Prefix for nonce keys
            clock: Source of the current time
        """
        self.redis = redis_client
        self.window = timedelta(minutes=window_minutes)
        self.key_prefix = key_prefix
        self._clock = clock or utcnow

    def get_key(self, nonce: str) -> str:
        return f"{self.key_prefix}:{nonce}"

    async def check_and_record(self, timestamp: str, nonce: str) -> bool:
        """Accept a (timestamp, nonce) pair once across every process sharing Redis."""
        if not nonce:
            REPLAY_REJECTIONS.labels(reason="missing_nonce").inc()
            return False

        request_time = parse_timestamp(timestamp)
        if request_time is None:
            REPLAY_REJECTIONS.labels(reason="invalid_timestamp").inc()
            return False

        now = self._clock()
        if not within_window(request_time, now, self.window):
            REPLAY_REJECTIONS.labels(reason="timestamp_skew").inc()
            return False

        try:
            stored = await self.redis.set(
                self.get_key(nonce),
                now.isoformat(),
                nx=True,
                ex=int(self.window.total_seconds()),
            )
        except Exception as e:
            logger.error("replay_guard_redis_failed", error=str(e))
            REPLAY_REJECTIONS.labels(reason="backend_unavailable").inc()
            return False

        if not stored:
            logger.warning("Replay attack detected", nonce=nonce[:8])
            REPLAY_REJECTIONS.labels(reason="nonce_reused").inc()
            return False

        return True
