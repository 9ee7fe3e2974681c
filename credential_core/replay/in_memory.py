"""
In-Memory Replay Guard
======================
Timestamp-window and nonce-reuse protection for signed requests.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
import structlog

from ..metrics import REPLAY_REJECTIONS
from ..models import utcnow
from .window import parse_timestamp, within_window

logger = structlog.get_logger(__name__)

DEFAULT_STRIPES = 64


@dataclass(frozen=True)
class ReplayEntry:
    """A nonce the guard has accepted."""
    nonce: str
    timestamp: str
    first_seen_at: datetime


class ReplayGuard:
    """
    In-memory replay guard.

    Check-then-insert for a nonce happens under one of a fixed set of striped
    locks, so two callers racing on the same nonce cannot both be accepted
    while unrelated nonces rarely contend. Stale entries are purged lazily,
    at most once per ``purge_interval_seconds``.

    Construct one per process and share it; each test gets its own.
    Use RedisReplayGuard when several processes serve the same credentials.
    """

    def __init__(
        self,
        window_minutes: int = 5,
        purge_interval_seconds: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
        stripes: int = DEFAULT_STRIPES,
    ):
        self.window = timedelta(minutes=window_minutes)
        self.purge_interval = timedelta(seconds=purge_interval_seconds)
        self._clock = clock or utcnow
        self._seen: Dict[str, ReplayEntry] = {}
        self._stripes = [threading.Lock() for _ in range(max(1, stripes))]
        self._purge_lock = threading.Lock()
        self._last_purge = self._clock()

    def __len__(self) -> int:
        return len(self._seen)

    def _stripe(self, nonce: str) -> threading.Lock:
        return self._stripes[hash(nonce) % len(self._stripes)]

    def _is_stale(self, entry: ReplayEntry, now: datetime) -> bool:
        return now - entry.first_seen_at > self.window

    async def check_and_record(self, timestamp: str, nonce: str) -> bool:
        """
        Accept a (timestamp, nonce) pair once.

        Args:
            timestamp: ISO-8601 request timestamp
            nonce: Caller-supplied unique token

        Returns:
            True if the timestamp is inside the window and the nonce is fresh
        """
        return self.check_and_record_sync(timestamp, nonce)

    def check_and_record_sync(self, timestamp: str, nonce: str) -> bool:
        """Thread-safe synchronous form of check_and_record."""
        now = self._clock()
        self._maybe_purge(now)

        if not nonce:
            REPLAY_REJECTIONS.labels(reason="missing_nonce").inc()
            return False

        request_time = parse_timestamp(timestamp)
        if request_time is None:
            logger.warning("replay_guard_invalid_timestamp", nonce=nonce[:8])
            REPLAY_REJECTIONS.labels(reason="invalid_timestamp").inc()
            return False

        if not within_window(request_time, now, self.window):
            logger.warning(
                "replay_guard_timestamp_outside_window",
                nonce=nonce[:8],
                skew_seconds=round(abs((now - request_time).total_seconds()), 1),
            )
            REPLAY_REJECTIONS.labels(reason="timestamp_skew").inc()
            return False

        with self._stripe(nonce):
            entry = self._seen.get(nonce)
            if entry is not None and not self._is_stale(entry, now):
                logger.warning("Replay attack detected", nonce=nonce[:8])
                REPLAY_REJECTIONS.labels(reason="nonce_reused").inc()
                return False
            self._seen[nonce] = ReplayEntry(nonce=nonce, timestamp=timestamp, first_seen_at=now)

        return True

    def _maybe_purge(self, now: datetime) -> None:
        if now - self._last_purge < self.purge_interval:
            return
        if not self._purge_lock.acquire(blocking=False):
            return
        try:
            self._last_purge = now
            self._purge(now)
        finally:
            self._purge_lock.release()

    def purge(self) -> int:
        """Remove every entry older than the window. Returns the number removed."""
        with self._purge_lock:
            now = self._clock()
            self._last_purge = now
            return self._purge(now)

    def _purge(self, now: datetime) -> int:
        removed = 0
        for nonce, entry in list(self._seen.items()):
            if not self._is_stale(entry, now):
                continue
            with self._stripe(nonce):
                # Re-check: the nonce may have been re-recorded since the snapshot
                if self._seen.get(nonce) is entry:
                    del self._seen[nonce]
                    removed += 1
        if removed:
            logger.debug("replay_guard_purged", removed=removed, remaining=len(self._seen))
        return removed

    def clear(self) -> None:
        """Drop all entries (shutdown / tests)."""
        with self._purge_lock:
            self._seen.clear()
