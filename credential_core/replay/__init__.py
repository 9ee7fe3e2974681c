"""
Replay Protection Module
========================
Timestamp-window and nonce-reuse guards for signed requests.
"""

from .window import parse_timestamp, within_window
from .in_memory import ReplayGuard, ReplayEntry
from .redis_guard import RedisReplayGuard

__all__ = [
    "parse_timestamp",
    "within_window",
    "ReplayGuard",
    "ReplayEntry",
    "RedisReplayGuard",
]
