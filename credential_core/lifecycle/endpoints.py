"""
Endpoint Matching
=================
Path-pattern checks for a credential's allowed endpoints.

Patterns are case-insensitive. A trailing ``*`` matches any path with the
same prefix; anything else must match exactly.
"""

from typing import Iterable


def matches_endpoint(request_path: str, pattern: str) -> bool:
    if not request_path or not pattern:
        return False

    path = request_path.lower()
    pattern = pattern.lower()

    if pattern.endswith("*"):
        return path.startswith(pattern.rstrip("*").rstrip("/"))
    return path == pattern


def is_endpoint_allowed(request_path: str, allowed_endpoints: Iterable[str]) -> bool:
    """True if any pattern matches. An empty pattern list allows nothing."""
    return any(matches_endpoint(request_path, pattern) for pattern in allowed_endpoints)


def is_admin_pattern(pattern: str, admin_prefix: str) -> bool:
    """
    True if the pattern could grant access to the administrative surface.

    Catches both patterns under the admin prefix and wildcards broad enough
    to cover it (``/api/*``, ``*``).
    """
    if not pattern:
        return False

    prefix = admin_prefix.lower().rstrip("/")
    lowered = pattern.lower()
    if lowered.startswith(prefix):
        return True
    if lowered.endswith("*"):
        return prefix.startswith(lowered.rstrip("*").rstrip("/"))
    return False


def admin_patterns(patterns: Iterable[str], admin_prefix: str) -> list:
    return [pattern for pattern in patterns if is_admin_pattern(pattern, admin_prefix)]
