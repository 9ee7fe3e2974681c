"""
Credential Key Material and Naming
==================================
Secure credential id / secret generation and per-owner unique naming.
"""

import secrets
from datetime import datetime
from typing import Iterable

CREDENTIAL_ID_BYTES = 32
SECRET_BYTES = 64
DEFAULT_CREDENTIAL_NAME = "API Key"


def generate_credential_id() -> str:
    """
    Generate a new credential id.

    Returns:
        URL-safe string carrying 32 random bytes of entropy
    """
    return secrets.token_urlsafe(CREDENTIAL_ID_BYTES)


def generate_secret() -> str:
    """
    Generate new HMAC key material.

    The secret is handed to the caller ONCE and afterwards lives only in the
    secret store.
    """
    return secrets.token_urlsafe(SECRET_BYTES)


def unique_name(requested: str, existing: Iterable[str]) -> str:
    """
    Deduplicate a credential name against an owner's existing names.

    Comparison is case-insensitive. Collisions get a numeric suffix:
    "Checkout", "Checkout (2)", "Checkout (3)", ...
    """
    base = (requested or "").strip() or DEFAULT_CREDENTIAL_NAME
    taken = {name.casefold() for name in existing if name}
    if base.casefold() not in taken:
        return base

    counter = 2
    while f"{base} ({counter})".casefold() in taken:
        counter += 1
    return f"{base} ({counter})"


def rotated_name(name: str, rotated_at: datetime) -> str:
    """Name given to a superseded credential so the new one can keep the original."""
    return f"{name}-rotated-{rotated_at.strftime('%Y%m%d%H%M%S')}"
