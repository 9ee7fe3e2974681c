"""
Signature Functions
===================
HMAC-SHA256 signature computation and verification for signed requests.
"""

import base64
import hashlib
import hmac
import uuid
from datetime import datetime, timezone
from typing import Optional

SIGNATURE_ALGORITHM = "sha256"
CANONICAL_SEPARATOR = "|"


def canonical_string(
    timestamp: str,
    nonce: str,
    credential_id: str,
    owner_id: Optional[str] = None,
) -> str:
    """
    Build the string that gets signed.

    Owner credentials sign ``timestamp|nonce|owner_id|credential_id``.
    Administrative credentials have no owner and sign
    ``timestamp|nonce|credential_id``; the owner field is omitted entirely.

    Args:
        timestamp: ISO-8601 request timestamp, exactly as sent
        nonce: Unique request identifier
        credential_id: The credential key string
        owner_id: Owner id, or None/empty for administrative credentials

    Returns:
        The canonical string
    """
    if owner_id:
        parts = (timestamp, nonce, owner_id, credential_id)
    else:
        parts = (timestamp, nonce, credential_id)
    return CANONICAL_SEPARATOR.join(parts)


def sign(
    secret: str,
    timestamp: str,
    nonce: str,
    owner_id: Optional[str],
    credential_id: str,
) -> str:
    """
    Compute the base64 HMAC-SHA256 signature of a request.

    Args:
        secret: Shared secret paired with the credential
        timestamp: ISO-8601 request timestamp
        nonce: Unique request identifier
        owner_id: Owner id, or None/empty for administrative credentials
        credential_id: The credential key string

    Returns:
        Base64-encoded signature

    Raises:
        ValueError: If the secret is empty
    """
    if not secret:
        raise ValueError("Cannot sign with an empty secret")

    message = canonical_string(timestamp, nonce, credential_id, owner_id)
    digest = hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def verify(
    signature: str,
    secret: str,
    timestamp: str,
    nonce: str,
    owner_id: Optional[str],
    credential_id: str,
) -> bool:
    """
    Verify a request signature.

    Comparison is case-insensitive and constant-time.

    Returns:
        True if the signature matches
    """
    if not signature or not secret:
        return False

    expected = sign(secret, timestamp, nonce, owner_id, credential_id)
    return hmac.compare_digest(
        expected.lower().encode("ascii"),
        signature.strip().lower().encode("utf-8"),
    )


def format_timestamp(value: Optional[datetime] = None) -> str:
    """Render a request timestamp as ISO-8601 UTC with a Z suffix."""
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def generate_nonce() -> str:
    """Generate a unique nonce for request signing."""
    return str(uuid.uuid4())
