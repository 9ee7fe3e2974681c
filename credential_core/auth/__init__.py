"""Signed-request authentication for HTTP services."""

from .authenticator import (
    AuthDecision,
    AuthResult,
    BlockReason,
    NonceGuard,
    RequestAuthenticator,
)
from .middleware import SignedRequestMiddleware

__all__ = [
    "AuthDecision",
    "AuthResult",
    "BlockReason",
    "NonceGuard",
    "RequestAuthenticator",
    "SignedRequestMiddleware",
]
