"""
Request Authenticator
=====================
Combines credential/signature validation with replay protection.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import structlog

from ..lifecycle.manager import CredentialManager
from ..logging_setup import mask_credential_id
from ..metrics import record_auth_decision
from ..models import Credential
from ..signing.headers import SignedRequest

logger = structlog.get_logger(__name__)


class AuthDecision(str, Enum):
    ALLOW = "ALLOW"
    BLOCK = "BLOCK"


class BlockReason(str, Enum):
    """Why a request was blocked. For logs and metrics only, never sent to clients."""
    MISSING_FIELDS = "missing_fields"
    INVALID_CREDENTIAL = "invalid_credential"
    REPLAY_REJECTED = "replay_rejected"
    ENDPOINT_NOT_ALLOWED = "endpoint_not_allowed"


class NonceGuard(Protocol):
    async def check_and_record(self, timestamp: str, nonce: str) -> bool:
        ...


@dataclass
class AuthResult:
    """Result of authenticating one signed request."""
    decision: AuthDecision
    reason_code: Optional[BlockReason] = None
    credential: Optional[Credential] = None

    @property
    def allowed(self) -> bool:
        return self.decision == AuthDecision.ALLOW

    @classmethod
    def block(cls, reason: BlockReason) -> "AuthResult":
        return cls(decision=AuthDecision.BLOCK, reason_code=reason)


class RequestAuthenticator:
    """
    Authenticates signed requests.

    The signature is checked before the nonce is recorded, so unsigned
    traffic cannot use up nonces belonging to legitimate callers.

    Usage:
        authenticator = RequestAuthenticator(manager, ReplayGuard())
        result = await authenticator.authenticate(parse_signed_headers(request.headers))
    """

    def __init__(
        self,
        manager: CredentialManager,
        replay_guard: NonceGuard,
        timeout: Optional[float] = None,
    ):
        self.manager = manager
        self.replay_guard = replay_guard
        self.timeout = timeout

    async def authenticate(self, request: SignedRequest) -> AuthResult:
        if not (request.credential_id and request.timestamp and request.nonce and request.signature):
            result = AuthResult.block(BlockReason.MISSING_FIELDS)
            self._record(request, result)
            return result

        credential = await self.manager.verify_request(
            request.owner_id,
            request.credential_id,
            request.timestamp,
            request.nonce,
            request.signature,
            service_name=request.service_name,
            timeout=self.timeout,
        )
        if credential is None:
            result = AuthResult.block(BlockReason.INVALID_CREDENTIAL)
        elif not await self.replay_guard.check_and_record(request.timestamp, request.nonce):
            result = AuthResult.block(BlockReason.REPLAY_REJECTED)
        else:
            result = AuthResult(decision=AuthDecision.ALLOW, credential=credential)

        self._record(request, result)
        return result

    @staticmethod
    def _record(request: SignedRequest, result: AuthResult) -> None:
        reason = result.reason_code.value if result.reason_code else "ok"
        record_auth_decision(result.allowed, reason)
        if result.allowed:
            logger.debug(
                "request_authenticated",
                credential_id=mask_credential_id(request.credential_id),
            )
        else:
            logger.info(
                "request_blocked",
                reason=reason,
                credential_id=mask_credential_id(request.credential_id),
                nonce=(request.nonce or "")[:8],
            )
