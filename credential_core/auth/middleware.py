"""
Signed Request Middleware
=========================
Starlette middleware authenticating HMAC-signed requests.

Usage:
    app.add_middleware(
        SignedRequestMiddleware,
        authenticator=RequestAuthenticator(manager, ReplayGuard()),
    )

Handlers read the accepted credential from ``request.state.credential``.
"""

from typing import Optional, Set

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..lifecycle.endpoints import is_endpoint_allowed, matches_endpoint
from ..logging_setup import mask_credential_id
from ..metrics import record_auth_decision
from ..signing.headers import parse_signed_headers
from .authenticator import BlockReason, RequestAuthenticator

logger = structlog.get_logger(__name__)

DEFAULT_EXCLUDED_PATHS = {"/health", "/ready", "/metrics"}


class SignedRequestMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests without a valid signature.

    Every authentication failure gets the same 401 body, whatever the cause.
    A valid credential used outside its allowed endpoints gets 403.
    """

    def __init__(
        self,
        app,
        authenticator: RequestAuthenticator,
        admin_endpoint_prefix: Optional[str] = None,
        excluded_paths: Optional[Set[str]] = None,
    ):
        super().__init__(app)
        self.authenticator = authenticator
        self.admin_endpoint_prefix = (
            admin_endpoint_prefix
            or authenticator.manager.settings.admin_endpoint_prefix
        )
        self.excluded_paths = excluded_paths or DEFAULT_EXCLUDED_PATHS

    def _is_excluded(self, path: str) -> bool:
        return path in self.excluded_paths or path.rstrip("/") in self.excluded_paths

    @staticmethod
    def _unauthorized() -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"error": "Unauthorized", "code": "AUTH_FAILED"},
        )

    @staticmethod
    def _forbidden() -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={"error": "Forbidden", "code": "ENDPOINT_NOT_ALLOWED"},
        )

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if self._is_excluded(path):
            return await call_next(request)

        result = await self.authenticator.authenticate(parse_signed_headers(request.headers))
        if not result.allowed:
            return self._unauthorized()

        credential = result.credential
        admin_path = matches_endpoint(path, f"{self.admin_endpoint_prefix.rstrip('/')}*")
        if (admin_path and not credential.is_admin) or (
            credential.allowed_endpoints
            and not is_endpoint_allowed(path, credential.allowed_endpoints)
        ):
            record_auth_decision(False, BlockReason.ENDPOINT_NOT_ALLOWED.value)
            logger.warning(
                "signed_request_endpoint_denied",
                path=path,
                method=request.method,
                credential_id=mask_credential_id(credential.id),
            )
            return self._forbidden()

        request.state.credential = credential
        return await call_next(request)
