"""
Credential Exceptions
=====================
Typed errors raised by credential lifecycle operations.

Signed-request validation never raises these for authentication failures;
it returns False instead.
"""

from typing import Any, Optional


class CredentialError(Exception):
    """Base exception for all credential engine errors."""

    code = "CREDENTIAL_ERROR"
    http_status = 500

    def __init__(
        self,
        message: str,
        credential_id: Optional[str] = None,
        details: Any = None,
    ):
        self.message = message
        self.credential_id = credential_id
        self.details = details
        super().__init__(message)


class CredentialNotFoundError(CredentialError):
    """Raised when a credential does not exist."""
    code = "CREDENTIAL_NOT_FOUND"
    http_status = 404


class OwnerNotFoundError(CredentialNotFoundError):
    """Raised when the owner of a credential cannot be resolved."""
    code = "OWNER_NOT_FOUND"


class OwnerMismatchError(CredentialNotFoundError):
    """Raised when a credential exists but belongs to another owner."""
    code = "OWNER_MISMATCH"


class InvalidStateError(CredentialError):
    """Raised when an operation is not permitted for the credential's status."""
    code = "INVALID_STATE"
    http_status = 409


class LimitExceededError(CredentialError):
    """Raised when an owner already holds the maximum number of active credentials."""
    code = "LIMIT_EXCEEDED"
    http_status = 409


class InvalidArgumentError(CredentialError):
    """Raised on malformed or forbidden input."""
    code = "INVALID_ARGUMENT"
    http_status = 400


class SecretStoreError(CredentialError):
    """Raised when the secret store fails or holds an unreadable secret."""
    code = "SECRET_STORE_ERROR"
    http_status = 503


class ConsistencyError(CredentialError):
    """Raised when a compensation step failed and manual repair is needed."""
    code = "CONSISTENCY_ERROR"
    http_status = 500


class OperationTimeoutError(CredentialError):
    """Raised when a caller-supplied deadline elapses."""
    code = "OPERATION_TIMEOUT"
    http_status = 504
