"""
Credential Core Library
=======================
Credential lifecycle and signed-request authentication for API services.
"""

__version__ = "0.1.0"

# Configuration
from credential_core.config import CredentialSettings

# Errors
from credential_core.exceptions import (
    CredentialError,
    CredentialNotFoundError,
    OwnerNotFoundError,
    OwnerMismatchError,
    InvalidStateError,
    LimitExceededError,
    InvalidArgumentError,
    SecretStoreError,
    ConsistencyError,
    OperationTimeoutError,
)

# Models
from credential_core.models import (
    Credential,
    CredentialSecret,
    CredentialScope,
    CredentialStatus,
    Owner,
)

# Signing
from credential_core.signing import (
    canonical_string,
    sign,
    verify,
    create_signed_headers,
    parse_signed_headers,
    SignedRequest,
)

# Replay Protection
from credential_core.replay import ReplayGuard, RedisReplayGuard

# Secret Stores
from credential_core.secret_store import (
    SecretStore,
    InMemorySecretStore,
    VaultSecretStore,
    SecretNameFormatter,
)

# Repositories
from credential_core.repository import (
    CredentialRepository,
    OwnerDirectory,
    InMemoryCredentialRepository,
    InMemoryOwnerDirectory,
)
from credential_core.repository.sql import SqlCredentialRepository

# Lifecycle
from credential_core.lifecycle import (
    CredentialManager,
    OnboardingMetadata,
    IssueCredentialRequest,
    UpdateCredentialRequest,
    RotateCredentialRequest,
    IssuedCredential,
    CredentialInfo,
)

# Authentication
from credential_core.auth import (
    RequestAuthenticator,
    SignedRequestMiddleware,
    AuthDecision,
    AuthResult,
    BlockReason,
)

# Background
from credential_core.sweeper import ExpirationSweeper

# Observability
from credential_core.logging_setup import setup_logging, mask_credential_id
from credential_core.metrics import get_metrics_text

__all__ = [
    "__version__",
    # Configuration
    "CredentialSettings",
    # Errors
    "CredentialError",
    "CredentialNotFoundError",
    "OwnerNotFoundError",
    "OwnerMismatchError",
    "InvalidStateError",
    "LimitExceededError",
    "InvalidArgumentError",
    "SecretStoreError",
    "ConsistencyError",
    "OperationTimeoutError",
    # Models
    "Credential",
    "CredentialSecret",
    "CredentialScope",
    "CredentialStatus",
    "Owner",
    # Signing
    "canonical_string",
    "sign",
    "verify",
    "create_signed_headers",
    "parse_signed_headers",
    "SignedRequest",
    # Replay Protection
    "ReplayGuard",
    "RedisReplayGuard",
    # Secret Stores
    "SecretStore",
    "InMemorySecretStore",
    "VaultSecretStore",
    "SecretNameFormatter",
    # Repositories
    "CredentialRepository",
    "OwnerDirectory",
    "InMemoryCredentialRepository",
    "InMemoryOwnerDirectory",
    "SqlCredentialRepository",
    # Lifecycle
    "CredentialManager",
    "OnboardingMetadata",
    "IssueCredentialRequest",
    "UpdateCredentialRequest",
    "RotateCredentialRequest",
    "IssuedCredential",
    "CredentialInfo",
    # Authentication
    "RequestAuthenticator",
    "SignedRequestMiddleware",
    "AuthDecision",
    "AuthResult",
    "BlockReason",
    # Background
    "ExpirationSweeper",
    # Observability
    "setup_logging",
    "mask_credential_id",
    "get_metrics_text",
]
