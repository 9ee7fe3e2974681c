"""Credential issuance, rotation, revocation, update and validation."""

from .endpoints import is_admin_pattern, is_endpoint_allowed, matches_endpoint
from .keys import generate_credential_id, generate_secret, rotated_name, unique_name
from .locks import KeyedLock
from .manager import CredentialManager
from .requests import (
    CredentialInfo,
    IssueCredentialRequest,
    IssuedCredential,
    OnboardingMetadata,
    RotateCredentialRequest,
    UpdateCredentialRequest,
)

__all__ = [
    "CredentialManager",
    # Requests / results
    "OnboardingMetadata",
    "IssueCredentialRequest",
    "UpdateCredentialRequest",
    "RotateCredentialRequest",
    "IssuedCredential",
    "CredentialInfo",
    # Helpers
    "KeyedLock",
    "generate_credential_id",
    "generate_secret",
    "unique_name",
    "rotated_name",
    "matches_endpoint",
    "is_endpoint_allowed",
    "is_admin_pattern",
]
