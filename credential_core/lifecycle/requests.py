"""
Lifecycle Requests and Results
==============================
Pydantic request models and the values returned by lifecycle operations.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import Credential, CredentialStatus


class OnboardingMetadata(BaseModel):
    """Who issued or changed a credential, and under which onboarding reference."""
    admin_user_id: str = Field(min_length=1)
    reference: str = Field(min_length=1)
    timestamp: datetime


class IssueCredentialRequest(BaseModel):
    """
    Issuance options. Scope follows from the owner argument of issue():
    no owner means an admin credential for service_name.
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=255)
    purpose: Optional[str] = Field(default=None, max_length=50)
    rate_limit: Optional[int] = Field(default=None, ge=1, le=10000)
    allowed_endpoints: List[str] = Field(default_factory=list)
    expiration_days: Optional[int] = Field(default=None, ge=1, le=3650)
    service_name: Optional[str] = Field(default=None, max_length=50)
    onboarding: Optional[OnboardingMetadata] = None


class UpdateCredentialRequest(BaseModel):
    """Fields left as None are not changed."""
    description: Optional[str] = Field(default=None, max_length=255)
    rate_limit: Optional[int] = Field(default=None, ge=1, le=10000)
    allowed_endpoints: Optional[List[str]] = None
    onboarding: Optional[OnboardingMetadata] = None


class RotateCredentialRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=255)
    onboarding: Optional[OnboardingMetadata] = None


class IssuedCredential(BaseModel):
    """
    Result of issue and rotate.

    The only place a secret is ever handed out in plaintext.
    """
    credential_id: str
    secret: str = Field(repr=False)
    owner_id: Optional[str] = None
    name: str
    expires_at: Optional[datetime] = None
    rate_limit: int
    allowed_endpoints: List[str] = Field(default_factory=list)
    purpose: Optional[str] = None
    is_admin: bool = False
    service_name: Optional[str] = None


class CredentialInfo(BaseModel):
    """Read-only view of a credential's metadata."""
    credential_id: str
    owner_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    purpose: Optional[str] = None
    status: CredentialStatus
    rate_limit: int
    allowed_endpoints: List[str] = Field(default_factory=list)
    is_admin: bool = False
    service_name: Optional[str] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    last_rotated_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    is_revoked: bool = False
    is_expired: bool = False

    @classmethod
    def from_credential(cls, credential: Credential, now: datetime) -> "CredentialInfo":
        return cls(
            credential_id=credential.id,
            owner_id=credential.owner_id,
            name=credential.name,
            description=credential.description,
            purpose=credential.purpose,
            status=credential.status,
            rate_limit=credential.rate_limit,
            allowed_endpoints=list(credential.allowed_endpoints),
            is_admin=credential.is_admin,
            service_name=credential.service_name,
            created_at=credential.created_at,
            expires_at=credential.expires_at,
            last_rotated_at=credential.last_rotated_at,
            last_used_at=credential.last_used_at,
            revoked_at=credential.revoked_at,
            is_revoked=credential.status == CredentialStatus.REVOKED,
            is_expired=(
                credential.status == CredentialStatus.EXPIRED
                or credential.is_past_expiry(now)
            ),
        )
