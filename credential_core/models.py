"""
Credential Models
=================
Credential metadata, paired secrets and owners.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import SecretStoreError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (some stores drop tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    return ensure_utc(datetime.fromisoformat(value)) if value else None


class CredentialStatus(str, Enum):
    """Lifecycle status of a credential."""
    ACTIVE = "ACTIVE"
    ROTATED = "ROTATED"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"


class CredentialScope(str, Enum):
    """Who a credential may act for."""
    ADMIN = "admin"
    OWNER = "owner"


@dataclass
class Owner:
    """A merchant or other principal that owns credentials."""
    id: str
    external_id: Optional[str] = None
    name: str = ""


@dataclass
class Credential:
    """Credential metadata (never includes the secret)."""
    id: str
    owner_id: Optional[str]
    name: str
    status: CredentialStatus = CredentialStatus.ACTIVE
    description: Optional[str] = None
    purpose: Optional[str] = None
    rate_limit: int = 1000
    allowed_endpoints: List[str] = field(default_factory=list)
    is_admin: bool = False
    service_name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    last_rotated_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    onboarding_reference: Optional[str] = None
    onboarding_timestamp: Optional[datetime] = None
    onboarding_admin_user_id: Optional[str] = None
    created_by: Optional[str] = None

    def __post_init__(self):
        if self.is_admin == bool(self.owner_id):
            raise ValueError(
                "A credential must either have an owner or be administrative, not both"
            )
        self.status = CredentialStatus(self.status)

    @property
    def scope(self) -> CredentialScope:
        return CredentialScope.ADMIN if self.is_admin else CredentialScope.OWNER

    @property
    def is_active(self) -> bool:
        return self.status == CredentialStatus.ACTIVE

    def is_past_expiry(self, now: datetime) -> bool:
        return self.expires_at is not None and ensure_utc(self.expires_at) < now

    def copy(self, **changes: Any) -> "Credential":
        changes.setdefault("allowed_endpoints", list(self.allowed_endpoints))
        return replace(self, **changes)


@dataclass
class CredentialSecret:
    """
    HMAC key material paired 1:1 with a credential.

    Lives only in the secret store, JSON encoded.
    """
    credential_id: str
    secret: str
    owner_id: Optional[str] = None
    status: CredentialStatus = CredentialStatus.ACTIVE
    is_revoked: bool = False
    revoked_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    last_rotated: Optional[datetime] = None
    scope: CredentialScope = CredentialScope.OWNER
    service_name: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"CredentialSecret(credential_id={self.credential_id!r}, "
            f"status={self.status.value}, secret='****')"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credential_id": self.credential_id,
            "secret": self.secret,
            "owner_id": self.owner_id,
            "status": CredentialStatus(self.status).value,
            "is_revoked": self.is_revoked,
            "revoked_at": _iso(self.revoked_at),
            "created_at": _iso(self.created_at),
            "last_rotated": _iso(self.last_rotated),
            "scope": CredentialScope(self.scope).value,
            "service_name": self.service_name,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> "CredentialSecret":
        """Decode a stored secret, raising SecretStoreError if it is unreadable."""
        try:
            data = json.loads(raw)
            return cls(
                credential_id=data["credential_id"],
                secret=data["secret"],
                owner_id=data.get("owner_id"),
                status=CredentialStatus(data.get("status", CredentialStatus.ACTIVE.value)),
                is_revoked=bool(data.get("is_revoked", False)),
                revoked_at=_parse_iso(data.get("revoked_at")),
                created_at=_parse_iso(data.get("created_at")) or utcnow(),
                last_rotated=_parse_iso(data.get("last_rotated")),
                scope=CredentialScope(data.get("scope", CredentialScope.OWNER.value)),
                service_name=data.get("service_name"),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise SecretStoreError("Stored secret is malformed", details=str(e))

    def mark(self, status: CredentialStatus, at: datetime) -> "CredentialSecret":
        """Return a copy whose status mirrors the credential's new status."""
        updated = replace(self, status=status)
        if status == CredentialStatus.REVOKED:
            updated.is_revoked = True
            updated.revoked_at = at
        elif status == CredentialStatus.ROTATED:
            updated.last_rotated = at
        return updated
