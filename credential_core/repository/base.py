"""
Repository Interfaces
=====================
Contracts for credential metadata persistence and owner lookup.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..models import Credential, Owner


class CredentialRepository(ABC):
    """
    Persistent store of credential metadata rows.

    Every method is an atomic single-row operation (find_expired is a read);
    writes are durable before the call returns. Multi-row transactions are
    not assumed.
    """

    @abstractmethod
    async def get_by_key(self, credential_id: str) -> Optional[Credential]:
        """Credential with this key string, or None."""

    @abstractmethod
    async def get_by_owner(self, owner_id: str) -> List[Credential]:
        """Every credential of an owner, any status."""

    @abstractmethod
    async def get_admin_credential(self, service_name: str) -> Optional[Credential]:
        """The ACTIVE administrative credential for a service, or None."""

    @abstractmethod
    async def create(self, credential: Credential) -> Credential:
        """Insert a new row."""

    @abstractmethod
    async def update(self, credential: Credential) -> Credential:
        """
        Overwrite an existing row.

        last_used_at is owned by record_usage and keeps its stored value.
        """

    @abstractmethod
    async def record_usage(self, credential_id: str, used_at: datetime) -> None:
        """Set last_used_at only, leaving every other column untouched."""

    @abstractmethod
    async def find_expired(self, now: datetime) -> List[Credential]:
        """ACTIVE credentials whose expires_at is before now."""


class OwnerDirectory(ABC):
    """
    Read-only view of credential owners.

    Lookups return None for unknown owners instead of raising.
    """

    @abstractmethod
    async def get_by_id(self, owner_id: str) -> Optional[Owner]:
        """Owner by internal id."""

    @abstractmethod
    async def get_by_external_id(self, external_id: str) -> Optional[Owner]:
        """Owner by the id known to external callers."""

    async def resolve(self, owner_ref: str) -> Optional[Owner]:
        """Try the internal id first, then the external id."""
        if not owner_ref:
            return None
        owner = await self.get_by_id(owner_ref)
        if owner is not None:
            return owner
        return await self.get_by_external_id(owner_ref)
