"""
In-Memory Repositories
======================
Dictionary-backed credential repository and owner directory for development and testing.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..exceptions import CredentialNotFoundError, InvalidArgumentError
from ..models import Credential, CredentialStatus, Owner
from .base import CredentialRepository, OwnerDirectory


class InMemoryCredentialRepository(CredentialRepository):
    """
    Simple in-memory credential repository.

    Rows are copied on the way in and out so callers never share state
    with the store, as with a real database.
    """

    def __init__(self, credentials: Optional[Iterable[Credential]] = None):
        self._rows: Dict[str, Credential] = {}
        for credential in credentials or ():
            self._rows[credential.id] = credential.copy()

    def __len__(self) -> int:
        return len(self._rows)

    def all(self) -> List[Credential]:
        return [row.copy() for row in self._rows.values()]

    async def get_by_key(self, credential_id: str) -> Optional[Credential]:
        row = self._rows.get(credential_id)
        return row.copy() if row else None

    async def get_by_owner(self, owner_id: str) -> List[Credential]:
        return [row.copy() for row in self._rows.values() if row.owner_id == owner_id]

    async def get_admin_credential(self, service_name: str) -> Optional[Credential]:
        for row in self._rows.values():
            if (
                row.is_admin
                and row.service_name == service_name
                and row.status == CredentialStatus.ACTIVE
            ):
                return row.copy()
        return None

    async def create(self, credential: Credential) -> Credential:
        if credential.id in self._rows:
            raise InvalidArgumentError("Credential already exists", credential_id=credential.id)
        self._rows[credential.id] = credential.copy()
        return credential.copy()

    async def update(self, credential: Credential) -> Credential:
        if credential.id not in self._rows:
            raise CredentialNotFoundError("Credential not found", credential_id=credential.id)
        row = credential.copy(last_used_at=self._rows[credential.id].last_used_at)
        self._rows[credential.id] = row
        return row.copy()

    async def record_usage(self, credential_id: str, used_at: datetime) -> None:
        row = self._rows.get(credential_id)
        if row is not None:
            row.last_used_at = used_at

    async def find_expired(self, now: datetime) -> List[Credential]:
        return [
            row.copy()
            for row in self._rows.values()
            if row.status == CredentialStatus.ACTIVE and row.is_past_expiry(now)
        ]


class InMemoryOwnerDirectory(OwnerDirectory):
    """Owner directory backed by a dictionary."""

    def __init__(self, owners: Optional[Iterable[Owner]] = None):
        self._owners: Dict[str, Owner] = {}
        for owner in owners or ():
            self.add(owner)

    def add(self, owner: Owner) -> Owner:
        self._owners[owner.id] = owner
        return owner

    async def get_by_id(self, owner_id: str) -> Optional[Owner]:
        return self._owners.get(owner_id)

    async def get_by_external_id(self, external_id: str) -> Optional[Owner]:
        for owner in self._owners.values():
            if owner.external_id and owner.external_id == external_id:
                return owner
        return None
