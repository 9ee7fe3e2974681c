"""
In-Memory Secret Store
======================
Dictionary-backed secret store for development and testing.
"""

from typing import Dict, Optional

from ..exceptions import SecretStoreError
from .base import SecretStore


class InMemorySecretStore(SecretStore):
    """
    Simple in-memory secret store.

    For development and testing only.
    Use VaultSecretStore in production.
    """

    def __init__(self):
        self._secrets: Dict[str, str] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._secrets

    def __len__(self) -> int:
        return len(self._secrets)

    async def get(self, name: str) -> Optional[str]:
        return self._secrets.get(name)

    async def put(self, name: str, value: str) -> None:
        self._secrets[name] = value

    async def update(self, name: str, value: str) -> None:
        if name not in self._secrets:
            raise SecretStoreError(f"Secret not found: {name}")
        self._secrets[name] = value
