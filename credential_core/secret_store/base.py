"""
Secret Store Interface
======================
Contract the credential engine needs from a secret backend.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SecretStore(ABC):
    """
    Name-addressed store of JSON-encoded secrets.

    Implementations must make each call durable before returning.
    """

    @abstractmethod
    async def get(self, name: str) -> Optional[str]:
        """Return the stored JSON, or None if no secret has that name."""

    @abstractmethod
    async def put(self, name: str, value: str) -> None:
        """Create or overwrite a secret."""

    @abstractmethod
    async def update(self, name: str, value: str) -> None:
        """
        Overwrite an existing secret.

        Raises:
            SecretStoreError: If no secret has that name
        """
