"""Secret store adapters and secret name formatting."""

from .base import SecretStore
from .memory import InMemorySecretStore
from .naming import SecretNameFormatter
from .vault import VaultSecretStore

__all__ = [
    "SecretStore",
    "InMemorySecretStore",
    "SecretNameFormatter",
    "VaultSecretStore",
]
