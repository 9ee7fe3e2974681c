"""Credential metadata repositories and owner directories."""

from .base import CredentialRepository, OwnerDirectory
from .memory import InMemoryCredentialRepository, InMemoryOwnerDirectory

__all__ = [
    "CredentialRepository",
    "OwnerDirectory",
    "InMemoryCredentialRepository",
    "InMemoryOwnerDirectory",
]
