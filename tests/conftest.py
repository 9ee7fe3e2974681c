"""
Shared fixtures for credential-core tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from credential_core.config import CredentialSettings
from credential_core.lifecycle import CredentialManager, IssueCredentialRequest, OnboardingMetadata
from credential_core.models import Owner
from credential_core.replay import ReplayGuard
from credential_core.repository import InMemoryCredentialRepository, InMemoryOwnerDirectory
from credential_core.secret_store import InMemorySecretStore


class MutableClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FlakySecretStore(InMemorySecretStore):
    """In-memory store whose writes can be made to fail on demand."""

    def __init__(self):
        super().__init__()
        self.fail_put = False
        self.fail_update = False

    async def put(self, name: str, value: str) -> None:
        if self.fail_put:
            raise OSError("secret store unavailable")
        await super().put(name, value)

    async def update(self, name: str, value: str) -> None:
        if self.fail_update:
            raise OSError("secret store unavailable")
        await super().update(name, value)


class FlakyRepository(InMemoryCredentialRepository):
    """In-memory repository whose writes can be made to fail on demand."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_create = False
        self.fail_update_for = set()

    async def create(self, credential):
        if self.fail_create:
            raise OSError("database unavailable")
        return await super().create(credential)

    async def update(self, credential):
        if credential.status in self.fail_update_for:
            raise OSError("database unavailable")
        return await super().update(credential)


@pytest.fixture
def clock():
    return MutableClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return CredentialSettings()


@pytest.fixture
def owners():
    return InMemoryOwnerDirectory([
        Owner(id="merchant-1", external_id="EXT-001", name="Acme Payments"),
        Owner(id="merchant-2", external_id="EXT-002", name="Globex"),
    ])


@pytest.fixture
def repository():
    return FlakyRepository()


@pytest.fixture
def secret_store():
    return FlakySecretStore()


@pytest.fixture
def manager(repository, secret_store, owners, settings, clock):
    return CredentialManager(
        repository,
        secret_store,
        owners,
        settings=settings,
        clock=clock,
        compensation_attempts=1,
    )


@pytest.fixture
def replay_guard(clock):
    return ReplayGuard(window_minutes=5, clock=clock)


@pytest.fixture
def onboarding(clock):
    return OnboardingMetadata(
        admin_user_id="admin-42",
        reference="ONB-2026-0001",
        timestamp=clock(),
    )


@pytest.fixture
def issue_request(onboarding):
    def build(**overrides):
        overrides.setdefault("onboarding", onboarding)
        return IssueCredentialRequest(**overrides)
    return build
