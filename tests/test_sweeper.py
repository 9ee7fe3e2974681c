"""
Expiration Sweeper Tests
========================
"""

import asyncio
from datetime import timedelta

import pytest

from credential_core.lifecycle import CredentialManager
from credential_core.models import Credential, CredentialStatus
from credential_core.repository import InMemoryCredentialRepository
from credential_core.sweeper import ExpirationSweeper


def seed(clock):
    now = clock()
    return [
        Credential(id="expired-1", owner_id="merchant-1", name="A", expires_at=now - timedelta(days=1)),
        Credential(id="expired-2", owner_id="merchant-2", name="B", expires_at=now - timedelta(minutes=1)),
        Credential(id="current-1", owner_id="merchant-1", name="C", expires_at=now + timedelta(days=30)),
    ]


class FailingOnceRepository(InMemoryCredentialRepository):
    """Repository whose update fails for one credential id."""

    def __init__(self, credentials, failing_id):
        super().__init__(credentials)
        self.failing_id = failing_id

    async def update(self, credential):
        if credential.id == self.failing_id:
            raise OSError("row locked")
        return await super().update(credential)


class TestExpirationSweeper:
    """Tests for ExpirationSweeper."""

    @pytest.mark.asyncio
    async def test_single_tick(self, secret_store, owners, settings, clock):
        """One tick expires exactly the credentials past expiry."""
        repository = InMemoryCredentialRepository(seed(clock))
        manager = CredentialManager(repository, secret_store, owners, settings=settings, clock=clock)
        sweeper = ExpirationSweeper(manager)

        assert await sweeper.run_once() == 2

        statuses = {c.id: c.status for c in repository.all()}
        assert statuses == {
            "expired-1": CredentialStatus.EXPIRED,
            "expired-2": CredentialStatus.EXPIRED,
            "current-1": CredentialStatus.ACTIVE,
        }
        assert (await repository.get_by_key("expired-1")).updated_at == clock()

    @pytest.mark.asyncio
    async def test_second_tick_is_noop(self, secret_store, owners, settings, clock):
        """Already expired rows are not touched again."""
        repository = InMemoryCredentialRepository(seed(clock))
        manager = CredentialManager(repository, secret_store, owners, settings=settings, clock=clock)
        sweeper = ExpirationSweeper(manager)

        await sweeper.run_once()

        assert await sweeper.run_once() == 0

    @pytest.mark.asyncio
    async def test_item_failure_does_not_block_batch(self, secret_store, owners, settings, clock):
        """One failing row is logged and the rest of the batch proceeds."""
        repository = FailingOnceRepository(seed(clock), failing_id="expired-1")
        manager = CredentialManager(repository, secret_store, owners, settings=settings, clock=clock)
        sweeper = ExpirationSweeper(manager)

        assert await sweeper.run_once() == 1
        assert (await repository.get_by_key("expired-2")).status == CredentialStatus.EXPIRED
        assert (await repository.get_by_key("expired-1")).status == CredentialStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_background_loop_survives_failed_tick(self, secret_store, owners, settings, clock):
        """A tick that raises does not stop later ticks, and stop() returns promptly."""
        repository = InMemoryCredentialRepository(seed(clock))
        manager = CredentialManager(repository, secret_store, owners, settings=settings, clock=clock)
        sweeper = ExpirationSweeper(manager, interval_seconds=0.01)

        calls = []
        original = repository.find_expired

        async def flaky_find_expired(now):
            calls.append(now)
            if len(calls) == 1:
                raise OSError("database unavailable")
            return await original(now)

        repository.find_expired = flaky_find_expired

        await sweeper.start()
        for _ in range(200):
            if (await repository.get_by_key("expired-1")).status == CredentialStatus.EXPIRED:
                break
            await asyncio.sleep(0.01)
        await asyncio.wait_for(sweeper.stop(), timeout=1)

        assert len(calls) >= 2
        assert (await repository.get_by_key("expired-1")).status == CredentialStatus.EXPIRED
        assert sweeper.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, manager):
        """Starting twice keeps one task."""
        sweeper = ExpirationSweeper(manager, interval_seconds=3600)

        await sweeper.start()
        task = sweeper._task
        await sweeper.start()

        assert sweeper._task is task
        await asyncio.wait_for(sweeper.stop(), timeout=1)

    def test_interval_defaults_to_settings(self, manager):
        """The default interval comes from the settings."""
        assert ExpirationSweeper(manager).interval_seconds == 3600
