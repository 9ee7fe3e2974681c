"""
SQL Repository Tests
====================
SqlCredentialRepository against SQLite through aiosqlite.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from credential_core.database import close_engine, create_async_engine, get_session_factory, init_schema
from credential_core.exceptions import CredentialNotFoundError, InvalidArgumentError
from credential_core.models import Credential, CredentialStatus
from credential_core.repository.sql import SqlCredentialRepository

pytest.importorskip("aiosqlite")

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def sql_repository(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'credentials.db'}")
    await init_schema(engine)
    yield SqlCredentialRepository(get_session_factory())
    await close_engine()


def owner_credential(credential_id="cred-1", **overrides):
    values = dict(
        id=credential_id,
        owner_id="merchant-1",
        name="API Key",
        rate_limit=500,
        allowed_endpoints=["/api/v1/sales*"],
        created_at=NOW,
        expires_at=NOW + timedelta(days=365),
    )
    values.update(overrides)
    return Credential(**values)


class TestSqlCredentialRepository:
    """Tests for SqlCredentialRepository."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, sql_repository):
        """Rows come back with every field and aware datetimes."""
        await sql_repository.create(owner_credential())

        loaded = await sql_repository.get_by_key("cred-1")

        assert loaded.owner_id == "merchant-1"
        assert loaded.status == CredentialStatus.ACTIVE
        assert loaded.allowed_endpoints == ["/api/v1/sales*"]
        assert loaded.rate_limit == 500
        assert loaded.created_at == NOW
        assert loaded.expires_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_missing(self, sql_repository):
        """Unknown ids read as None."""
        assert await sql_repository.get_by_key("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_create(self, sql_repository):
        """Creating the same id twice is refused."""
        await sql_repository.create(owner_credential())

        with pytest.raises(InvalidArgumentError):
            await sql_repository.create(owner_credential())

    @pytest.mark.asyncio
    async def test_update(self, sql_repository):
        """Updates replace the stored row."""
        credential = await sql_repository.create(owner_credential())

        await sql_repository.update(
            credential.copy(status=CredentialStatus.REVOKED, revoked_at=NOW, updated_at=NOW)
        )

        loaded = await sql_repository.get_by_key("cred-1")
        assert loaded.status == CredentialStatus.REVOKED
        assert loaded.revoked_at == NOW

    @pytest.mark.asyncio
    async def test_update_missing(self, sql_repository):
        """Updating an unknown row raises CredentialNotFoundError."""
        with pytest.raises(CredentialNotFoundError):
            await sql_repository.update(owner_credential("missing"))

    @pytest.mark.asyncio
    async def test_get_by_owner(self, sql_repository):
        """Only the owner's rows are returned, oldest first."""
        await sql_repository.create(owner_credential("b", created_at=NOW + timedelta(minutes=1)))
        await sql_repository.create(owner_credential("a"))
        await sql_repository.create(owner_credential("c", owner_id="merchant-2"))

        rows = await sql_repository.get_by_owner("merchant-1")

        assert [row.id for row in rows] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_get_admin_credential(self, sql_repository):
        """Only the ACTIVE admin credential of the service is returned."""
        admin = dict(owner_id=None, is_admin=True, service_name="billing", allowed_endpoints=[])
        await sql_repository.create(
            owner_credential("old", status=CredentialStatus.ROTATED, **admin)
        )
        await sql_repository.create(owner_credential("current", **admin))

        found = await sql_repository.get_admin_credential("billing")

        assert found.id == "current"
        assert await sql_repository.get_admin_credential("reports") is None

    @pytest.mark.asyncio
    async def test_record_usage(self, sql_repository):
        """record_usage only touches last_used_at."""
        await sql_repository.create(owner_credential())

        await sql_repository.record_usage("cred-1", NOW + timedelta(hours=1))

        loaded = await sql_repository.get_by_key("cred-1")
        assert loaded.last_used_at == NOW + timedelta(hours=1)
        assert loaded.status == CredentialStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_update_keeps_recorded_usage(self, sql_repository):
        """A stale snapshot does not undo a newer record_usage."""
        snapshot = await sql_repository.create(owner_credential())
        await sql_repository.record_usage("cred-1", NOW + timedelta(hours=1))

        updated = await sql_repository.update(
            snapshot.copy(status=CredentialStatus.REVOKED, revoked_at=NOW)
        )

        loaded = await sql_repository.get_by_key("cred-1")
        assert loaded.status == CredentialStatus.REVOKED
        assert loaded.last_used_at == NOW + timedelta(hours=1)
        assert updated.last_used_at == NOW + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_find_expired(self, sql_repository):
        """Only ACTIVE rows past expiry are candidates."""
        await sql_repository.create(owner_credential("past", expires_at=NOW - timedelta(days=1)))
        await sql_repository.create(owner_credential("future"))
        await sql_repository.create(owner_credential("never", expires_at=None))
        await sql_repository.create(owner_credential(
            "revoked", status=CredentialStatus.REVOKED, expires_at=NOW - timedelta(days=1)
        ))

        expired = await sql_repository.find_expired(NOW)

        assert [row.id for row in expired] == ["past"]
