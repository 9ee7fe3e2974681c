"""
Signed Request Validation Tests
===============================
The authentication entry point of the credential manager.
"""

import asyncio

import pytest

from credential_core.config import CredentialSettings
from credential_core.lifecycle import CredentialManager, IssueCredentialRequest
from credential_core.models import CredentialStatus
from credential_core.signing import format_timestamp, sign


def signed(issued, clock, nonce="nonce-1", owner_id=None):
    ts = format_timestamp(clock())
    owner = owner_id if owner_id is not None else issued.owner_id
    return ts, nonce, sign(issued.secret, ts, nonce, owner, issued.credential_id)


class TestValidate:
    """Tests for CredentialManager.validate."""

    @pytest.mark.asyncio
    async def test_valid_owner_signature(self, manager, issue_request, clock):
        """A correctly signed owner request is accepted."""
        issued = await manager.issue("merchant-1", issue_request(rate_limit=1000))
        ts, nonce, signature = signed(issued, clock)

        assert await manager.validate("merchant-1", issued.credential_id, ts, nonce, signature) is True

    @pytest.mark.asyncio
    async def test_external_owner_id(self, manager, issue_request, clock):
        """Owners may sign with their external id."""
        issued = await manager.issue("merchant-1", issue_request())
        ts, nonce, signature = signed(issued, clock, owner_id="EXT-001")

        assert await manager.validate("EXT-001", issued.credential_id, ts, nonce, signature) is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["credential_id", "timestamp", "nonce", "signature"])
    async def test_empty_fields_skip_lookup(self, manager, repository, issue_request, clock, missing):
        """Any empty field is rejected before the repository is consulted."""
        issued = await manager.issue("merchant-1", issue_request())
        ts, nonce, signature = signed(issued, clock)
        fields = {
            "credential_id": issued.credential_id,
            "timestamp": ts,
            "nonce": nonce,
            "signature": signature,
        }
        fields[missing] = ""

        calls = []
        original = repository.get_by_key

        async def tracking_get(credential_id):
            calls.append(credential_id)
            return await original(credential_id)

        repository.get_by_key = tracking_get

        assert await manager.validate("merchant-1", **fields) is False
        assert calls == []

    @pytest.mark.asyncio
    async def test_unknown_credential(self, manager, clock):
        """Unknown credentials are rejected."""
        ts = format_timestamp(clock())

        assert await manager.validate("merchant-1", "missing", ts, "n", "sig") is False

    @pytest.mark.asyncio
    async def test_bad_signature(self, manager, issue_request, clock):
        """A signature made with another secret is rejected."""
        issued = await manager.issue("merchant-1", issue_request())
        ts = format_timestamp(clock())
        forged = sign("not-the-secret", ts, "n", "merchant-1", issued.credential_id)

        assert await manager.validate("merchant-1", issued.credential_id, ts, "n", forged) is False

    @pytest.mark.asyncio
    async def test_owner_mismatch(self, manager, issue_request, clock):
        """A credential presented for another owner is rejected."""
        issued = await manager.issue("merchant-1", issue_request())
        ts, nonce, signature = signed(issued, clock, owner_id="merchant-2")

        assert await manager.validate("merchant-2", issued.credential_id, ts, nonce, signature) is False

    @pytest.mark.asyncio
    async def test_owner_credential_rejects_admin_form(self, manager, issue_request, clock):
        """An owner credential signed without the owner field is rejected."""
        issued = await manager.issue("merchant-1", issue_request())
        ts = format_timestamp(clock())
        admin_form = sign(issued.secret, ts, "n", None, issued.credential_id)

        assert await manager.validate("", issued.credential_id, ts, "n", admin_form) is False
        assert await manager.validate("merchant-1", issued.credential_id, ts, "n", admin_form) is False

    @pytest.mark.asyncio
    async def test_admin_credential(self, manager, clock):
        """Admin credentials validate with the owner-less canonical form."""
        issued = await manager.issue(None, IssueCredentialRequest(service_name="billing"))
        ts = format_timestamp(clock())
        admin_form = sign(issued.secret, ts, "n", None, issued.credential_id)
        owner_form = sign(issued.secret, ts, "n", "merchant-1", issued.credential_id)

        assert await manager.validate(
            "", issued.credential_id, ts, "n", admin_form, service_name="billing"
        ) is True
        assert await manager.validate(
            "merchant-1", issued.credential_id, ts, "n", owner_form, service_name="billing"
        ) is False

    @pytest.mark.asyncio
    async def test_admin_branch_uses_credential_not_caller(self, manager, clock):
        """A caller-supplied owner id does not turn an admin credential into an owner one."""
        issued = await manager.issue(None, IssueCredentialRequest(service_name="billing"))
        ts = format_timestamp(clock())
        admin_form = sign(issued.secret, ts, "n", None, issued.credential_id)

        assert await manager.validate(
            "merchant-1", issued.credential_id, ts, "n", admin_form, service_name="billing"
        ) is True

    @pytest.mark.asyncio
    async def test_admin_wrong_service_name(self, manager, clock):
        """Naming another service selects another secret and fails."""
        issued = await manager.issue(None, IssueCredentialRequest(service_name="billing"))
        await manager.issue(None, IssueCredentialRequest(service_name="reports"))
        ts = format_timestamp(clock())
        admin_form = sign(issued.secret, ts, "n", None, issued.credential_id)

        assert await manager.validate(
            "", issued.credential_id, ts, "n", admin_form, service_name="reports"
        ) is False

    @pytest.mark.asyncio
    async def test_expired_is_flipped_lazily(self, manager, repository, issue_request, clock):
        """A credential past expiry is rejected and becomes EXPIRED."""
        issued = await manager.issue("merchant-1", issue_request(expiration_days=30))
        clock.advance(days=31)
        ts, nonce, signature = signed(issued, clock)

        assert await manager.validate("merchant-1", issued.credential_id, ts, nonce, signature) is False
        assert (await repository.get_by_key(issued.credential_id)).status == CredentialStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_rotated_is_rejected(self, manager, issue_request, clock):
        """The superseded credential stops working; the new one works."""
        issued = await manager.issue("merchant-1", issue_request())
        rotated = await manager.rotate(issued.credential_id)

        ts, nonce, signature = signed(issued, clock)
        assert await manager.validate("merchant-1", issued.credential_id, ts, nonce, signature) is False

        ts, nonce, signature = signed(rotated, clock, nonce="nonce-2")
        assert await manager.validate("merchant-1", rotated.credential_id, ts, nonce, signature) is True

    @pytest.mark.asyncio
    async def test_revoked_passes_by_default(self, manager, issue_request, clock):
        """Revoked credentials still validate; business logic applies its own policy."""
        issued = await manager.issue("merchant-1", issue_request())
        await manager.revoke(issued.credential_id)
        ts, nonce, signature = signed(issued, clock)

        assert await manager.validate("merchant-1", issued.credential_id, ts, nonce, signature) is True

    @pytest.mark.asyncio
    async def test_revoked_rejected_when_configured(
        self, repository, secret_store, owners, clock, issue_request
    ):
        """reject_revoked_credentials blocks revoked credentials at validation."""
        manager = CredentialManager(
            repository, secret_store, owners,
            settings=CredentialSettings(reject_revoked_credentials=True), clock=clock,
        )
        issued = await manager.issue("merchant-1", issue_request())
        await manager.revoke(issued.credential_id)
        ts, nonce, signature = signed(issued, clock)

        assert await manager.validate("merchant-1", issued.credential_id, ts, nonce, signature) is False

    @pytest.mark.asyncio
    async def test_records_last_used(self, manager, repository, issue_request, clock):
        """Successful validation stamps last_used_at."""
        issued = await manager.issue("merchant-1", issue_request())
        clock.advance(minutes=1)
        ts, nonce, signature = signed(issued, clock)

        await manager.validate("merchant-1", issued.credential_id, ts, nonce, signature)

        assert (await repository.get_by_key(issued.credential_id)).last_used_at == clock()

    @pytest.mark.asyncio
    async def test_store_failure_fails_closed(self, manager, secret_store, issue_request, clock):
        """Infrastructure errors become a rejection, not an exception."""
        issued = await manager.issue("merchant-1", issue_request())
        ts, nonce, signature = signed(issued, clock)

        async def broken_get(name):
            raise OSError("secret store unavailable")

        secret_store.get = broken_get

        assert await manager.validate("merchant-1", issued.credential_id, ts, nonce, signature) is False

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self, manager, repository, issue_request, clock):
        """A validation that misses its deadline is rejected."""
        issued = await manager.issue("merchant-1", issue_request())
        ts, nonce, signature = signed(issued, clock)

        async def slow_get(credential_id):
            await asyncio.sleep(3600)

        repository.get_by_key = slow_get

        assert await manager.validate(
            "merchant-1", issued.credential_id, ts, nonce, signature, timeout=0.05
        ) is False

    @pytest.mark.asyncio
    async def test_malformed_secret_fails_closed(self, manager, secret_store, issue_request, clock):
        """An unreadable stored secret rejects the request."""
        issued = await manager.issue("merchant-1", issue_request())
        name = manager.secret_names.owner_secret_name("merchant-1", issued.credential_id)
        await secret_store.put(name, "{not json")
        ts, nonce, signature = signed(issued, clock)

        assert await manager.validate("merchant-1", issued.credential_id, ts, nonce, signature) is False
