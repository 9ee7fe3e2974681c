"""
Request Authenticator Tests
===========================
End-to-end issue, sign, validate and replay scenarios.
"""

import pytest

from credential_core.auth import AuthDecision, BlockReason, RequestAuthenticator
from credential_core.signing import create_signed_headers, format_timestamp, parse_signed_headers


@pytest.fixture
def authenticator(manager, replay_guard):
    return RequestAuthenticator(manager, replay_guard)


def request_for(issued, clock, nonce="nonce-1", timestamp=None):
    headers = create_signed_headers(
        issued.secret,
        issued.credential_id,
        owner_id=issued.owner_id,
        service_name=issued.service_name,
        timestamp=timestamp or format_timestamp(clock()),
        nonce=nonce,
    )
    return parse_signed_headers(headers)


class TestRequestAuthenticator:
    """Tests for RequestAuthenticator.authenticate."""

    @pytest.mark.asyncio
    async def test_end_to_end_replay(self, manager, authenticator, issue_request, clock):
        """Issue, sign and validate; the identical replay fails; a fresh request later succeeds."""
        issued = await manager.issue("merchant-1", issue_request(rate_limit=1000))
        request = request_for(issued, clock)

        first = await authenticator.authenticate(request)
        assert first.decision == AuthDecision.ALLOW
        assert first.credential.id == issued.credential_id
        assert first.credential.rate_limit == 1000

        replay = await authenticator.authenticate(request)
        assert replay.decision == AuthDecision.BLOCK
        assert replay.reason_code == BlockReason.REPLAY_REJECTED

        clock.advance(minutes=6)

        stale = await authenticator.authenticate(request)
        assert stale.allowed is False

        fresh = await authenticator.authenticate(request_for(issued, clock, nonce="nonce-1"))
        assert fresh.allowed is True

    @pytest.mark.asyncio
    async def test_invalid_signature_does_not_consume_nonce(
        self, manager, authenticator, replay_guard, issue_request, clock
    ):
        """A forged request leaves the nonce available to the real caller."""
        issued = await manager.issue("merchant-1", issue_request())
        genuine = request_for(issued, clock, nonce="shared")
        forged = parse_signed_headers(create_signed_headers(
            "not-the-secret",
            issued.credential_id,
            owner_id=issued.owner_id,
            timestamp=genuine.timestamp,
            nonce="shared",
        ))

        blocked = await authenticator.authenticate(forged)
        allowed = await authenticator.authenticate(genuine)

        assert blocked.reason_code == BlockReason.INVALID_CREDENTIAL
        assert allowed.allowed is True

    @pytest.mark.asyncio
    async def test_missing_fields(self, authenticator):
        """Requests without the signature headers are blocked."""
        result = await authenticator.authenticate(parse_signed_headers({}))

        assert result.decision == AuthDecision.BLOCK
        assert result.reason_code == BlockReason.MISSING_FIELDS
        assert result.credential is None

    @pytest.mark.asyncio
    async def test_admin_request(self, manager, authenticator, clock):
        """Admin credentials authenticate with their service name."""
        from credential_core.lifecycle import IssueCredentialRequest

        issued = await manager.issue(None, IssueCredentialRequest(service_name="billing"))

        result = await authenticator.authenticate(request_for(issued, clock))

        assert result.allowed is True
        assert result.credential.is_admin is True
