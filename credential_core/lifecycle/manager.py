"""
Credential Lifecycle Manager
============================
Issues, rotates, revokes, updates and validates credentials.

Metadata rows live in a CredentialRepository and key material in a
SecretStore. Neither offers multi-row transactions, so every operation that
writes both orders its writes so a failure is undone by compensating writes.

Usage:
    manager = CredentialManager(repository, secret_store, owner_directory)

    issued = await manager.issue("merchant-1", IssueCredentialRequest(onboarding=...))
    ok = await manager.validate("merchant-1", issued.credential_id, ts, nonce, signature)
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional, TypeVar

import structlog

from ..config import CredentialSettings
from ..exceptions import (
    ConsistencyError,
    CredentialError,
    CredentialNotFoundError,
    InvalidArgumentError,
    InvalidStateError,
    LimitExceededError,
    OperationTimeoutError,
    OwnerMismatchError,
    OwnerNotFoundError,
)
from ..logging_setup import mask_credential_id
from ..metrics import record_operation
from ..models import (
    Credential,
    CredentialScope,
    CredentialSecret,
    CredentialStatus,
    ensure_utc,
    utcnow,
)
from ..repository.base import CredentialRepository, OwnerDirectory
from ..secret_store.base import SecretStore
from ..secret_store.naming import SecretNameFormatter
from ..signing.signature import verify
from .compensation import Compensation
from .endpoints import admin_patterns
from .keys import generate_credential_id, generate_secret, rotated_name, unique_name
from .locks import KeyedLock
from .requests import (
    CredentialInfo,
    IssueCredentialRequest,
    IssuedCredential,
    OnboardingMetadata,
    RotateCredentialRequest,
    UpdateCredentialRequest,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CredentialManager:
    """
    Orchestrates the credential lifecycle.

    Lifecycle operations raise CredentialError subclasses. validate() never
    raises for an authentication failure; it returns False.
    """

    def __init__(
        self,
        repository: CredentialRepository,
        secret_store: SecretStore,
        owners: OwnerDirectory,
        settings: Optional[CredentialSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        secret_names: Optional[SecretNameFormatter] = None,
        compensation_attempts: int = 3,
    ):
        self.repository = repository
        self.secret_store = secret_store
        self.owners = owners
        self.settings = settings or CredentialSettings()
        self.secret_names = secret_names or SecretNameFormatter(
            self.settings.owner_secret_name_format,
            self.settings.admin_secret_name_format,
        )
        self.compensation_attempts = compensation_attempts
        self._clock = clock or utcnow
        self._locks = KeyedLock()

    # =========================================================================
    # Helpers
    # =========================================================================

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    @staticmethod
    def _lock_key(credential: Credential) -> str:
        if credential.is_admin:
            return f"admin:{credential.service_name}"
        return credential.owner_id

    def _service_name(self, requested: Optional[str]) -> str:
        return requested or self.settings.default_service_name

    def _secret_name(self, credential: Credential, service_name: Optional[str] = None) -> str:
        if credential.is_admin:
            return self.secret_names.admin_secret_name(
                self._service_name(service_name or credential.service_name)
            )
        return self.secret_names.owner_secret_name(credential.owner_id, credential.id)

    def _check_endpoints(self, patterns: List[str], is_admin: bool) -> None:
        if is_admin:
            return
        forbidden = admin_patterns(patterns, self.settings.admin_endpoint_prefix)
        if forbidden:
            raise InvalidArgumentError(
                "Administrative endpoints can only be granted to admin credentials",
                details={"forbidden_endpoints": forbidden},
            )

    async def _run(
        self,
        operation: str,
        work: Awaitable[T],
        timeout: Optional[float],
    ) -> T:
        """Apply the caller deadline and record the outcome."""
        try:
            if timeout is None:
                result = await work
            else:
                result = await asyncio.wait_for(work, timeout)
        except asyncio.TimeoutError:
            record_operation(operation, "timeout")
            logger.warning("credential_operation_timed_out", operation=operation, timeout=timeout)
            raise OperationTimeoutError(f"{operation} did not complete within {timeout}s")
        except CredentialError as e:
            record_operation(operation, e.code.lower())
            raise
        except Exception:
            record_operation(operation, "error")
            raise
        record_operation(operation, "success")
        return result

    async def _rollback(
        self,
        operation: str,
        undo: Compensation,
        error: BaseException,
        credential_id: Optional[str],
    ) -> None:
        """
        Unwind registered writes after a failure.

        Raises ConsistencyError (chained to the original error) when an undo
        step could not be applied. Cancellation always propagates unchanged.
        """
        if not len(undo):
            return
        logger.warning(
            "credential_operation_rolling_back",
            operation=operation,
            credential_id=mask_credential_id(credential_id),
            error=repr(error),
        )
        failed = await asyncio.shield(undo.unwind())
        if not failed:
            return
        logger.error(
            "credential_inconsistent_after_rollback",
            operation=operation,
            credential_id=mask_credential_id(credential_id),
            failed_steps=failed,
        )
        if isinstance(error, Exception):
            raise ConsistencyError(
                f"{operation} failed and could not be fully rolled back",
                credential_id=credential_id,
                details={"failed_steps": failed, "cause": str(error)},
            ) from error

    async def _load(self, credential_id: str, owner_ref: Optional[str]) -> Credential:
        """
        Fetch a credential, checking it belongs to the given owner.

        Raises:
            CredentialNotFoundError: No such credential
            OwnerNotFoundError: The owner reference does not resolve
            OwnerMismatchError: The credential belongs to someone else
        """
        if not credential_id:
            raise InvalidArgumentError("Credential id is required")

        credential = await self.repository.get_by_key(credential_id)
        if credential is None:
            raise CredentialNotFoundError("Credential not found", credential_id=credential_id)

        if owner_ref:
            owner = await self.owners.resolve(owner_ref)
            if owner is None:
                raise OwnerNotFoundError("Owner not found", credential_id=credential_id)
            if credential.owner_id != owner.id:
                raise OwnerMismatchError(
                    "Credential not found for this owner", credential_id=credential_id
                )
        return credential

    async def _reload(self, credential: Credential) -> Credential:
        """Re-read a row once its owner lock is held."""
        fresh = await self.repository.get_by_key(credential.id)
        if fresh is None:
            raise CredentialNotFoundError("Credential not found", credential_id=credential.id)
        return fresh

    def _require_active(self, credential: Credential, action: str) -> None:
        if credential.status != CredentialStatus.ACTIVE:
            raise InvalidStateError(
                f"Cannot {action} a credential in status {credential.status.value}",
                credential_id=credential.id,
                details={"status": credential.status.value},
            )
        if credential.is_past_expiry(self.now()):
            raise InvalidStateError(
                f"Cannot {action} an expired credential",
                credential_id=credential.id,
                details={"status": CredentialStatus.EXPIRED.value},
            )

    @staticmethod
    def _apply_onboarding(credential: Credential, onboarding: Optional[OnboardingMetadata]) -> None:
        if onboarding is None:
            return
        credential.onboarding_admin_user_id = onboarding.admin_user_id
        credential.onboarding_reference = onboarding.reference
        credential.onboarding_timestamp = ensure_utc(onboarding.timestamp)

    def _issued(self, credential: Credential, secret: str) -> IssuedCredential:
        return IssuedCredential(
            credential_id=credential.id,
            secret=secret,
            owner_id=credential.owner_id,
            name=credential.name,
            expires_at=credential.expires_at,
            rate_limit=credential.rate_limit,
            allowed_endpoints=list(credential.allowed_endpoints),
            purpose=credential.purpose,
            is_admin=credential.is_admin,
            service_name=credential.service_name,
        )

    def _new_secret(self, credential: Credential, value: str) -> CredentialSecret:
        return CredentialSecret(
            credential_id=credential.id,
            secret=value,
            owner_id=credential.owner_id,
            status=CredentialStatus.ACTIVE,
            created_at=credential.created_at,
            scope=credential.scope,
            service_name=credential.service_name,
        )

    async def _write_secret(self, name: str, record: CredentialSecret) -> None:
        await self.secret_store.put(name, record.to_json())

    async def _restore_secret(self, name: str, raw: Optional[str], fallback: CredentialSecret) -> None:
        """Put back a secret's previous JSON, or tombstone it if there was none."""
        if raw is not None:
            await self.secret_store.put(name, raw)
        else:
            await self._write_secret(name, fallback.mark(CredentialStatus.REVOKED, self.now()))

    async def _revoke_row_if_present(self, credential_id: str) -> None:
        row = await self.repository.get_by_key(credential_id)
        if row is None or row.status == CredentialStatus.REVOKED:
            return
        now = self.now()
        await self.repository.update(
            row.copy(status=CredentialStatus.REVOKED, revoked_at=now, updated_at=now)
        )

    async def _store_new_credential(
        self,
        credential: Credential,
        secret_value: str,
        undo: Compensation,
    ) -> None:
        """Secret first, then metadata, so a row is never visible without its secret."""
        name = self._secret_name(credential)
        record = self._new_secret(credential, secret_value)
        previous = await self.secret_store.get(name) if credential.is_admin else None

        async with undo.step("restore_secret", self._restore_secret, name, previous, record):
            await self._write_secret(name, record)
        async with undo.step("revoke_new_row", self._revoke_row_if_present, credential.id):
            await self.repository.create(credential)

    # =========================================================================
    # Issue
    # =========================================================================

    async def issue(
        self,
        owner_ref: Optional[str],
        request: Optional[IssueCredentialRequest] = None,
        created_by: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> IssuedCredential:
        """
        Issue a new credential.

        Args:
            owner_ref: Owner id or external id; empty issues an admin credential
            request: Issuance options
            created_by: Actor recorded on the row
            timeout: Deadline in seconds

        Returns:
            The new credential and its secret. The secret is not retrievable again.

        Raises:
            OwnerNotFoundError: Owner does not resolve
            LimitExceededError: Owner already has the maximum of ACTIVE credentials
            InvalidArgumentError: Missing onboarding metadata or forbidden endpoints
            InvalidStateError: The service already has an ACTIVE admin credential
        """
        request = request or IssueCredentialRequest()
        if owner_ref:
            work = self._issue_owner(owner_ref, request, created_by)
        else:
            work = self._issue_admin(request, created_by)
        return await self._run("issue", work, timeout)

    def _build_credential(
        self,
        request: IssueCredentialRequest,
        name: str,
        owner_id: Optional[str],
        service_name: Optional[str],
        created_by: Optional[str],
    ) -> Credential:
        now = self.now()
        days = request.expiration_days or self.settings.default_expiration_days
        credential = Credential(
            id=generate_credential_id(),
            owner_id=owner_id,
            name=name,
            status=CredentialStatus.ACTIVE,
            description=request.description,
            purpose=request.purpose,
            rate_limit=request.rate_limit or self.settings.default_rate_limit,
            allowed_endpoints=list(request.allowed_endpoints),
            is_admin=owner_id is None,
            service_name=service_name,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(days=days),
            created_by=created_by,
        )
        self._apply_onboarding(credential, request.onboarding)
        return credential

    async def _issue_owner(
        self,
        owner_ref: str,
        request: IssueCredentialRequest,
        created_by: Optional[str],
    ) -> IssuedCredential:
        if request.onboarding is None:
            raise InvalidArgumentError("Onboarding metadata is required for owner credentials")
        self._check_endpoints(request.allowed_endpoints, is_admin=False)

        owner = await self.owners.resolve(owner_ref)
        if owner is None:
            raise OwnerNotFoundError(f"Owner not found: {owner_ref}")

        async with self._locks.hold(owner.id):
            existing = await self.repository.get_by_owner(owner.id)
            now = self.now()
            active = [
                c for c in existing
                if c.status == CredentialStatus.ACTIVE and not c.is_past_expiry(now)
            ]
            limit = self.settings.max_active_credentials_per_owner
            if len(active) >= limit:
                raise LimitExceededError(
                    f"Owner has reached the maximum of {limit} active credentials",
                    details={"owner_id": owner.id, "active": len(active), "limit": limit},
                )

            name = unique_name(request.name or owner.name, [c.name for c in existing])
            credential = self._build_credential(request, name, owner.id, None, created_by)
            secret = generate_secret()

            undo = Compensation(self.compensation_attempts)
            try:
                await self._store_new_credential(credential, secret, undo)
            except BaseException as e:
                await self._rollback("issue", undo, e, credential.id)
                raise

        logger.info(
            "credential_issued",
            credential_id=mask_credential_id(credential.id),
            owner_id=owner.id,
            scope=CredentialScope.OWNER.value,
            active_count=len(active) + 1,
        )
        return self._issued(credential, secret)

    async def _issue_admin(
        self,
        request: IssueCredentialRequest,
        created_by: Optional[str],
    ) -> IssuedCredential:
        service_name = self._service_name(request.service_name)

        async with self._locks.hold(f"admin:{service_name}"):
            current = await self.repository.get_admin_credential(service_name)
            if current is not None and current.is_past_expiry(self.now()):
                await self._expire_locked(current, self.now())
                current = None
            if current is not None:
                raise InvalidStateError(
                    f"Service {service_name} already has an active admin credential; rotate it instead",
                    credential_id=current.id,
                )

            name = (request.name or "").strip() or f"{service_name} admin"
            credential = self._build_credential(request, name, None, service_name, created_by)
            secret = generate_secret()

            undo = Compensation(self.compensation_attempts)
            try:
                await self._store_new_credential(credential, secret, undo)
            except BaseException as e:
                await self._rollback("issue", undo, e, credential.id)
                raise

        logger.info(
            "credential_issued",
            credential_id=mask_credential_id(credential.id),
            service_name=service_name,
            scope=CredentialScope.ADMIN.value,
        )
        return self._issued(credential, secret)

    # =========================================================================
    # Rotate
    # =========================================================================

    async def rotate(
        self,
        credential_id: str,
        owner_ref: Optional[str] = None,
        request: Optional[RotateCredentialRequest] = None,
        timeout: Optional[float] = None,
    ) -> IssuedCredential:
        """
        Replace an ACTIVE credential with a new one carrying the same settings.

        The old credential becomes ROTATED and is renamed with a timestamp
        suffix; the new one takes over its name and starts a fresh lifetime of
        default_expiration_days.

        Raises:
            CredentialNotFoundError: Unknown credential, owner or owner mismatch
            InvalidStateError: Credential is not ACTIVE
        """
        return await self._run(
            "rotate",
            self._rotate(credential_id, owner_ref, request or RotateCredentialRequest()),
            timeout,
        )

    async def _rotate(
        self,
        credential_id: str,
        owner_ref: Optional[str],
        request: RotateCredentialRequest,
    ) -> IssuedCredential:
        current = await self._load(credential_id, owner_ref)

        async with self._locks.hold(self._lock_key(current)):
            current = await self._reload(current)
            self._require_active(current, "rotate")

            now = self.now()
            replacement = current.copy(
                id=generate_credential_id(),
                status=CredentialStatus.ACTIVE,
                created_at=now,
                updated_at=now,
                expires_at=now + timedelta(days=self.settings.default_expiration_days),
                last_rotated_at=None,
                last_used_at=None,
                revoked_at=None,
            )
            self._apply_onboarding(replacement, request.onboarding)
            superseded_name = rotated_name(current.name, now)
            if not current.is_admin:
                siblings = await self.repository.get_by_owner(current.owner_id)
                superseded_name = unique_name(
                    superseded_name, [c.name for c in siblings if c.id != current.id]
                )
            superseded = current.copy(
                status=CredentialStatus.ROTATED,
                name=superseded_name,
                last_rotated_at=now,
                updated_at=now,
            )
            secret = generate_secret()

            old_name = self._secret_name(current)
            new_name = self._secret_name(replacement)
            old_raw = await self.secret_store.get(old_name)
            new_record = self._new_secret(replacement, secret)

            undo = Compensation(self.compensation_attempts)
            try:
                # Admin credentials share one secret name per service, so this
                # overwrites the old admin secret; the undo puts it back.
                async with undo.step(
                    "restore_secret",
                    self._restore_secret,
                    new_name,
                    old_raw if new_name == old_name else None,
                    new_record,
                ):
                    await self._write_secret(new_name, new_record)

                if new_name != old_name and old_raw is not None:
                    old_record = CredentialSecret.from_json(old_raw)
                    async with undo.step(
                        "restore_old_secret", self.secret_store.put, old_name, old_raw
                    ):
                        await self.secret_store.update(
                            old_name, old_record.mark(CredentialStatus.ROTATED, now).to_json()
                        )

                async with undo.step(
                    "revoke_new_row", self._revoke_row_if_present, replacement.id
                ):
                    await self.repository.create(replacement)

                # Last, so a failure anywhere above leaves the old credential ACTIVE
                async with undo.step("restore_old_row", self.repository.update, current):
                    await self.repository.update(superseded)
            except BaseException as e:
                await self._rollback("rotate", undo, e, current.id)
                raise

        logger.info(
            "credential_rotated",
            credential_id=mask_credential_id(current.id),
            new_credential_id=mask_credential_id(replacement.id),
            owner_id=current.owner_id,
            scope=current.scope.value,
            reason=request.reason,
        )
        return self._issued(replacement, secret)

    async def rotate_admin(
        self,
        service_name: Optional[str] = None,
        request: Optional[RotateCredentialRequest] = None,
        timeout: Optional[float] = None,
    ) -> IssuedCredential:
        """Rotate the ACTIVE admin credential of a service."""
        service_name = self._service_name(service_name)
        current = await self.repository.get_admin_credential(service_name)
        if current is None:
            raise CredentialNotFoundError(f"No active admin credential for service {service_name}")
        return await self.rotate(current.id, request=request, timeout=timeout)

    # =========================================================================
    # Revoke
    # =========================================================================

    async def revoke(
        self,
        credential_id: str,
        owner_ref: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Revoke a credential and its secret together.

        Revoking an already REVOKED credential succeeds without writing.

        Raises:
            CredentialNotFoundError: Unknown credential, owner or owner mismatch
            InvalidStateError: Credential is ROTATED or EXPIRED
        """
        return await self._run("revoke", self._revoke(credential_id, owner_ref), timeout)

    async def _revoke(self, credential_id: str, owner_ref: Optional[str]) -> bool:
        current = await self._load(credential_id, owner_ref)

        async with self._locks.hold(self._lock_key(current)):
            current = await self._reload(current)
            if current.status == CredentialStatus.REVOKED:
                logger.info(
                    "credential_already_revoked",
                    credential_id=mask_credential_id(current.id),
                )
                return True
            if current.status != CredentialStatus.ACTIVE:
                raise InvalidStateError(
                    f"Cannot revoke a credential in status {current.status.value}",
                    credential_id=current.id,
                    details={"status": current.status.value},
                )

            now = self.now()
            revoked = current.copy(
                status=CredentialStatus.REVOKED, revoked_at=now, updated_at=now
            )

            secret_name = self._secret_name(current)
            raw = await self.secret_store.get(secret_name)
            record = CredentialSecret.from_json(raw) if raw is not None else None
            if record is not None and record.credential_id != current.id:
                # Admin secret already taken over by a newer credential
                record = None
            if record is None:
                logger.warning(
                    "credential_secret_missing",
                    credential_id=mask_credential_id(current.id),
                )

            undo = Compensation(self.compensation_attempts)
            try:
                if record is not None:
                    async with undo.step("restore_secret", self.secret_store.put, secret_name, raw):
                        await self.secret_store.update(
                            secret_name, record.mark(CredentialStatus.REVOKED, now).to_json()
                        )
                async with undo.step("restore_row", self.repository.update, current):
                    await self.repository.update(revoked)
            except BaseException as e:
                await self._rollback("revoke", undo, e, current.id)
                raise

        logger.info(
            "credential_revoked",
            credential_id=mask_credential_id(current.id),
            owner_id=current.owner_id,
            scope=current.scope.value,
        )
        return True

    async def revoke_admin(
        self,
        service_name: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Revoke the ACTIVE admin credential of a service."""
        service_name = self._service_name(service_name)
        current = await self.repository.get_admin_credential(service_name)
        if current is None:
            raise CredentialNotFoundError(f"No active admin credential for service {service_name}")
        return await self.revoke(current.id, timeout=timeout)

    # =========================================================================
    # Update
    # =========================================================================

    async def update(
        self,
        credential_id: str,
        request: UpdateCredentialRequest,
        owner_ref: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CredentialInfo:
        """
        Change the mutable settings of an ACTIVE credential.

        Raises:
            CredentialNotFoundError: Unknown credential, owner or owner mismatch
            InvalidStateError: Credential is not ACTIVE
            InvalidArgumentError: Admin endpoints requested for an owner credential
        """
        return await self._run("update", self._update(credential_id, request, owner_ref), timeout)

    async def _update(
        self,
        credential_id: str,
        request: UpdateCredentialRequest,
        owner_ref: Optional[str],
    ) -> CredentialInfo:
        current = await self._load(credential_id, owner_ref)

        async with self._locks.hold(self._lock_key(current)):
            current = await self._reload(current)
            self._require_active(current, "update")

            changes = {"updated_at": self.now()}
            if request.description is not None:
                changes["description"] = request.description
            if request.rate_limit is not None:
                changes["rate_limit"] = request.rate_limit
            if request.allowed_endpoints is not None:
                self._check_endpoints(request.allowed_endpoints, current.is_admin)
                changes["allowed_endpoints"] = list(request.allowed_endpoints)

            updated = current.copy(**changes)
            self._apply_onboarding(updated, request.onboarding)
            updated = await self.repository.update(updated)

        logger.info(
            "credential_updated",
            credential_id=mask_credential_id(updated.id),
            fields=sorted(k for k in changes if k != "updated_at"),
        )
        return CredentialInfo.from_credential(updated, self.now())

    # =========================================================================
    # Expiry
    # =========================================================================

    async def _expire_locked(self, credential: Credential, now: datetime) -> None:
        await self.repository.update(
            credential.copy(status=CredentialStatus.EXPIRED, updated_at=now)
        )
        logger.info(
            "credential_expired",
            credential_id=mask_credential_id(credential.id),
            owner_id=credential.owner_id,
        )

    async def expire(self, credential_id: str) -> bool:
        """
        Flip an ACTIVE credential past its expiry to EXPIRED.

        Returns:
            True if this call made the transition
        """
        credential = await self.repository.get_by_key(credential_id)
        if credential is None:
            return False

        async with self._locks.hold(self._lock_key(credential)):
            credential = await self.repository.get_by_key(credential_id)
            now = self.now()
            if (
                credential is None
                or credential.status != CredentialStatus.ACTIVE
                or not credential.is_past_expiry(now)
            ):
                return False
            await self._expire_locked(credential, now)
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_credentials(self, owner_ref: str) -> List[CredentialInfo]:
        """Every credential of an owner, oldest first."""
        owner = await self.owners.resolve(owner_ref)
        if owner is None:
            raise OwnerNotFoundError(f"Owner not found: {owner_ref}")
        now = self.now()
        credentials = await self.repository.get_by_owner(owner.id)
        return [
            CredentialInfo.from_credential(c, now)
            for c in sorted(credentials, key=lambda c: c.created_at)
        ]

    async def get_credential_info(
        self,
        credential_id: str,
        owner_ref: Optional[str] = None,
    ) -> Optional[CredentialInfo]:
        try:
            credential = await self._load(credential_id, owner_ref)
        except CredentialNotFoundError:
            return None
        return CredentialInfo.from_credential(credential, self.now())

    # =========================================================================
    # Validate
    # =========================================================================

    async def validate(
        self,
        owner_ref: Optional[str],
        credential_id: str,
        timestamp: str,
        nonce: str,
        signature: str,
        service_name: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Check a signed request's credential and signature.

        Replay protection is not applied here; see RequestAuthenticator.

        Returns:
            True if the signature is valid for a usable credential
        """
        credential = await self.verify_request(
            owner_ref, credential_id, timestamp, nonce, signature,
            service_name=service_name, timeout=timeout,
        )
        return credential is not None

    async def verify_request(
        self,
        owner_ref: Optional[str],
        credential_id: str,
        timestamp: str,
        nonce: str,
        signature: str,
        service_name: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Optional[Credential]:
        """
        Like validate(), returning the accepted credential instead of a bool.

        Never raises for authentication or infrastructure failures; both
        yield None. Cancellation propagates.
        """
        if not (credential_id and timestamp and nonce and signature):
            logger.info("credential_validation_rejected", reason="missing_field")
            return None

        work = self._verify(owner_ref, credential_id, timestamp, nonce, signature, service_name)
        try:
            if timeout is None:
                return await work
            return await asyncio.wait_for(work, timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "credential_validation_timed_out",
                credential_id=mask_credential_id(credential_id),
                timeout=timeout,
            )
            return None
        except Exception as e:
            logger.error(
                "credential_validation_error",
                credential_id=mask_credential_id(credential_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    def _reject(self, reason: str, credential_id: str) -> None:
        logger.info(
            "credential_validation_rejected",
            reason=reason,
            credential_id=mask_credential_id(credential_id),
        )

    async def _verify(
        self,
        owner_ref: Optional[str],
        credential_id: str,
        timestamp: str,
        nonce: str,
        signature: str,
        service_name: Optional[str],
    ) -> Optional[Credential]:
        credential = await self.repository.get_by_key(credential_id)
        if credential is None:
            return self._reject("not_found", credential_id)

        if credential.status == CredentialStatus.EXPIRED:
            return self._reject("expired", credential_id)
        if credential.status == CredentialStatus.ROTATED:
            return self._reject("rotated", credential_id)
        if credential.status == CredentialStatus.REVOKED and self.settings.reject_revoked_credentials:
            return self._reject("revoked", credential_id)
        if credential.is_past_expiry(self.now()):
            if credential.status == CredentialStatus.ACTIVE:
                await self.expire(credential.id)
            return self._reject("expired", credential_id)

        if credential.is_admin:
            canonical_owner = None
        else:
            # Owner credentials are only ever signed with the owner field present
            if not owner_ref:
                return self._reject("owner_required", credential_id)
            owner = await self.owners.resolve(owner_ref)
            if owner is None or owner.id != credential.owner_id:
                return self._reject("owner_mismatch", credential_id)
            canonical_owner = owner_ref

        raw = await self.secret_store.get(self._secret_name(credential, service_name))
        if raw is None:
            return self._reject("secret_missing", credential_id)
        record = CredentialSecret.from_json(raw)
        if record.credential_id != credential.id:
            return self._reject("secret_mismatch", credential_id)
        if record.is_revoked and credential.status != CredentialStatus.REVOKED:
            return self._reject("secret_revoked", credential_id)

        if not verify(signature, record.secret, timestamp, nonce, canonical_owner, credential.id):
            return self._reject("bad_signature", credential_id)

        if self.settings.track_last_used:
            try:
                await self.repository.record_usage(credential.id, self.now())
            except Exception as e:
                logger.warning(
                    "credential_usage_not_recorded",
                    credential_id=mask_credential_id(credential.id),
                    error=str(e),
                )

        logger.debug(
            "credential_validated",
            credential_id=mask_credential_id(credential.id),
            status=credential.status.value,
            scope=credential.scope.value,
        )
        return credential
