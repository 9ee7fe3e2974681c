"""
SQL Credential Repository
=========================
SQLAlchemy async implementation of the credential repository.

Usage:
    from credential_core.database import create_async_engine, get_session_factory, init_schema
    from credential_core.repository.sql import SqlCredentialRepository

    engine = create_async_engine("postgresql+asyncpg://...")
    await init_schema(engine)
    repository = SqlCredentialRepository(get_session_factory())
"""

from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    select,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import Base
from ..exceptions import CredentialNotFoundError, InvalidArgumentError
from ..models import Credential, CredentialStatus, ensure_utc
from .base import CredentialRepository

logger = structlog.get_logger(__name__)


class CredentialRecord(Base):
    """Credential metadata row. The secret itself lives in the secret store."""

    __tablename__ = "credentials"

    id = Column(String(128), primary_key=True)
    owner_id = Column(String(128), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    status = Column(String(16), nullable=False, default=CredentialStatus.ACTIVE.value)
    description = Column(Text)
    purpose = Column(String(50))
    rate_limit = Column(Integer, nullable=False, default=1000)
    allowed_endpoints = Column(JSON, nullable=False, default=list)
    is_admin = Column(Boolean, nullable=False, default=False)
    service_name = Column(String(100))

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True))
    last_rotated_at = Column(DateTime(timezone=True))
    last_used_at = Column(DateTime(timezone=True))
    revoked_at = Column(DateTime(timezone=True))

    onboarding_reference = Column(String(200))
    onboarding_timestamp = Column(DateTime(timezone=True))
    onboarding_admin_user_id = Column(String(128))
    created_by = Column(String(128))

    __table_args__ = (
        Index("ix_credentials_status_expires_at", "status", "expires_at"),
        Index("ix_credentials_admin_service", "is_admin", "service_name"),
    )

    _DATETIME_FIELDS = (
        "created_at",
        "updated_at",
        "expires_at",
        "last_rotated_at",
        "last_used_at",
        "revoked_at",
        "onboarding_timestamp",
    )
    _COPIED_FIELDS = (
        "owner_id",
        "name",
        "description",
        "purpose",
        "rate_limit",
        "is_admin",
        "service_name",
        "onboarding_reference",
        "onboarding_admin_user_id",
        "created_by",
    ) + _DATETIME_FIELDS

    def apply(self, credential: Credential, include_usage: bool = True) -> "CredentialRecord":
        """Copy the fields of a credential onto this row, last_used_at only if include_usage."""
        for name in self._COPIED_FIELDS:
            if name == "last_used_at" and not include_usage:
                continue
            setattr(self, name, getattr(credential, name))
        self.status = CredentialStatus(credential.status).value
        self.allowed_endpoints = list(credential.allowed_endpoints)
        return self

    def to_credential(self) -> Credential:
        values = {name: getattr(self, name) for name in self._COPIED_FIELDS}
        # SQLite returns naive datetimes even for timezone-aware columns
        for name in self._DATETIME_FIELDS:
            values[name] = ensure_utc(values[name])
        return Credential(
            id=self.id,
            status=CredentialStatus(self.status),
            allowed_endpoints=list(self.allowed_endpoints or []),
            **values,
        )


class SqlCredentialRepository(CredentialRepository):
    """Credential repository backed by any SQLAlchemy async engine."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_by_key(self, credential_id: str) -> Optional[Credential]:
        async with self._session_factory() as session:
            record = await session.get(CredentialRecord, credential_id)
            return record.to_credential() if record else None

    async def get_by_owner(self, owner_id: str) -> List[Credential]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CredentialRecord)
                .where(CredentialRecord.owner_id == owner_id)
                .order_by(CredentialRecord.created_at)
            )
            return [record.to_credential() for record in result.scalars()]

    async def get_admin_credential(self, service_name: str) -> Optional[Credential]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CredentialRecord)
                .where(
                    CredentialRecord.is_admin.is_(True),
                    CredentialRecord.service_name == service_name,
                    CredentialRecord.status == CredentialStatus.ACTIVE.value,
                )
                .order_by(CredentialRecord.created_at.desc())
                .limit(1)
            )
            record = result.scalars().first()
            return record.to_credential() if record else None

    async def create(self, credential: Credential) -> Credential:
        async with self._session_factory() as session:
            async with session.begin():
                if await session.get(CredentialRecord, credential.id) is not None:
                    raise InvalidArgumentError(
                        "Credential already exists", credential_id=credential.id
                    )
                session.add(CredentialRecord(id=credential.id).apply(credential))
        logger.debug("credential_row_created", status=credential.status.value)
        return credential.copy()

    async def update(self, credential: Credential) -> Credential:
        async with self._session_factory() as session:
            async with session.begin():
                record = await session.get(CredentialRecord, credential.id)
                if record is None:
                    raise CredentialNotFoundError(
                        "Credential not found", credential_id=credential.id
                    )
                updated = record.apply(credential, include_usage=False).to_credential()
        return updated

    async def record_usage(self, credential_id: str, used_at: datetime) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(CredentialRecord)
                    .where(CredentialRecord.id == credential_id)
                    .values(last_used_at=used_at)
                )

    async def find_expired(self, now: datetime) -> List[Credential]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CredentialRecord).where(
                    CredentialRecord.status == CredentialStatus.ACTIVE.value,
                    CredentialRecord.expires_at.is_not(None),
                    CredentialRecord.expires_at < now,
                )
            )
            return [record.to_credential() for record in result.scalars()]
