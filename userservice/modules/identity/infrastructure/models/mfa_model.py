"""
MFA Models

SQLModel definitions for MFA methods, backup codes, verification sessions
and per-role enforcement policies.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Index, text
from sqlmodel import JSON, Column, Field, SQLModel

from userservice.modules.identity.domain.entities import (
    BackupCode,
    MFAEnforcementPolicy,
    MFAMethod,
    MFASession,
)
from userservice.modules.identity.domain.enums import EnforcementLevel, MFAMethodType, UserRole
from userservice.modules.identity.domain.value_objects import CodeHash

from .common import UTCDateTime, ensure_utc, utc_now


class MFAMethodModel(SQLModel, table=True):
    """Registered MFA method persistence model."""

    __tablename__ = "user_mfa_methods"
    __table_args__ = (
        # At most one primary method per user
        Index(
            "uq_user_mfa_methods_primary",
            "user_id",
            unique=True,
            sqlite_where=text("is_primary = 1"),
            postgresql_where=text("is_primary"),
        ),
    )

    id: UUID = Field(primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    method_type: str = Field(max_length=20)

    is_primary: bool = Field(default=False)
    is_enabled: bool = Field(default=True)

    # Secret material, never serialized
    secret_encrypted: str | None = Field(default=None)
    webauthn_data: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))

    phone_number: str | None = Field(default=None, max_length=20)
    email_address: str | None = Field(default=None, max_length=255)

    last_used_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)

    @classmethod
    def from_domain(cls, method: MFAMethod) -> "MFAMethodModel":
        return cls(
            id=method.id,
            user_id=method.user_id,
            method_type=method.method_type.value,
            is_primary=method.is_primary,
            is_enabled=method.is_enabled,
            secret_encrypted=method.secret_encrypted,
            webauthn_data=method.webauthn_data,
            phone_number=method.phone_number,
            email_address=method.email_address,
            last_used_at=method.last_used_at,
            created_at=method.created_at,
            updated_at=method.updated_at,
        )

    def to_domain(self) -> MFAMethod:
        return MFAMethod(
            entity_id=self.id,
            user_id=self.user_id,
            method_type=MFAMethodType(self.method_type),
            is_primary=self.is_primary,
            is_enabled=self.is_enabled,
            secret_encrypted=self.secret_encrypted,
            webauthn_data=self.webauthn_data,
            phone_number=self.phone_number,
            email_address=self.email_address,
            last_used_at=ensure_utc(self.last_used_at),
            created_at=ensure_utc(self.created_at),
            updated_at=ensure_utc(self.updated_at),
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"secret_encrypted", "webauthn_data"})


class BackupCodeModel(SQLModel, table=True):
    """Backup code persistence model."""

    __tablename__ = "mfa_backup_codes"

    id: UUID = Field(primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    code_hash: str = Field(max_length=64, index=True)

    is_used: bool = Field(default=False, index=True)
    used_at: datetime | None = Field(default=None, sa_type=UTCDateTime)

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    expires_at: datetime = Field(sa_type=UTCDateTime, index=True)

    @classmethod
    def from_domain(cls, code: BackupCode) -> "BackupCodeModel":
        return cls(
            id=code.id,
            user_id=code.user_id,
            code_hash=code.code_hash.value,
            is_used=code.is_used,
            used_at=code.used_at,
            created_at=code.created_at,
            expires_at=code.expires_at,
        )

    def to_domain(self) -> BackupCode:
        return BackupCode(
            entity_id=self.id,
            user_id=self.user_id,
            code_hash=CodeHash(self.code_hash),
            is_used=self.is_used,
            used_at=ensure_utc(self.used_at),
            created_at=ensure_utc(self.created_at),
            expires_at=ensure_utc(self.expires_at),
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"code_hash"})


class MFASessionModel(SQLModel, table=True):
    """Verification session persistence model."""

    __tablename__ = "mfa_sessions"

    id: UUID = Field(primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    method_type: str = Field(max_length=20)
    code_hash: str | None = Field(default=None, max_length=64)

    is_verified: bool = Field(default=False)
    verified_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    attempts: int = Field(default=0)
    max_attempts: int = Field(default=3)

    ip_address: str = Field(default="", max_length=45)
    user_agent: str = Field(default="")

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    expires_at: datetime = Field(sa_type=UTCDateTime, index=True)

    @classmethod
    def from_domain(cls, session: MFASession) -> "MFASessionModel":
        return cls(
            id=session.id,
            user_id=session.user_id,
            method_type=session.method_type.value,
            code_hash=session.code_hash.value if session.code_hash else None,
            is_verified=session.is_verified,
            verified_at=session.verified_at,
            attempts=session.attempts,
            max_attempts=session.max_attempts,
            ip_address=session.ip_address,
            user_agent=session.user_agent,
            created_at=session.created_at,
            updated_at=session.updated_at,
            expires_at=session.expires_at,
        )

    def to_domain(self) -> MFASession:
        session = MFASession(
            entity_id=self.id,
            user_id=self.user_id,
            method_type=MFAMethodType(self.method_type),
            code_hash=CodeHash(self.code_hash) if self.code_hash else None,
            is_verified=self.is_verified,
            verified_at=ensure_utc(self.verified_at),
            attempts=self.attempts,
            max_attempts=self.max_attempts,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            created_at=ensure_utc(self.created_at),
            expires_at=ensure_utc(self.expires_at),
        )
        session.updated_at = ensure_utc(self.updated_at)
        return session

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"code_hash"})


class MFAEnforcementPolicyModel(SQLModel, table=True):
    """Per-role enforcement policy persistence model."""

    __tablename__ = "mfa_enforcement_policies"

    id: UUID = Field(primary_key=True)
    role_name: str = Field(max_length=50, unique=True, index=True)
    primary_methods: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    alternative_methods: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    enforcement_level: str = Field(max_length=20)
    grace_period_days: int = Field(default=0)
    require_backup_codes: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)

    @classmethod
    def from_domain(cls, policy: MFAEnforcementPolicy) -> "MFAEnforcementPolicyModel":
        return cls(
            id=policy.id,
            role_name=policy.role.value,
            primary_methods=[m.value for m in policy.primary_methods],
            alternative_methods=[m.value for m in policy.alternative_methods],
            enforcement_level=policy.enforcement_level.value,
            grace_period_days=policy.grace_period_days,
            require_backup_codes=policy.require_backup_codes,
            created_at=policy.created_at,
            updated_at=policy.updated_at,
        )

    def to_domain(self) -> MFAEnforcementPolicy:
        return MFAEnforcementPolicy(
            entity_id=self.id,
            role=UserRole(self.role_name),
            primary_methods=[MFAMethodType(m) for m in self.primary_methods],
            alternative_methods=[MFAMethodType(m) for m in self.alternative_methods],
            enforcement_level=EnforcementLevel(self.enforcement_level),
            grace_period_days=self.grace_period_days,
            require_backup_codes=self.require_backup_codes,
            created_at=ensure_utc(self.created_at),
            updated_at=ensure_utc(self.updated_at),
        )
