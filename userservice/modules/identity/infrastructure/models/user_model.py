"""
User Model

SQLModel definition for user persistence. Enumerations are stored as their
text values. The password hash is stored here but never leaves through
``to_dict``.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlmodel import Field, SQLModel

from userservice.modules.identity.domain.entities.user import User
from userservice.modules.identity.domain.enums import DocumentType, UserRole, UserStatus
from userservice.modules.identity.domain.value_objects import OptionalField

from .common import UTCDateTime, ensure_utc, utc_now


class UserModel(SQLModel, table=True):
    """User persistence model."""

    __tablename__ = "users"

    # Identity
    id: UUID = Field(primary_key=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    email: str = Field(max_length=100, unique=True, index=True)
    document_number: str = Field(max_length=20, unique=True, index=True)
    document_type: str = Field(max_length=5)
    phone: str | None = Field(default=None, max_length=20)

    # Role and status
    role: str = Field(max_length=20, index=True)
    status: str = Field(default=UserStatus.ACTIVE.value, max_length=20)
    is_active: bool = Field(default=True, index=True)
    password_hash: str | None = Field(default=None)

    # Academic placement
    ficha_id: str | None = Field(default=None, max_length=7, index=True)
    sede_id: UUID | None = Field(default=None)
    program: str | None = Field(default=None, max_length=150, index=True)

    # Verification
    email_verified: bool = Field(default=False)
    email_verified_at: datetime | None = Field(default=None, sa_type=UTCDateTime)

    # Legal consent
    accepted_privacy_policy_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    accepted_terms_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    accepted_data_treatment_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    privacy_policy_version: str | None = Field(default=None, max_length=20)
    terms_version: str | None = Field(default=None, max_length=20)
    data_treatment_version: str | None = Field(default=None, max_length=20)
    acceptance_ip_address: str | None = Field(default=None, max_length=45)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    last_login: datetime | None = Field(default=None, sa_type=UTCDateTime)

    @classmethod
    def from_domain(cls, user: User) -> "UserModel":
        """Create model from domain aggregate."""
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            document_number=user.document_number,
            document_type=user.document_type.value,
            phone=user.phone.to_nullable(),
            role=user.role.value,
            status=user.status.value,
            is_active=user.is_active,
            password_hash=user.password_hash,
            ficha_id=user.ficha_id.to_nullable(),
            sede_id=user.sede_id.to_nullable(),
            program=user.program.to_nullable(),
            email_verified=user.email_verified,
            email_verified_at=user.email_verified_at,
            accepted_privacy_policy_at=user.accepted_privacy_policy_at,
            accepted_terms_at=user.accepted_terms_at,
            accepted_data_treatment_at=user.accepted_data_treatment_at,
            privacy_policy_version=user.privacy_policy_version,
            terms_version=user.terms_version,
            data_treatment_version=user.data_treatment_version,
            acceptance_ip_address=user.acceptance_ip_address,
            created_at=user.created_at,
            updated_at=user.updated_at,
            last_login=user.last_login,
        )

    def update_from_domain(self, user: User) -> None:
        """Copy every mutable column from the aggregate onto this row."""
        source = UserModel.from_domain(user)
        for key in UserModel.model_fields:
            if key != "id":
                setattr(self, key, getattr(source, key))

    def to_domain(self) -> User:
        """Convert to domain aggregate."""
        role = UserRole(self.role)
        ficha = (
            OptionalField.from_nullable(self.ficha_id)
            if role == UserRole.LEARNER
            else OptionalField.not_applicable()
        )
        return User(
            entity_id=self.id,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            document_number=self.document_number,
            document_type=DocumentType(self.document_type),
            role=role,
            status=UserStatus(self.status),
            is_active=self.is_active,
            phone=OptionalField.from_nullable(self.phone),
            ficha_id=ficha,
            sede_id=OptionalField.from_nullable(self.sede_id),
            program=OptionalField.from_nullable(self.program),
            password_hash=self.password_hash,
            email_verified=self.email_verified,
            email_verified_at=ensure_utc(self.email_verified_at),
            accepted_privacy_policy_at=ensure_utc(self.accepted_privacy_policy_at),
            accepted_terms_at=ensure_utc(self.accepted_terms_at),
            accepted_data_treatment_at=ensure_utc(self.accepted_data_treatment_at),
            privacy_policy_version=self.privacy_policy_version,
            terms_version=self.terms_version,
            data_treatment_version=self.data_treatment_version,
            acceptance_ip_address=self.acceptance_ip_address,
            created_at=ensure_utc(self.created_at),
            updated_at=ensure_utc(self.updated_at),
            last_login=ensure_utc(self.last_login),
        )

    def to_dict(self) -> dict[str, Any]:
        """Row as a dictionary without the password hash."""
        return self.model_dump(mode="json", exclude={"password_hash"})
