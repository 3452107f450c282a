"""
User Aggregate

The identity record. A user can only be built from validated fields, and the
mutators below are the only writers of activity, consent and verification
state. Every mutator refreshes ``updated_at``.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from userservice.core.domain.base import AggregateRoot, utc_now
from userservice.core.errors import ValidationError

from ..enums import DocumentType, UserRole, UserStatus
from ..events import (
    LegalPoliciesAccepted,
    UserActivated,
    UserCreated,
    UserDeactivated,
    UserEmailVerified,
    UserLoggedIn,
)
from ..validation import validate_ficha_id, validate_user_data
from ..value_objects import OptionalField


class User(AggregateRoot):
    """User aggregate root."""

    def __init__(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        document_number: str,
        document_type: DocumentType | str,
        role: UserRole,
        status: UserStatus = UserStatus.ACTIVE,
        is_active: bool = True,
        phone: OptionalField[str] | None = None,
        ficha_id: OptionalField[str] | None = None,
        sede_id: OptionalField[UUID] | None = None,
        program: OptionalField[str] | None = None,
        password_hash: str | None = None,
        email_verified: bool = False,
        email_verified_at: datetime | None = None,
        accepted_privacy_policy_at: datetime | None = None,
        accepted_terms_at: datetime | None = None,
        accepted_data_treatment_at: datetime | None = None,
        privacy_policy_version: str | None = None,
        terms_version: str | None = None,
        data_treatment_version: str | None = None,
        acceptance_ip_address: str | None = None,
        last_login: datetime | None = None,
        entity_id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.first_name = first_name
        self.last_name = last_name
        self.email = email
        self.document_number = document_number
        self.document_type = DocumentType(document_type)
        self.role = role
        self.status = status
        self.is_active = is_active
        self.phone = phone or OptionalField.unset()
        self.ficha_id = ficha_id or (
            OptionalField.unset() if role == UserRole.LEARNER else OptionalField.not_applicable()
        )
        self.sede_id = sede_id or OptionalField.unset()
        self.program = program or OptionalField.unset()
        self._password_hash = password_hash
        self.email_verified = email_verified
        self.email_verified_at = email_verified_at
        self.accepted_privacy_policy_at = accepted_privacy_policy_at
        self.accepted_terms_at = accepted_terms_at
        self.accepted_data_treatment_at = accepted_data_treatment_at
        self.privacy_policy_version = privacy_policy_version
        self.terms_version = terms_version
        self.data_treatment_version = data_treatment_version
        self.acceptance_ip_address = acceptance_ip_address
        self.last_login = last_login
        super().__init__(entity_id, created_at, updated_at)

    @classmethod
    def create(
        cls,
        first_name: str,
        last_name: str,
        email: str,
        document_number: str,
        document_type: DocumentType | str,
        role: UserRole | str,
        *,
        phone: str | None = None,
        ficha_id: str | None = None,
        sede_id: UUID | None = None,
        program: str | None = None,
    ) -> "User":
        """
        Create a new user from raw input.

        Raises:
            ValidationError: On the first field that fails validation, checked
                in the order first name, last name, email, document, role
        """
        data = validate_user_data(first_name, last_name, email, document_number, role)
        try:
            document_type = DocumentType(document_type)
        except ValueError as e:
            raise ValidationError(
                f"Document type is not valid: {document_type}",
                field="document_type",
                rule="choice",
            ) from e

        user = cls(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            document_number=data.document_number,
            document_type=document_type,
            role=data.role,
            phone=OptionalField.from_nullable(phone.strip() if phone else None),
            sede_id=OptionalField.from_nullable(sede_id),
            program=OptionalField.from_nullable(program.strip() if program else None),
        )
        if ficha_id is not None:
            user.assign_ficha(ficha_id)
            user.updated_at = user.created_at

        user.add_event(UserCreated(user_id=user.id, email=user.email, role=user.role.value))
        return user

    # ------------------------------------------------------------------ queries

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def password_hash(self) -> str | None:
        return self._password_hash

    def is_learner(self) -> bool:
        return self.role == UserRole.LEARNER

    def is_instructor(self) -> bool:
        return self.role == UserRole.INSTRUCTOR

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_coordinator(self) -> bool:
        return self.role == UserRole.COORDINATOR

    def is_director(self) -> bool:
        return self.role == UserRole.DIRECTOR

    def has_accepted_all_policies(self) -> bool:
        return (
            self.accepted_privacy_policy_at is not None
            and self.accepted_terms_at is not None
            and self.accepted_data_treatment_at is not None
        )

    def needs_policy_update(
        self,
        current_privacy_version: str,
        current_terms_version: str,
        current_data_version: str,
    ) -> bool:
        """
        True when consent is missing or any accepted version is outdated.

        A stored version of ``None`` never counts as outdated on its own.
        """
        if not self.has_accepted_all_policies():
            return True

        return (
            (self.privacy_policy_version is not None
             and self.privacy_policy_version != current_privacy_version)
            or (self.terms_version is not None
                and self.terms_version != current_terms_version)
            or (self.data_treatment_version is not None
                and self.data_treatment_version != current_data_version)
        )

    def can_access_system(self) -> bool:
        return self.is_active and self.has_accepted_all_policies()

    def access_denial_reason(self) -> str | None:
        if not self.is_active:
            return "inactive"
        if not self.has_accepted_all_policies():
            return "legal_policies_not_accepted"
        return None

    # ---------------------------------------------------------------- mutators

    def mark_logged_in(self, now: datetime | None = None) -> None:
        now = now or utc_now()
        self.last_login = now
        self.updated_at = now
        self.add_event(UserLoggedIn(user_id=self.id, logged_in_at=now))

    def activate(self) -> None:
        self.is_active = True
        self.status = UserStatus.ACTIVE
        self.mark_modified()
        self.add_event(UserActivated(user_id=self.id))

    def deactivate(self) -> None:
        self.is_active = False
        self.status = UserStatus.INACTIVE
        self.mark_modified()
        self.add_event(UserDeactivated(user_id=self.id))

    def accept_legal_policies(
        self,
        privacy_version: str,
        terms_version: str,
        data_version: str,
        ip_address: str,
        now: datetime | None = None,
    ) -> None:
        """Record consent for all three documents at once."""
        now = now or utc_now()
        self.accepted_privacy_policy_at = now
        self.accepted_terms_at = now
        self.accepted_data_treatment_at = now
        self.privacy_policy_version = privacy_version
        self.terms_version = terms_version
        self.data_treatment_version = data_version
        self.acceptance_ip_address = ip_address
        self.updated_at = now
        self.add_event(
            LegalPoliciesAccepted(
                user_id=self.id,
                privacy_policy_version=privacy_version,
                terms_version=terms_version,
                data_treatment_version=data_version,
                ip_address=ip_address,
            )
        )

    def verify_email(self, now: datetime | None = None) -> None:
        if self.email_verified:
            return
        now = now or utc_now()
        self.email_verified = True
        self.email_verified_at = now
        self.updated_at = now
        self.add_event(UserEmailVerified(user_id=self.id, verified_at=now))

    def assign_ficha(self, ficha_id: str) -> None:
        """Attach a learner to a cohort. Only learners belong to a ficha."""
        if not self.is_learner():
            raise ValidationError(
                "Only learners can be assigned to a ficha",
                field="ficha_id",
                rule="role",
                details={"role": self.role.value},
            )
        self.ficha_id = OptionalField.present(validate_ficha_id(ficha_id))
        self.mark_modified()

    def set_password_hash(self, password_hash: str) -> None:
        if not password_hash:
            raise ValidationError("Password hash cannot be empty", field="password", rule="required")
        self._password_hash = password_hash
        self.mark_modified()

    def to_dict(self) -> dict[str, Any]:
        """Outward representation; the password hash is never included."""
        data = super().to_dict()
        data["full_name"] = self.full_name
        for key in ("phone", "ficha_id", "sede_id", "program"):
            value = getattr(self, key).get()
            data[key] = str(value) if value is not None else None
        return data

    def __repr__(self) -> str:
        return f"User(id={self.id}, email={self.email!r}, role={self.role.value})"
