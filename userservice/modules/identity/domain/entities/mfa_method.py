"""
MFA Method Entity

One configured second factor for a user. Secret material (encrypted TOTP
secret, WebAuthn credential) is write-only from the outside: it is kept for
verification and persistence but never appears in ``to_dict``.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from userservice.core.domain.base import AggregateRoot, utc_now
from userservice.core.errors import ValidationError

from ..enums import MFAMethodType
from ..errors import MultiplePrimaryMethodsError
from ..events import MFAMethodRegistered
from ..validation import validate_email

SECRET_FIELDS = frozenset({"secret_encrypted", "webauthn_data"})


class MFAMethod(AggregateRoot):
    """A user's registered MFA factor."""

    def __init__(
        self,
        *,
        user_id: UUID,
        method_type: MFAMethodType,
        is_primary: bool = False,
        is_enabled: bool = True,
        secret_encrypted: str | None = None,
        phone_number: str | None = None,
        email_address: str | None = None,
        webauthn_data: dict[str, Any] | None = None,
        last_used_at: datetime | None = None,
        entity_id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.method_type = method_type
        self.is_primary = is_primary
        self.is_enabled = is_enabled
        self.secret_encrypted = secret_encrypted
        self.phone_number = phone_number
        self.email_address = email_address
        self.webauthn_data = webauthn_data
        self.last_used_at = last_used_at
        super().__init__(entity_id, created_at, updated_at)

    @classmethod
    def create(
        cls,
        user_id: UUID,
        method_type: MFAMethodType | str,
        *,
        is_primary: bool = False,
        secret_encrypted: str | None = None,
        phone_number: str | None = None,
        email_address: str | None = None,
        webauthn_data: dict[str, Any] | None = None,
    ) -> "MFAMethod":
        """
        Register a new method after checking its type-specific data.

        Raises:
            ValidationError: Unknown method type or missing contact/secret data
        """
        method_type = cls.parse_type(method_type)

        if method_type == MFAMethodType.TOTP and not secret_encrypted:
            raise ValidationError(
                "TOTP methods require an encrypted secret", field="secret_encrypted", rule="required"
            )
        if method_type == MFAMethodType.SMS:
            phone_number = (phone_number or "").strip()
            if not phone_number:
                raise ValidationError(
                    "SMS methods require a phone number", field="phone_number", rule="required"
                )
        if method_type == MFAMethodType.EMAIL_OTP:
            email_address = validate_email(email_address or "")
        if method_type == MFAMethodType.WEBAUTHN and not webauthn_data:
            raise ValidationError(
                "WebAuthn methods require credential data", field="webauthn_data", rule="required"
            )

        method = cls(
            user_id=user_id,
            method_type=method_type,
            is_primary=is_primary,
            secret_encrypted=secret_encrypted if method_type == MFAMethodType.TOTP else None,
            phone_number=phone_number if method_type == MFAMethodType.SMS else None,
            email_address=email_address if method_type == MFAMethodType.EMAIL_OTP else None,
            webauthn_data=webauthn_data if method_type == MFAMethodType.WEBAUTHN else None,
        )
        method.add_event(
            MFAMethodRegistered(
                method_id=method.id,
                user_id=user_id,
                method_type=method_type.value,
                is_primary=is_primary,
            )
        )
        return method

    @staticmethod
    def parse_type(method_type: MFAMethodType | str) -> MFAMethodType:
        if isinstance(method_type, MFAMethodType):
            return method_type
        try:
            return MFAMethodType(method_type)
        except ValueError as e:
            raise ValidationError(
                f"Unknown MFA method type: {method_type}",
                field="method_type",
                rule="choice",
                details={"allowed": [m.value for m in MFAMethodType]},
            ) from e

    @property
    def contact(self) -> str | None:
        """Delivery target for methods that receive an issued code."""
        if self.method_type == MFAMethodType.SMS:
            return self.phone_number
        if self.method_type == MFAMethodType.EMAIL_OTP:
            return self.email_address
        return None

    def promote(self) -> None:
        if not self.is_enabled:
            raise ValidationError(
                "A disabled method cannot be primary", field="is_primary", rule="enabled"
            )
        self.is_primary = True
        self.mark_modified()

    def demote(self) -> None:
        if self.is_primary:
            self.is_primary = False
            self.mark_modified()

    def enable(self) -> None:
        self.is_enabled = True
        self.mark_modified()

    def disable(self) -> None:
        self.is_enabled = False
        self.is_primary = False
        self.mark_modified()

    def mark_used(self, now: datetime | None = None) -> None:
        now = now or utc_now()
        self.last_used_at = now
        self.updated_at = now

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        for key in SECRET_FIELDS:
            data.pop(key, None)
        return data

    def __repr__(self) -> str:
        return (
            f"MFAMethod(id={self.id}, user_id={self.user_id}, "
            f"type={self.method_type.value}, primary={self.is_primary})"
        )


def ensure_single_primary(methods: Iterable[MFAMethod]) -> MFAMethod | None:
    """
    Return the primary method of a user's method list, if any.

    Raises:
        MultiplePrimaryMethodsError: If more than one method is primary
    """
    primaries = [m for m in methods if m.is_primary]
    if len(primaries) > 1:
        raise MultiplePrimaryMethodsError(primaries[0].user_id, len(primaries))
    return primaries[0] if primaries else None
