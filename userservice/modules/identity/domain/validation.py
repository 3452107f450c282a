"""
User field validation.

One pure function per field. Each validator trims its input (email is also
lower-cased), raises ``ValidationError`` carrying the field and the violated
rule, and otherwise returns the normalised value. ``validate_user_data`` checks
the identity fields in a fixed order and stops at the first failure, so error
messages are deterministic.
"""

import re
from dataclasses import dataclass
from typing import Any

from userservice.core.errors import ValidationError
from userservice.modules.identity.domain.enums import UserRole

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 100
DOCUMENT_MIN_LENGTH = 7
DOCUMENT_MAX_LENGTH = 20
PASSWORD_MIN_LENGTH = 10
PASSWORD_MAX_LENGTH = 128
PASSWORD_SPECIAL_CHARACTERS = "!@#$%^&*"

NAME_PATTERN = re.compile(r"[a-zA-ZáéíóúÁÉÍÓÚñÑ \t\n\f\r]+")
EMAIL_PATTERN = re.compile(r"[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,}")
DOCUMENT_PATTERN = re.compile(r"[a-zA-Z0-9\-]+")
FICHA_ID_PATTERN = re.compile(r"[0-9]{7}")

# (pattern, rule, message) in the order they are checked
_PASSWORD_CHARACTER_RULES = (
    (re.compile(r"[a-z]"), "lowercase", "Password must contain at least one lowercase letter"),
    (re.compile(r"[A-Z]"), "uppercase", "Password must contain at least one uppercase letter"),
    (re.compile(r"[0-9]"), "digit", "Password must contain at least one digit"),
    (
        re.compile(r"[!@#$%^&*]"),
        "special",
        f"Password must contain at least one special character ({PASSWORD_SPECIAL_CHARACTERS})",
    ),
)


@dataclass(frozen=True)
class ValidatedUserData:
    """Normalised identity fields returned by ``validate_user_data``."""

    first_name: str
    last_name: str
    email: str
    document_number: str
    role: UserRole


def _validate_name(value: str, field: str, label: str) -> str:
    value = (value or "").strip()
    if len(value) < NAME_MIN_LENGTH:
        raise ValidationError(
            f"{label} must be at least {NAME_MIN_LENGTH} characters long",
            field=field,
            rule="min_length",
            details={"min_length": NAME_MIN_LENGTH},
        )
    if len(value) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"{label} must not exceed {NAME_MAX_LENGTH} characters",
            field=field,
            rule="max_length",
            details={"max_length": NAME_MAX_LENGTH},
        )
    if not NAME_PATTERN.fullmatch(value):
        raise ValidationError(
            f"{label} may only contain letters, spaces and accents",
            field=field,
            rule="pattern",
        )
    return value


def validate_first_name(first_name: str) -> str:
    return _validate_name(first_name, "first_name", "First name")


def validate_last_name(last_name: str) -> str:
    return _validate_name(last_name, "last_name", "Last name")


def validate_email(email: str) -> str:
    """Trim, lower-case and check an email address."""
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Email cannot be empty", field="email", rule="required")
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValidationError(
            f"Email must not exceed {EMAIL_MAX_LENGTH} characters",
            field="email",
            rule="max_length",
            details={"max_length": EMAIL_MAX_LENGTH},
        )
    if not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("Email format is not valid", field="email", rule="format")
    return email


def validate_document_number(document_number: str) -> str:
    document_number = (document_number or "").strip()
    if len(document_number) < DOCUMENT_MIN_LENGTH:
        raise ValidationError(
            f"Document number must be at least {DOCUMENT_MIN_LENGTH} characters long",
            field="document_number",
            rule="min_length",
            details={"min_length": DOCUMENT_MIN_LENGTH},
        )
    if len(document_number) > DOCUMENT_MAX_LENGTH:
        raise ValidationError(
            f"Document number must not exceed {DOCUMENT_MAX_LENGTH} characters",
            field="document_number",
            rule="max_length",
            details={"max_length": DOCUMENT_MAX_LENGTH},
        )
    if not DOCUMENT_PATTERN.fullmatch(document_number):
        raise ValidationError(
            "Document number may only contain letters, digits and hyphens",
            field="document_number",
            rule="pattern",
        )
    return document_number


def validate_role(role: UserRole | str | Any) -> UserRole:
    """Accept a ``UserRole`` or its stored text value."""
    if isinstance(role, UserRole):
        return role
    if isinstance(role, str):
        try:
            return UserRole(role.strip())
        except ValueError:
            pass
    raise ValidationError(
        f"Role is not valid: must be one of {', '.join(UserRole.values())}",
        field="role",
        rule="choice",
        details={"allowed": UserRole.values()},
    )


def validate_ficha_id(ficha_id: str) -> str:
    """Learner cohort identifiers are exactly seven digits."""
    ficha_id = (ficha_id or "").strip()
    if not ficha_id:
        raise ValidationError("Ficha ID cannot be empty", field="ficha_id", rule="required")
    if not FICHA_ID_PATTERN.fullmatch(ficha_id):
        raise ValidationError(
            "Ficha ID must be a 7 digit number", field="ficha_id", rule="format"
        )
    return ficha_id


def validate_password(password: str) -> str:
    """
    Check password length and character classes.

    Classes are checked in a fixed order: lowercase, uppercase, digit, special.
    The password is returned unchanged (never trimmed).
    """
    password = password or ""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
            field="password",
            rule="min_length",
            details={"min_length": PASSWORD_MIN_LENGTH},
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValidationError(
            f"Password must not exceed {PASSWORD_MAX_LENGTH} characters",
            field="password",
            rule="max_length",
            details={"max_length": PASSWORD_MAX_LENGTH},
        )
    for pattern, rule, message in _PASSWORD_CHARACTER_RULES:
        if not pattern.search(password):
            raise ValidationError(message, field="password", rule=rule)
    return password


def validate_user_data(
    first_name: str,
    last_name: str,
    email: str,
    document_number: str,
    role: UserRole | str,
) -> ValidatedUserData:
    """Validate identity fields, stopping at the first failure."""
    return ValidatedUserData(
        first_name=validate_first_name(first_name),
        last_name=validate_last_name(last_name),
        email=validate_email(email),
        document_number=validate_document_number(document_number),
        role=validate_role(role),
    )


def collect_user_data_errors(
    first_name: str,
    last_name: str,
    email: str,
    document_number: str,
    role: UserRole | str,
    password: str | None = None,
) -> dict[str, list[str]]:
    """
    Run every field validator and gather messages per field.

    Returns an empty dict when everything is valid. Unlike
    ``validate_user_data`` this does not stop at the first failure.
    """
    checks = [
        (validate_first_name, first_name),
        (validate_last_name, last_name),
        (validate_email, email),
        (validate_document_number, document_number),
        (validate_role, role),
    ]
    if password is not None:
        checks.append((validate_password, password))

    errors: dict[str, list[str]] = {}
    for validator, value in checks:
        try:
            validator(value)
        except ValidationError as e:
            errors.setdefault(e.field or "non_field", []).append(e.message)
    return errors


__all__ = [
    "ValidatedUserData",
    "collect_user_data_errors",
    "validate_document_number",
    "validate_email",
    "validate_ficha_id",
    "validate_first_name",
    "validate_last_name",
    "validate_password",
    "validate_role",
    "validate_user_data",
]
