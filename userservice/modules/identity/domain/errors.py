"""
Identity Domain Error Hierarchy

Domain-specific exceptions that represent business rule violations and MFA
session outcomes. Every error is recoverable by the caller; none of them is a
process-level failure.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from userservice.core.errors import (
    ConflictError,
    DomainError,
    ErrorSeverity,
    NotFoundError,
    ValidationError,
)


class IdentityDomainError(DomainError):
    """Base error for identity domain."""

    default_code = "IDENTITY_ERROR"

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.details.setdefault("domain", "identity")


# =============================================================================
# Base Error Categories
# =============================================================================

class AuthenticationError(IdentityDomainError):
    """Base authentication error."""
    default_code = "AUTHENTICATION_ERROR"
    status_code = 401


class AuthorizationError(IdentityDomainError):
    """Base authorization error."""
    default_code = "AUTHORIZATION_ERROR"
    status_code = 403


class MFASessionError(AuthenticationError):
    """Verification session outcome errors. Recovered by issuing a new challenge."""
    default_code = "MFA_SESSION_ERROR"
    severity = ErrorSeverity.LOW


# =============================================================================
# MFA Session Errors
# =============================================================================

class SessionExpiredError(MFASessionError):
    """The session's expiry passed before the attempt."""
    default_code = "SESSION_EXPIRED"

    def __init__(self, session_id: UUID, expired_at: datetime):
        super().__init__(
            f"MFA session {session_id} expired at {expired_at.isoformat()}",
            user_message="The verification code has expired. Request a new one.",
            details={"session_id": str(session_id), "expired_at": expired_at.isoformat()},
        )


class InvalidCodeError(MFASessionError):
    """Wrong code; the session stays open with fewer attempts left."""
    default_code = "INVALID_CODE"

    def __init__(self, session_id: UUID, attempts_remaining: int):
        super().__init__(
            f"Invalid verification code for session {session_id}",
            user_message=f"Invalid code. {attempts_remaining} attempt(s) remaining.",
            details={"session_id": str(session_id), "attempts_remaining": attempts_remaining},
        )
        self.attempts_remaining = attempts_remaining


class AttemptsExceededError(MFASessionError):
    """The session used up its attempts."""
    default_code = "ATTEMPTS_EXCEEDED"
    status_code = 429
    severity = ErrorSeverity.MEDIUM

    def __init__(self, session_id: UUID, max_attempts: int):
        super().__init__(
            f"Maximum verification attempts ({max_attempts}) exceeded for session {session_id}",
            user_message="Too many incorrect codes. Request a new verification code.",
            details={"session_id": str(session_id), "max_attempts": max_attempts},
        )


class SessionAlreadyVerifiedError(MFASessionError):
    """A verified session cannot be used again."""
    default_code = "SESSION_ALREADY_VERIFIED"
    status_code = 409

    def __init__(self, session_id: UUID):
        super().__init__(
            f"MFA session {session_id} is already verified",
            details={"session_id": str(session_id)},
        )


class MFASessionNotFoundError(NotFoundError):
    default_code = "MFA_SESSION_NOT_FOUND"

    def __init__(self, session_id: UUID):
        super().__init__("MFA session", session_id)


# =============================================================================
# Policy and Method Errors
# =============================================================================

class PolicyNotFoundError(NotFoundError):
    """No enforcement policy is configured for the role."""
    default_code = "POLICY_NOT_FOUND"

    def __init__(self, role: str):
        super().__init__("MFA enforcement policy", role)
        self.details["role"] = role


class MFAMethodNotFoundError(NotFoundError):
    default_code = "MFA_METHOD_NOT_FOUND"

    def __init__(self, identifier: Any):
        super().__init__("MFA method", identifier)


class MFAMethodNotAllowedError(AuthorizationError):
    """The role's policy does not allow this method type."""
    default_code = "MFA_METHOD_NOT_ALLOWED"

    def __init__(self, method_type: str, role: str, allowed: list[str]):
        super().__init__(
            f"MFA method '{method_type}' is not allowed for role '{role}'",
            user_message="This verification method is not available for your role.",
            details={"method_type": method_type, "role": role, "allowed_methods": allowed},
        )


class MFAMethodDisabledError(IdentityDomainError):
    default_code = "MFA_METHOD_DISABLED"

    def __init__(self, method_id: UUID):
        super().__init__(
            f"MFA method {method_id} is disabled",
            details={"method_id": str(method_id)},
        )


class MultiplePrimaryMethodsError(IdentityDomainError):
    """More than one method flagged primary for a user."""
    default_code = "MULTIPLE_PRIMARY_METHODS"
    severity = ErrorSeverity.HIGH

    def __init__(self, user_id: UUID, count: int):
        super().__init__(
            f"User {user_id} has {count} primary MFA methods",
            details={"user_id": str(user_id), "primary_count": count},
        )


# =============================================================================
# Backup Code Errors
# =============================================================================

class BackupCodeError(AuthenticationError):
    default_code = "BACKUP_CODE_ERROR"


class BackupCodeInvalidError(BackupCodeError):
    default_code = "BACKUP_CODE_INVALID"

    def __init__(self):
        super().__init__(
            "Backup code does not match any code on file",
            user_message="Invalid backup code.",
        )


class BackupCodeAlreadyUsedError(BackupCodeError):
    default_code = "BACKUP_CODE_ALREADY_USED"
    status_code = 409

    def __init__(self, code_id: UUID):
        super().__init__(
            f"Backup code {code_id} has already been used",
            user_message="This backup code has already been used.",
            details={"code_id": str(code_id)},
        )


class BackupCodeExpiredError(BackupCodeError):
    default_code = "BACKUP_CODE_EXPIRED"

    def __init__(self, code_id: UUID, expired_at: datetime):
        super().__init__(
            f"Backup code {code_id} expired at {expired_at.isoformat()}",
            user_message="This backup code has expired. Generate a new set.",
            details={"code_id": str(code_id), "expired_at": expired_at.isoformat()},
        )


# =============================================================================
# User Errors
# =============================================================================

class DuplicateUserError(ConflictError):
    """Email or document number collision."""
    default_code = "DUPLICATE_USER"

    def __init__(self, field: str, value: str):
        super().__init__(
            f"A user with {field} '{value}' already exists",
            resource="user",
            user_message=f"A user with this {field.replace('_', ' ')} already exists.",
        )
        self.field = field
        self.details["field"] = field


class UserNotFoundError(NotFoundError):
    default_code = "USER_NOT_FOUND"

    def __init__(self, identifier: Any):
        super().__init__("User", identifier)


class SystemAccessDeniedError(AuthorizationError):
    """Inactive user or legal policies not accepted."""
    default_code = "SYSTEM_ACCESS_DENIED"

    def __init__(self, user_id: UUID, reason: str):
        super().__init__(
            f"User {user_id} cannot access the system: {reason}",
            user_message="Your account cannot access the system at this time.",
            details={"user_id": str(user_id), "reason": reason},
        )


class ConcurrentModificationError(ConflictError):
    """A conditional update found the row already changed."""
    default_code = "CONCURRENT_MODIFICATION"
    retryable = True

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} {identifier} was modified concurrently",
            resource=resource,
            user_message="The request conflicted with another request. Try again.",
        )
        self.details["identifier"] = str(identifier)


__all__ = [
    "AttemptsExceededError",
    "AuthenticationError",
    "AuthorizationError",
    "BackupCodeAlreadyUsedError",
    "BackupCodeError",
    "BackupCodeExpiredError",
    "BackupCodeInvalidError",
    "ConcurrentModificationError",
    "DuplicateUserError",
    "IdentityDomainError",
    "InvalidCodeError",
    "MFAMethodDisabledError",
    "MFAMethodNotAllowedError",
    "MFAMethodNotFoundError",
    "MFASessionError",
    "MFASessionNotFoundError",
    "MultiplePrimaryMethodsError",
    "PolicyNotFoundError",
    "SessionAlreadyVerifiedError",
    "SessionExpiredError",
    "SystemAccessDeniedError",
    "UserNotFoundError",
    "ValidationError",
]
