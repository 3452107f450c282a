"""
Identity Domain Enumerations

Closed sets used by the user and MFA aggregates. Values are the text stored in
the database, so they must not change.
"""

from enum import Enum


# =============================================================================
# User and Account Management
# =============================================================================

class UserRole(Enum):
    """Platform roles. Values keep the institutional Spanish identifiers."""
    LEARNER = "aprendiz"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"
    COORDINATOR = "coordinador"
    DIRECTOR = "directivo"

    def get_display_name(self) -> str:
        """Get human-readable display name."""
        display_names = {
            UserRole.LEARNER: "Learner",
            UserRole.INSTRUCTOR: "Instructor",
            UserRole.ADMIN: "Administrator",
            UserRole.COORDINATOR: "Coordinator",
            UserRole.DIRECTOR: "Director",
        }
        return display_names[self]

    @property
    def is_staff(self) -> bool:
        """Roles that manage other users."""
        return self in {UserRole.ADMIN, UserRole.COORDINATOR, UserRole.DIRECTOR}

    @classmethod
    def values(cls) -> list[str]:
        return [role.value for role in cls]


class UserStatus(Enum):
    """User account status enumeration."""
    ACTIVE = "active"
    INACTIVE = "inactive"

    @property
    def can_login(self) -> bool:
        return self == UserStatus.ACTIVE


class DocumentType(Enum):
    """Identity document kinds."""
    CITIZEN_ID = "CC"
    IDENTITY_CARD = "TI"
    FOREIGNER_ID = "CE"
    PASSPORT = "PP"


# =============================================================================
# Multi-Factor Authentication
# =============================================================================

class MFAMethodType(Enum):
    """Second factors a user can register."""
    TOTP = "totp"
    EMAIL_OTP = "email_otp"
    SMS = "sms"
    WEBAUTHN = "webauthn"

    def get_display_name(self) -> str:
        display_names = {
            MFAMethodType.TOTP: "Authenticator App",
            MFAMethodType.EMAIL_OTP: "Email Code",
            MFAMethodType.SMS: "SMS Code",
            MFAMethodType.WEBAUTHN: "Security Key",
        }
        return display_names[self]

    @property
    def uses_issued_code(self) -> bool:
        """Whether the service generates and delivers a one-time code."""
        return self in {MFAMethodType.EMAIL_OTP, MFAMethodType.SMS}

    @property
    def requires_secret(self) -> bool:
        return self == MFAMethodType.TOTP


class EnforcementLevel(Enum):
    """How strongly a role's MFA policy is applied."""
    MANDATORY = "mandatory"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"

    @property
    def is_mandatory(self) -> bool:
        return self == EnforcementLevel.MANDATORY


class MFASessionState(Enum):
    """Lifecycle of a verification session."""
    ACTIVE = "active"
    VERIFIED = "verified"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self != MFASessionState.ACTIVE


class VerificationOutcome(Enum):
    """Result of a single verification attempt."""
    VERIFIED = "verified"
    INVALID_CODE = "invalid_code"
    EXPIRED = "expired"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    ALREADY_VERIFIED = "already_verified"

    @property
    def is_success(self) -> bool:
        return self == VerificationOutcome.VERIFIED


__all__ = [
    "DocumentType",
    "EnforcementLevel",
    "MFAMethodType",
    "MFASessionState",
    "UserRole",
    "UserStatus",
    "VerificationOutcome",
]
