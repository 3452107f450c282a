"""
Identity Domain Events

Events raised by the user aggregate and the MFA entities. They are collected
on the aggregate and drained by the application services after persistence.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from userservice.core.domain.base import DomainEvent


class IdentityDomainEvent(DomainEvent):
    """Base class for all identity domain events."""

    domain: str = Field(default="identity", frozen=True)

    def is_security_event(self) -> bool:
        return self.__class__.__name__ in {
            "MFAMethodRegistered",
            "MFAChallengeVerified",
            "MFAChallengeFailed",
            "BackupCodesGenerated",
            "BackupCodeConsumed",
        }


# =============================================================================
# User events
# =============================================================================

class UserCreated(IdentityDomainEvent):
    user_id: UUID
    email: str
    role: str

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


class UserActivated(IdentityDomainEvent):
    user_id: UUID

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


class UserDeactivated(IdentityDomainEvent):
    user_id: UUID

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


class UserLoggedIn(IdentityDomainEvent):
    user_id: UUID
    logged_in_at: datetime

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


class LegalPoliciesAccepted(IdentityDomainEvent):
    """Raised when a user records consent for all three legal documents."""
    user_id: UUID
    privacy_policy_version: str
    terms_version: str
    data_treatment_version: str
    ip_address: str

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


class UserEmailVerified(IdentityDomainEvent):
    user_id: UUID
    verified_at: datetime

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


# =============================================================================
# MFA events
# =============================================================================

class MFAMethodRegistered(IdentityDomainEvent):
    method_id: UUID
    user_id: UUID
    method_type: str
    is_primary: bool

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


class MFAChallengeVerified(IdentityDomainEvent):
    session_id: UUID
    user_id: UUID
    method_type: str

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


class MFAChallengeFailed(IdentityDomainEvent):
    session_id: UUID
    user_id: UUID
    outcome: str
    attempts: int

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


class BackupCodesGenerated(IdentityDomainEvent):
    user_id: UUID
    count: int
    expires_at: datetime

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


class BackupCodeConsumed(IdentityDomainEvent):
    user_id: UUID
    code_id: UUID

    def get_aggregate_id(self) -> str:
        return str(self.user_id)


__all__ = [
    "BackupCodeConsumed",
    "BackupCodesGenerated",
    "IdentityDomainEvent",
    "LegalPoliciesAccepted",
    "MFAChallengeFailed",
    "MFAChallengeVerified",
    "MFAMethodRegistered",
    "UserActivated",
    "UserCreated",
    "UserDeactivated",
    "UserEmailVerified",
    "UserLoggedIn",
]
