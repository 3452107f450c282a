"""
Response DTOs for the identity module.

Outward representations of users, MFA methods, verification sessions and
enforcement decisions. None of these models has a field for secret material
(password hash, TOTP secret, WebAuthn credential, code hashes).
"""

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from userservice.core.errors import UserServiceError, ValidationError
from userservice.modules.identity.domain.entities import MFAMethod, MFASession, User
from userservice.modules.identity.domain.entities.mfa_session import VerificationResult
from userservice.modules.identity.domain.enums import (
    DocumentType,
    EnforcementLevel,
    MFAMethodType,
    MFASessionState,
    UserRole,
    UserStatus,
    VerificationOutcome,
)
from userservice.modules.identity.domain.interfaces import BulkOperationResult, PaginatedUsers
from userservice.modules.identity.domain.services.policy_resolver import EnforcementDecision

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(UTC)


# Base response DTOs
class BaseResponse(BaseModel):
    """Base response with common fields."""
    success: bool = Field(True, description="Whether the operation succeeded")
    message: str | None = Field(None, description="Human-readable message")
    timestamp: datetime = Field(default_factory=_now)


class ErrorResponse(BaseResponse):
    """Error response structure."""
    success: bool = Field(False)
    error_code: str = Field(..., description="Machine-readable error code")
    error_details: dict[str, Any] | None = Field(None)
    field_errors: dict[str, list[str]] | None = Field(None)

    @classmethod
    def from_error(cls, error: UserServiceError) -> "ErrorResponse":
        data = error.to_dict()
        field_errors = None
        if isinstance(error, ValidationError) and error.field:
            field_errors = {error.field: [error.message]}
        return cls(
            message=data["message"],
            error_code=data["error"],
            error_details=data.get("details"),
            field_errors=field_errors,
        )


class PagedResponse(BaseModel, Generic[T]):
    """Paged response for list operations."""
    items: list[T] = Field(..., description="List of items")
    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_previous: bool = Field(..., description="Whether there is a previous page")


# User responses
class UserResponse(BaseModel):
    """User information response."""
    model_config = ConfigDict(frozen=True)

    id: UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    document_number: str
    document_type: DocumentType
    role: UserRole
    status: UserStatus
    is_active: bool
    phone: str | None = None
    ficha_id: str | None = None
    sede_id: UUID | None = None
    program: str | None = None
    email_verified: bool
    has_accepted_policies: bool
    created_at: datetime
    updated_at: datetime
    last_login: datetime | None = None

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            email=user.email,
            document_number=user.document_number,
            document_type=user.document_type,
            role=user.role,
            status=user.status,
            is_active=user.is_active,
            phone=user.phone.get(),
            ficha_id=user.ficha_id.get(),
            sede_id=user.sede_id.get(),
            program=user.program.get(),
            email_verified=user.email_verified,
            has_accepted_policies=user.has_accepted_all_policies(),
            created_at=user.created_at,
            updated_at=user.updated_at,
            last_login=user.last_login,
        )

    @classmethod
    def page(cls, result: PaginatedUsers) -> PagedResponse["UserResponse"]:
        return PagedResponse[UserResponse](
            items=[cls.from_domain(user) for user in result.users],
            total=result.total,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
            has_next=result.has_next,
            has_previous=result.has_previous,
        )


class BulkOperationErrorResponse(BaseModel):
    index: int
    user: str
    error: str
    field: str | None = None


class BulkOperationResponse(BaseModel):
    """Per-item outcome of a bulk user operation."""
    total: int
    success: int
    failed: int
    errors: list[BulkOperationErrorResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: BulkOperationResult) -> "BulkOperationResponse":
        return cls(
            total=result.total,
            success=result.success,
            failed=result.failed,
            errors=[
                BulkOperationErrorResponse(
                    index=error.index, user=error.user, error=error.error, field=error.field
                )
                for error in result.errors
            ],
        )


# MFA responses
class MFAMethodResponse(BaseModel):
    """Registered MFA method, contact data masked."""
    id: UUID
    method_type: MFAMethodType
    is_primary: bool
    is_enabled: bool
    contact: str | None = None
    last_used_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_domain(cls, method: MFAMethod) -> "MFAMethodResponse":
        return cls(
            id=method.id,
            method_type=method.method_type,
            is_primary=method.is_primary,
            is_enabled=method.is_enabled,
            contact=_mask_contact(method.contact),
            last_used_at=method.last_used_at,
            created_at=method.created_at,
        )


class MFASetupResponse(BaseResponse):
    """TOTP enrolment data, shown once."""
    method: MFAMethodResponse
    provisioning_uri: str | None = None


class MFAChallengeResponse(BaseResponse):
    """An issued verification challenge. The code itself is never echoed."""
    session_id: UUID
    method_type: MFAMethodType
    state: MFASessionState
    expires_at: datetime
    attempts_remaining: int

    @classmethod
    def from_domain(cls, session: MFASession) -> "MFAChallengeResponse":
        return cls(
            session_id=session.id,
            method_type=session.method_type,
            state=session.state(),
            expires_at=session.expires_at,
            attempts_remaining=session.attempts_remaining,
        )


class MFAVerificationResponse(BaseResponse):
    session_id: UUID
    outcome: VerificationOutcome
    attempts_remaining: int

    @classmethod
    def from_result(cls, result: VerificationResult) -> "MFAVerificationResponse":
        return cls(
            success=result.succeeded,
            session_id=result.session_id,
            outcome=result.outcome,
            attempts_remaining=result.attempts_remaining,
        )


class BackupCodesResponse(BaseResponse):
    """Freshly generated backup codes. Plain codes are only returned here."""
    codes: list[str]
    expires_at: datetime

    @property
    def count(self) -> int:
        return len(self.codes)


class EnforcementDecisionResponse(BaseModel):
    role: UserRole
    enforcement_level: EnforcementLevel
    mfa_required: bool
    challenge_required: bool
    blocks_access: bool
    in_grace_period: bool
    grace_ends_at: datetime | None = None
    setup_recommended: bool
    allowed_methods: list[MFAMethodType]

    @classmethod
    def from_decision(cls, decision: EnforcementDecision) -> "EnforcementDecisionResponse":
        return cls(
            role=decision.policy.role,
            enforcement_level=decision.enforcement_level,
            mfa_required=decision.mfa_required,
            challenge_required=decision.challenge_required,
            blocks_access=decision.blocks_access,
            in_grace_period=decision.in_grace_period,
            grace_ends_at=decision.grace_ends_at,
            setup_recommended=decision.setup_recommended,
            allowed_methods=list(decision.policy.allowed_methods),
        )


def _mask_contact(contact: str | None) -> str | None:
    """Keep enough of an address or phone number to recognise it."""
    if not contact:
        return None
    if "@" in contact:
        local, _, domain = contact.partition("@")
        return f"{local[:1]}***@{domain}"
    return f"***{contact[-4:]}"
