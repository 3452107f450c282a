"""Outward data transfer objects for the identity module."""

from .response import (
    BackupCodesResponse,
    BaseResponse,
    BulkOperationResponse,
    EnforcementDecisionResponse,
    ErrorResponse,
    MFAChallengeResponse,
    MFAMethodResponse,
    MFASetupResponse,
    MFAVerificationResponse,
    PagedResponse,
    UserResponse,
)

__all__ = [
    "BackupCodesResponse",
    "BaseResponse",
    "BulkOperationResponse",
    "EnforcementDecisionResponse",
    "ErrorResponse",
    "MFAChallengeResponse",
    "MFAMethodResponse",
    "MFASetupResponse",
    "MFAVerificationResponse",
    "PagedResponse",
    "UserResponse",
]
