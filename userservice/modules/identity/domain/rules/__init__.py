"""Identity business rules."""

from .base import (
    BusinessRule,
    PolicyValidationResult,
    PolicyViolation,
    RemediationAction,
    ViolationSeverity,
)
from .mfa_enforcement import MFAEnforcementRule

__all__ = [
    "BusinessRule",
    "MFAEnforcementRule",
    "PolicyValidationResult",
    "PolicyViolation",
    "RemediationAction",
    "ViolationSeverity",
]
