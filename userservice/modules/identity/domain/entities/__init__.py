"""Identity domain entities and aggregates."""

from .backup_code import BackupCode
from .mfa_method import MFAMethod, ensure_single_primary
from .mfa_policy import MFAEnforcementPolicy
from .mfa_session import MFASession, VerificationResult
from .user import User

__all__ = [
    "BackupCode",
    "MFAEnforcementPolicy",
    "MFAMethod",
    "MFASession",
    "User",
    "VerificationResult",
    "ensure_single_primary",
]
