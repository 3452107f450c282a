"""SQLModel persistence models for the identity module."""

from .mfa_model import BackupCodeModel, MFAEnforcementPolicyModel, MFAMethodModel, MFASessionModel
from .user_model import UserModel

__all__ = [
    "BackupCodeModel",
    "MFAEnforcementPolicyModel",
    "MFAMethodModel",
    "MFASessionModel",
    "UserModel",
]
