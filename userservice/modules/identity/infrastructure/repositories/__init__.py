"""SQLModel repository implementations for the identity module."""

from .backup_code_repository import SQLBackupCodeRepository
from .base import RepositoryError, SQLRepository
from .mfa_method_repository import SQLMFAMethodRepository
from .mfa_session_repository import SQLMFASessionRepository
from .policy_repository import SQLPolicyRepository
from .user_repository import SQLUserRepository

__all__ = [
    "RepositoryError",
    "SQLBackupCodeRepository",
    "SQLMFAMethodRepository",
    "SQLMFASessionRepository",
    "SQLPolicyRepository",
    "SQLRepository",
    "SQLUserRepository",
]
