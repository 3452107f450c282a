"""Identity domain interfaces."""

from .event_publisher import IEventPublisher
from .repositories import (
    BulkOperationError,
    BulkOperationResult,
    IBackupCodeRepository,
    IMFAMethodRepository,
    IMFASessionRepository,
    IPolicyRepository,
    IUserRepository,
    PaginatedUsers,
    SortDirection,
    UserFilters,
)

__all__ = [
    "BulkOperationError",
    "BulkOperationResult",
    "IBackupCodeRepository",
    "IEventPublisher",
    "IMFAMethodRepository",
    "IMFASessionRepository",
    "IPolicyRepository",
    "IUserRepository",
    "PaginatedUsers",
    "SortDirection",
    "UserFilters",
]
