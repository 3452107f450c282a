"""Repository Interfaces

Domain contracts for persistence that must be implemented by the
infrastructure layer. State transitions that can race (session verification,
backup code consumption, primary method reassignment) are expressed as
conditional updates that report whether they took effect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from math import ceil
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from ..enums import UserRole

if TYPE_CHECKING:
    from ..entities import BackupCode, MFAEnforcementPolicy, MFAMethod, MFASession, User
    from ..value_objects import CodeHash


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"


USER_SORT_FIELDS = frozenset(
    {"created_at", "updated_at", "first_name", "last_name", "email", "document_number", "role", "last_login"}
)


@dataclass
class UserFilters:
    """Filters and paging for ``IUserRepository.list``."""

    role: UserRole | None = None
    ficha_id: str | None = None
    program: str | None = None
    is_active: bool | None = None
    search: str | None = None
    page: int = 1
    page_size: int = 20
    sort_by: str = "created_at"
    sort_direction: SortDirection = SortDirection.DESC

    def __post_init__(self):
        self.page = max(self.page, 1)
        self.page_size = min(max(self.page_size, 1), 100)
        if self.sort_by not in USER_SORT_FIELDS:
            self.sort_by = "created_at"
        if isinstance(self.sort_direction, str):
            self.sort_direction = SortDirection(self.sort_direction.lower())

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class PaginatedUsers:
    users: list["User"]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.page_size) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


@dataclass
class BulkOperationError:
    """Failure detail for one item of a bulk operation."""

    index: int
    user: str
    error: str
    field: str | None = None


@dataclass
class BulkOperationResult:
    total: int = 0
    success: int = 0
    errors: list[BulkOperationError] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def record_success(self) -> None:
        self.success += 1

    def record_failure(self, index: int, user: str, error: str, field: str | None = None) -> None:
        self.errors.append(BulkOperationError(index=index, user=user, error=error, field=field))


class IUserRepository(Protocol):
    """Repository interface for the user aggregate."""

    def create(self, user: "User") -> None:
        """Persist a new user.

        Raises:
            DuplicateUserError: Email or document number already taken
        """
        ...

    def get_by_id(self, user_id: UUID) -> "User | None": ...

    def get_by_email(self, email: str) -> "User | None": ...

    def get_by_document_number(self, document_number: str) -> "User | None": ...

    def update(self, user: "User") -> None:
        """Persist changes to an existing user.

        Raises:
            UserNotFoundError: No row for ``user.id``
            DuplicateUserError: Email or document number collides with another user
        """
        ...

    def delete(self, user_id: UUID) -> bool:
        """Soft delete (deactivate). Returns False if the user does not exist."""
        ...

    def list(self, filters: UserFilters) -> PaginatedUsers: ...

    def get_by_ficha(self, ficha_id: str) -> list["User"]: ...

    def exists_by_email(self, email: str) -> bool: ...

    def exists_by_document_number(self, document_number: str) -> bool: ...

    def bulk_create(self, users: list["User"]) -> BulkOperationResult: ...

    def bulk_update(self, updates: dict[str, "User"]) -> BulkOperationResult:
        """Apply updates keyed by the current email of each user."""
        ...

    def bulk_delete(self, emails: list[str]) -> BulkOperationResult: ...

    def bulk_status_change(self, emails: list[str], is_active: bool) -> BulkOperationResult: ...

    def get_multiple_by_emails(self, emails: list[str]) -> list["User"]: ...

    def count_by_role(self) -> dict[str, int]: ...

    def count_by_program(self) -> dict[str, int]: ...

    def registration_trend(self, days: int, now: datetime | None = None) -> dict[date, int]:
        """Registrations per day for the last ``days`` days, zero-filled."""
        ...

    def active_inactive_count(self) -> tuple[int, int]: ...


class IMFAMethodRepository(Protocol):
    """Repository interface for registered MFA methods."""

    def add(self, method: "MFAMethod") -> None:
        """Persist a new method. A primary method demotes the user's current primary
        in the same transaction."""
        ...

    def get_by_id(self, method_id: UUID) -> "MFAMethod | None": ...

    def list_for_user(self, user_id: UUID, enabled_only: bool = False) -> list["MFAMethod"]: ...

    def get_primary(self, user_id: UUID) -> "MFAMethod | None": ...

    def get_by_type(self, user_id: UUID, method_type) -> "MFAMethod | None": ...

    def update(self, method: "MFAMethod") -> None: ...

    def set_primary(self, user_id: UUID, method_id: UUID) -> bool:
        """Demote every other method and promote ``method_id`` atomically.
        Returns False if the method does not exist, belongs to another user or
        is disabled."""
        ...

    def delete(self, method_id: UUID) -> bool: ...


class IBackupCodeRepository(Protocol):
    """Repository interface for backup codes."""

    def list_usable(self, user_id: UUID, now: datetime | None = None) -> list["BackupCode"]: ...

    def find_by_hash(self, user_id: UUID, code_hash: CodeHash | str) -> BackupCode | None: ...

    def consume(self, code_id: UUID, now: datetime) -> bool:
        """Mark used only if still unused and unexpired. True if this call won."""
        ...

    def replace_unused(self, user_id: UUID, codes: list["BackupCode"]) -> int:
        """Atomically swap unused codes for ``codes``; returns how many were removed."""
        ...

    def count_usable(self, user_id: UUID, now: datetime | None = None) -> int: ...


class IMFASessionRepository(Protocol):
    """Repository interface for verification sessions."""

    def add(self, session: "MFASession") -> None: ...

    def get_by_id(self, session_id: UUID) -> "MFASession | None": ...

    def save_attempt(self, session: "MFASession", expected_attempts: int) -> bool:
        """Write attempts/verified state only if the stored attempt counter still
        equals ``expected_attempts`` and the session is unverified."""
        ...

    def delete_expired(self, before: datetime) -> int: ...


class IPolicyRepository(Protocol):
    """Read access to per-role enforcement policies."""

    def get_by_role(self, role: UserRole) -> "MFAEnforcementPolicy | None": ...

    def list_all(self) -> list["MFAEnforcementPolicy"]: ...

    def save(self, policy: "MFAEnforcementPolicy") -> None: ...
