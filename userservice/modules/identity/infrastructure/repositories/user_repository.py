"""
User Repository Implementation

SQLModel-based implementation of the user repository interface. Email and
document number lookups use the normalised (trimmed, lower-cased email)
form stored by the aggregate.
"""

from __future__ import annotations

from collections import Counter
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, func, or_, select

from userservice.core.logging import get_logger
from userservice.modules.identity.domain.entities import User
from userservice.modules.identity.domain.errors import DuplicateUserError, UserNotFoundError
from userservice.modules.identity.domain.interfaces import (
    BulkOperationResult,
    PaginatedUsers,
    SortDirection,
    UserFilters,
)
from userservice.modules.identity.infrastructure.models import UserModel
from userservice.modules.identity.infrastructure.models.common import ensure_utc

from .base import SQLRepository

logger = get_logger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class SQLUserRepository(SQLRepository[UserModel]):
    """SQLModel implementation of user repository."""

    model_class = UserModel

    def __init__(self, session: Session):
        super().__init__(session)

    # ------------------------------------------------------------------ reads

    def get_by_id(self, user_id: UUID) -> User | None:
        model = self._get_model(user_id)
        return model.to_domain() if model else None

    def get_by_email(self, email: str) -> User | None:
        model = self._find_model_by_email(email)
        return model.to_domain() if model else None

    def get_by_document_number(self, document_number: str) -> User | None:
        stmt = select(UserModel).where(UserModel.document_number == document_number.strip())
        model = self.session.exec(stmt).first()
        return model.to_domain() if model else None

    def exists_by_email(self, email: str) -> bool:
        stmt = select(func.count(UserModel.id)).where(UserModel.email == _normalize_email(email))
        return self.session.exec(stmt).one() > 0

    def exists_by_document_number(self, document_number: str) -> bool:
        stmt = select(func.count(UserModel.id)).where(
            UserModel.document_number == document_number.strip()
        )
        return self.session.exec(stmt).one() > 0

    def get_by_ficha(self, ficha_id: str) -> list[User]:
        """Learners assigned to a ficha, ordered by last name."""
        stmt = (
            select(UserModel)
            .where(UserModel.ficha_id == ficha_id.strip())
            .order_by(UserModel.last_name, UserModel.first_name)
        )
        return [model.to_domain() for model in self.session.exec(stmt).all()]

    def get_multiple_by_emails(self, emails: list[str]) -> list[User]:
        if not emails:
            return []
        normalized = {_normalize_email(email) for email in emails}
        stmt = select(UserModel).where(col(UserModel.email).in_(normalized))
        return [model.to_domain() for model in self.session.exec(stmt).all()]

    def list(self, filters: UserFilters) -> PaginatedUsers:
        """Filtered, sorted and paginated listing."""
        conditions = []
        if filters.role is not None:
            conditions.append(UserModel.role == filters.role.value)
        if filters.ficha_id:
            conditions.append(UserModel.ficha_id == filters.ficha_id)
        if filters.program:
            conditions.append(UserModel.program == filters.program)
        if filters.is_active is not None:
            conditions.append(UserModel.is_active == filters.is_active)
        if filters.search and filters.search.strip():
            pattern = f"%{filters.search.strip()}%"
            conditions.append(
                or_(
                    col(UserModel.first_name).ilike(pattern),
                    col(UserModel.last_name).ilike(pattern),
                    col(UserModel.email).ilike(pattern),
                )
            )

        count_stmt = select(func.count(UserModel.id)).where(*conditions)
        total = self.session.exec(count_stmt).one()

        sort_column = col(getattr(UserModel, filters.sort_by))
        order = sort_column.asc() if filters.sort_direction == SortDirection.ASC else sort_column.desc()
        stmt = (
            select(UserModel)
            .where(*conditions)
            .order_by(order, col(UserModel.id))
            .offset(filters.offset)
            .limit(filters.page_size)
        )
        users = [model.to_domain() for model in self.session.exec(stmt).all()]

        return PaginatedUsers(users=users, total=total, page=filters.page, page_size=filters.page_size)

    # ----------------------------------------------------------------- writes

    def create(self, user: User) -> None:
        self._ensure_unique(user)
        self.session.add(UserModel.from_domain(user))
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise self._duplicate_from_integrity(user) from e

        logger.info("user_created", user_id=str(user.id), role=user.role.value)

    def update(self, user: User) -> None:
        model = self._get_model(user.id)
        if model is None:
            raise UserNotFoundError(user.id)

        self._ensure_unique(user, exclude_id=user.id)
        model.update_from_domain(user)
        self.session.add(model)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise self._duplicate_from_integrity(user) from e

    def delete(self, user_id: UUID) -> bool:
        """Soft delete: the user is deactivated, never removed."""
        model = self._get_model(user_id)
        if model is None:
            return False

        user = model.to_domain()
        user.deactivate()
        model.update_from_domain(user)
        self.session.add(model)
        self._commit()

        logger.info("user_deactivated", user_id=str(user_id))
        return True

    # ------------------------------------------------------------------- bulk

    def bulk_create(self, users: list[User]) -> BulkOperationResult:
        """
        Create many users, skipping the ones that collide.

        Collisions are checked against stored users and against earlier items of
        the same batch. Valid users are committed together.
        """
        result = BulkOperationResult(total=len(users))
        seen_emails: set[str] = set()
        seen_documents: set[str] = set()

        for index, user in enumerate(users):
            if user.email in seen_emails or self.exists_by_email(user.email):
                result.record_failure(index, user.email, "Email already exists", field="email")
                continue
            if user.document_number in seen_documents or self.exists_by_document_number(
                user.document_number
            ):
                result.record_failure(
                    index, user.email, "Document number already exists", field="document_number"
                )
                continue

            seen_emails.add(user.email)
            seen_documents.add(user.document_number)
            self.session.add(UserModel.from_domain(user))
            result.record_success()

        self._commit()
        logger.info("users_bulk_created", total=result.total, success=result.success, failed=result.failed)
        return result

    def bulk_update(self, updates: dict[str, User]) -> BulkOperationResult:
        result = BulkOperationResult(total=len(updates))

        for index, (email, user) in enumerate(updates.items()):
            model = self._find_model_by_email(email)
            if model is None:
                result.record_failure(index, email, "User not found", field="email")
                continue

            if self._email_taken(user.email, exclude_id=model.id):
                result.record_failure(index, email, "Email already exists", field="email")
                continue
            if self._document_taken(user.document_number, exclude_id=model.id):
                result.record_failure(
                    index, email, "Document number already exists", field="document_number"
                )
                continue

            model.update_from_domain(user)
            self.session.add(model)
            result.record_success()

        self._commit()
        logger.info("users_bulk_updated", total=result.total, success=result.success, failed=result.failed)
        return result

    def bulk_delete(self, emails: list[str]) -> BulkOperationResult:
        """Soft delete many users by email."""
        return self.bulk_status_change(emails, is_active=False)

    def bulk_status_change(self, emails: list[str], is_active: bool) -> BulkOperationResult:
        result = BulkOperationResult(total=len(emails))

        for index, email in enumerate(emails):
            model = self._find_model_by_email(email)
            if model is None:
                result.record_failure(index, email, "User not found", field="email")
                continue

            user = model.to_domain()
            if is_active:
                user.activate()
            else:
                user.deactivate()
            model.update_from_domain(user)
            self.session.add(model)
            result.record_success()

        self._commit()
        logger.info(
            "users_bulk_status_changed",
            is_active=is_active,
            total=result.total,
            success=result.success,
            failed=result.failed,
        )
        return result

    # -------------------------------------------------------------- analytics

    def count_by_role(self) -> dict[str, int]:
        stmt = select(UserModel.role, func.count(UserModel.id)).group_by(UserModel.role)
        return {role: count for role, count in self.session.exec(stmt).all()}

    def count_by_program(self) -> dict[str, int]:
        stmt = (
            select(UserModel.program, func.count(UserModel.id))
            .where(col(UserModel.program).is_not(None))
            .group_by(UserModel.program)
        )
        return {program: count for program, count in self.session.exec(stmt).all()}

    def registration_trend(self, days: int, now: datetime | None = None) -> dict[date, int]:
        """
        Registrations per calendar day (UTC) for the last ``days`` days.

        Args:
            days: Window length including today, must be positive
            now: Reference time, defaults to the current UTC time

        Returns:
            Ordered mapping of every day in the window to its count
        """
        if days < 1:
            raise ValueError("days must be a positive integer")

        now = now or datetime.now(UTC)
        first_day = (now - timedelta(days=days - 1)).date()
        window_start = datetime.combine(first_day, time.min, tzinfo=UTC)

        stmt = select(UserModel.created_at).where(UserModel.created_at >= window_start)
        per_day = Counter(
            ensure_utc(created_at).astimezone(UTC).date()
            for created_at in self.session.exec(stmt).all()
        )

        return {
            first_day + timedelta(days=offset): per_day.get(first_day + timedelta(days=offset), 0)
            for offset in range(days)
        }

    def active_inactive_count(self) -> tuple[int, int]:
        stmt = select(UserModel.is_active, func.count(UserModel.id)).group_by(UserModel.is_active)
        counts = {bool(is_active): count for is_active, count in self.session.exec(stmt).all()}
        return counts.get(True, 0), counts.get(False, 0)

    # ---------------------------------------------------------------- helpers

    def _find_model_by_email(self, email: str) -> UserModel | None:
        stmt = select(UserModel).where(UserModel.email == _normalize_email(email))
        return self.session.exec(stmt).first()

    def _email_taken(self, email: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(func.count(UserModel.id)).where(UserModel.email == _normalize_email(email))
        if exclude_id is not None:
            stmt = stmt.where(UserModel.id != exclude_id)
        return self.session.exec(stmt).one() > 0

    def _document_taken(self, document_number: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(func.count(UserModel.id)).where(
            UserModel.document_number == document_number.strip()
        )
        if exclude_id is not None:
            stmt = stmt.where(UserModel.id != exclude_id)
        return self.session.exec(stmt).one() > 0

    def _ensure_unique(self, user: User, exclude_id: UUID | None = None) -> None:
        if self._email_taken(user.email, exclude_id):
            raise DuplicateUserError("email", user.email)
        if self._document_taken(user.document_number, exclude_id):
            raise DuplicateUserError("document_number", user.document_number)

    def _duplicate_from_integrity(self, user: User) -> DuplicateUserError:
        """Work out which unique column a concurrent writer took first."""
        if self._email_taken(user.email, exclude_id=user.id):
            return DuplicateUserError("email", user.email)
        return DuplicateUserError("document_number", user.document_number)
