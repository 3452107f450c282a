"""
Backup Code Repository Implementation

Consumption is a single conditional UPDATE (unused and unexpired at ``now``),
so when two requests race on the same code exactly one of them wins.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, func, select

from userservice.core.logging import get_logger
from userservice.modules.identity.domain.entities import BackupCode
from userservice.modules.identity.domain.value_objects import CodeHash
from userservice.modules.identity.infrastructure.models import BackupCodeModel
from userservice.modules.identity.infrastructure.models.common import utc_now

from .base import SQLRepository

logger = get_logger(__name__)


class SQLBackupCodeRepository(SQLRepository[BackupCodeModel]):
    """SQLModel implementation of the backup code repository."""

    model_class = BackupCodeModel

    def __init__(self, session: Session):
        super().__init__(session)

    def list_usable(self, user_id: UUID, now: datetime | None = None) -> list[BackupCode]:
        stmt = (
            select(BackupCodeModel)
            .where(*self._usable_conditions(user_id, now or utc_now()))
            .order_by(col(BackupCodeModel.created_at))
        )
        return [model.to_domain() for model in self.session.exec(stmt).all()]

    def count_usable(self, user_id: UUID, now: datetime | None = None) -> int:
        stmt = select(func.count(BackupCodeModel.id)).where(
            *self._usable_conditions(user_id, now or utc_now())
        )
        return self.session.exec(stmt).one()

    def find_by_hash(self, user_id: UUID, code_hash: CodeHash | str) -> BackupCode | None:
        """Look up a user's code by digest, used or not."""
        digest = code_hash.value if isinstance(code_hash, CodeHash) else code_hash
        stmt = select(BackupCodeModel).where(
            BackupCodeModel.user_id == user_id,
            BackupCodeModel.code_hash == digest,
        )
        model = self.session.exec(stmt).first()
        return model.to_domain() if model else None

    def consume(self, code_id: UUID, now: datetime) -> bool:
        """
        Mark a code used if it is still unused and unexpired.

        Returns:
            True only for the caller whose update changed the row
        """
        rowcount = self._execute_write(
            update(BackupCodeModel)
            .where(
                col(BackupCodeModel.id) == code_id,
                col(BackupCodeModel.is_used).is_(False),
                col(BackupCodeModel.expires_at) >= now,
            )
            .values(is_used=True, used_at=now)
        )
        return rowcount == 1

    def replace_unused(self, user_id: UUID, codes: list[BackupCode]) -> int:
        """
        Swap the user's unused codes for ``codes`` in one transaction.

        Used codes are kept. If the insert fails the old codes survive.

        Returns:
            Number of unused codes removed
        """
        try:
            result = self.session.exec(  # type: ignore[call-overload]
                delete(BackupCodeModel)
                .where(
                    col(BackupCodeModel.user_id) == user_id,
                    col(BackupCodeModel.is_used).is_(False),
                )
                .execution_options(synchronize_session=False)
            )
            revoked = result.rowcount
            self.session.add_all([BackupCodeModel.from_domain(code) for code in codes])
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception(
                "Backup code replacement failed",
                user_id=str(user_id),
                error_type=type(e).__name__,
            )
            raise
        self.session.expire_all()
        if revoked:
            logger.info("backup_codes_revoked", user_id=str(user_id), count=revoked)
        return revoked

    @staticmethod
    def _usable_conditions(user_id: UUID, now: datetime) -> tuple:
        return (
            col(BackupCodeModel.user_id) == user_id,
            col(BackupCodeModel.is_used).is_(False),
            col(BackupCodeModel.expires_at) >= now,
        )
