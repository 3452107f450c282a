"""
MFA Session Repository Implementation

Attempt results are written with a compare-and-set on the attempt counter:
the UPDATE only applies while the stored counter still equals the value the
caller read and the session is unverified.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, update
from sqlmodel import Session, col

from userservice.core.logging import get_logger
from userservice.modules.identity.domain.entities import MFASession
from userservice.modules.identity.infrastructure.models import MFASessionModel

from .base import SQLRepository

logger = get_logger(__name__)


class SQLMFASessionRepository(SQLRepository[MFASessionModel]):
    """SQLModel implementation of the verification session repository."""

    model_class = MFASessionModel

    def __init__(self, session: Session):
        super().__init__(session)

    def add(self, session: MFASession) -> None:
        self.session.add(MFASessionModel.from_domain(session))
        self._commit()

    def get_by_id(self, session_id: UUID) -> MFASession | None:
        model = self.session.get(MFASessionModel, session_id, populate_existing=True)
        return model.to_domain() if model else None

    def save_attempt(self, session: MFASession, expected_attempts: int) -> bool:
        """
        Persist the outcome of one verification attempt.

        Args:
            session: Session after ``attempt`` mutated it
            expected_attempts: Attempt counter observed before the attempt

        Returns:
            False when another writer got there first
        """
        rowcount = self._execute_write(
            update(MFASessionModel)
            .where(
                col(MFASessionModel.id) == session.id,
                col(MFASessionModel.attempts) == expected_attempts,
                col(MFASessionModel.is_verified).is_(False),
            )
            .values(
                attempts=session.attempts,
                is_verified=session.is_verified,
                verified_at=session.verified_at,
                updated_at=session.updated_at,
            )
        )
        if rowcount != 1:
            logger.warning(
                "mfa_session_attempt_conflict",
                session_id=str(session.id),
                expected_attempts=expected_attempts,
            )
        return rowcount == 1

    def delete_expired(self, before: datetime) -> int:
        removed = self._execute_write(
            delete(MFASessionModel).where(col(MFASessionModel.expires_at) < before)
        )
        logger.info("mfa_sessions_purged", count=removed)
        return removed
