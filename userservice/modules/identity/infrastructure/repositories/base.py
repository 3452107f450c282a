"""
SQL Repository Base

Shared plumbing for the SQLModel repositories: row lookup, commit with
rollback on failure, and conditional writes that report how many rows they
touched.
"""

from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.dml import UpdateBase
from sqlmodel import Session, SQLModel

from userservice.core.errors import InfrastructureError
from userservice.core.logging import get_logger

TModel = TypeVar("TModel", bound=SQLModel)

logger = get_logger(__name__)


class RepositoryError(InfrastructureError):
    """Base exception for repository-specific errors."""

    default_code = "REPOSITORY_ERROR"


class SQLRepository(Generic[TModel]):
    """
    Base class for repositories bound to one SQLModel table.

    Every write commits before returning, so a conditional write that reports
    success is durable when the caller sees it.
    """

    model_class: type[TModel]

    def __init__(self, session: Session):
        self.session = session

    def _get_model(self, entity_id: UUID) -> TModel | None:
        return self.session.get(self.model_class, entity_id)

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def _execute_write(self, statement: UpdateBase) -> int:
        """
        Run an UPDATE or DELETE and commit it.

        Returns:
            Number of rows matched by the statement's WHERE clause
        """
        try:
            result = self.session.exec(  # type: ignore[call-overload]
                statement.execution_options(synchronize_session=False)
            )
            rowcount = result.rowcount
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception(
                "Conditional write failed",
                table=self.model_class.__tablename__,
                error_type=type(e).__name__,
            )
            raise
        # Rows cached in the identity map no longer reflect the table
        self.session.expire_all()
        return rowcount


__all__ = ["RepositoryError", "SQLRepository", "TModel"]
