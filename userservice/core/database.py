"""Database engine and session management.

Wraps a synchronous SQLModel engine and session factory. Sessions are handed
out through a context manager that commits on success, rolls back on error
and always closes.

Architecture:
- DatabaseManager: engine lifecycle, schema creation and session scopes
- initialize_database / get_session: process-wide convenience accessors
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from userservice.core.config import DatabaseConfig
from userservice.core.errors import InfrastructureError
from userservice.core.logging import get_logger

logger = get_logger(__name__)

DB_NOT_INITIALIZED_MSG = "Database not initialized"
DB_INIT_ERROR_MSG = "Database initialization failed"
HEALTH_CHECK_QUERY = "SELECT 1"


class DatabaseManager:
    """
    Engine owner and session factory.

    Usage Example:
        manager = DatabaseManager(DatabaseConfig(url="sqlite:///./users.db"))
        manager.create_tables()

        with manager.session_scope() as session:
            repository = SQLUserRepository(session)
            repository.create(user)
    """

    def __init__(self, config: DatabaseConfig, engine: Engine | None = None):
        self.config = config
        self.engine = engine or self._create_engine()
        self._session_count = 0
        self._error_count = 0

    def _create_engine(self) -> Engine:
        try:
            engine = create_engine(self.config.url, **self.config.engine_kwargs())
        except SQLAlchemyError as e:
            logger.exception("Failed to create database engine", error=str(e))
            raise InfrastructureError(DB_INIT_ERROR_MSG, cause=e) from e

        if self.config.is_sqlite:
            _enable_sqlite_foreign_keys(engine)

        logger.info("Database engine created", dialect=engine.dialect.name)
        return engine

    def create_tables(self) -> None:
        """Create every table registered on the SQLModel metadata."""
        # Registers the identity tables on the metadata
        from userservice.modules.identity.infrastructure import models  # noqa: F401

        SQLModel.metadata.create_all(self.engine)
        logger.info("Database tables created")

    def drop_tables(self) -> None:
        SQLModel.metadata.drop_all(self.engine)

    def new_session(self) -> Session:
        """Create an unmanaged session. The caller owns commit and close."""
        return Session(self.engine, expire_on_commit=False)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Get database session with automatic transaction management.

        Yields:
            Session: Database session
        """
        session_id = uuid4()
        start_time = time.monotonic()
        session = self.new_session()
        self._session_count += 1

        try:
            yield session
        except Exception as e:
            session.rollback()
            self._error_count += 1
            logger.exception(
                "Database session rollback due to error",
                session_id=str(session_id),
                session_time=time.monotonic() - start_time,
                error_type=type(e).__name__,
            )
            raise
        else:
            session.commit()
            logger.debug(
                "Database session committed",
                session_id=str(session_id),
                session_time=time.monotonic() - start_time,
            )
        finally:
            session.close()

    def check_health(self) -> bool:
        try:
            with self.engine.connect() as connection:
                connection.execute(text(HEALTH_CHECK_QUERY))
        except SQLAlchemyError as e:
            logger.error("Database health check failed", error=str(e))
            return False
        return True

    def get_metrics(self) -> dict[str, Any]:
        return {
            "total_sessions": self._session_count,
            "error_count": self._error_count,
            "error_rate": self._error_count / max(self._session_count, 1),
        }

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Global instance (initialized by application)
_database_manager: DatabaseManager | None = None


def initialize_database(config: DatabaseConfig) -> DatabaseManager:
    """
    Initialize the global database manager.

    Args:
        config: Database configuration
    """
    global _database_manager  # noqa: PLW0603

    _database_manager = DatabaseManager(config)
    logger.info("Database components initialized")
    return _database_manager


def get_database() -> DatabaseManager:
    if not _database_manager:
        raise InfrastructureError(DB_NOT_INITIALIZED_MSG)
    return _database_manager


@contextmanager
def get_session() -> Iterator[Session]:
    """Get database session (convenience function)."""
    with get_database().session_scope() as session:
        yield session


def shutdown_database() -> None:
    global _database_manager  # noqa: PLW0603

    if _database_manager:
        _database_manager.dispose()
        _database_manager = None
    logger.info("Database shutdown completed")


__all__ = [
    "DatabaseManager",
    "get_database",
    "get_session",
    "initialize_database",
    "shutdown_database",
]
