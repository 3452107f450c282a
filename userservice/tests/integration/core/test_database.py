"""
Integration tests for DatabaseManager and the process-wide accessors.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from userservice.core import database as database_module
from userservice.core.config import DatabaseConfig
from userservice.core.database import (
    DatabaseManager,
    get_database,
    get_session,
    initialize_database,
    shutdown_database,
)
from userservice.core.errors import InfrastructureError
from userservice.modules.identity.domain.entities import MFAMethod
from userservice.modules.identity.domain.enums import MFAMethodType
from userservice.modules.identity.infrastructure.models import UserModel
from userservice.tests.factories import UserFactory

pytestmark = pytest.mark.integration


class TestSessionScope:
    """Test the managed session context."""

    def test_commits_on_success(self, database):
        """Test rows added inside the scope are committed."""
        user = UserFactory()

        with database.session_scope() as session:
            session.add(UserModel.from_domain(user))

        with database.session_scope() as session:
            assert session.get(UserModel, user.id) is not None

        assert database.get_metrics()["total_sessions"] == 2
        assert database.get_metrics()["error_count"] == 0

    def test_rolls_back_on_error(self, database):
        """Test an exception discards the scope's writes and is re-raised."""
        user = UserFactory()

        with pytest.raises(RuntimeError):
            with database.session_scope() as session:
                session.add(UserModel.from_domain(user))
                session.flush()
                raise RuntimeError("boom")

        with database.session_scope() as session:
            assert session.get(UserModel, user.id) is None

        metrics = database.get_metrics()
        assert metrics["error_count"] == 1
        assert metrics["error_rate"] == 0.5


class TestEngine:
    """Test engine level behaviour."""

    def test_health_check(self, database):
        """Test a reachable database reports healthy."""
        assert database.check_health() is True

    def test_health_check_unreachable(self, tmp_path):
        """Test an unopenable database reports unhealthy."""
        manager = DatabaseManager(
            DatabaseConfig(url=f"sqlite:///{tmp_path / 'missing' / 'nested' / 'db.sqlite'}")
        )

        assert manager.check_health() is False
        manager.dispose()

    def test_sqlite_foreign_keys_enforced(self, method_repository):
        """Test MFA rows cannot reference an unknown user."""
        orphan = MFAMethod.create(
            UserFactory().id, MFAMethodType.EMAIL_OTP, email_address="ana@sena.edu.co"
        )

        with pytest.raises(IntegrityError):
            method_repository.add(orphan)


class TestGlobalAccessors:
    """Test initialize_database, get_session and shutdown_database."""

    @pytest.fixture(autouse=True)
    def reset_global(self, monkeypatch):
        monkeypatch.setattr(database_module, "_database_manager", None)
        yield
        shutdown_database()

    def test_not_initialized(self):
        """Test using the accessor before initialisation raises."""
        with pytest.raises(InfrastructureError):
            get_database()

    def test_lifecycle(self, settings):
        """Test the global manager hands out working sessions until shutdown."""
        manager = initialize_database(settings.database)
        manager.create_tables()

        assert get_database() is manager
        user = UserFactory()
        with get_session() as session:
            session.add(UserModel.from_domain(user))
        with get_session() as session:
            assert session.get(UserModel, user.id) is not None

        manager.drop_tables()
        shutdown_database()

        with pytest.raises(InfrastructureError):
            get_database()
