"""
Global test configuration and fixtures.

Provides settings tuned for tests, a file-backed SQLite database per test,
repository and service fixtures. Factories live in ``factories``.
"""

from collections.abc import Iterator

import pytest
from sqlmodel import Session

from userservice.core.config import DatabaseConfig, MFAConfig, SecurityConfig, Settings
from userservice.core.database import DatabaseManager
from userservice.core.enums import Environment
from userservice.modules.identity.domain.entities import MFAEnforcementPolicy
from userservice.modules.identity.domain.enums import EnforcementLevel, MFAMethodType, UserRole
from userservice.modules.identity.infrastructure.dependencies import (
    IdentityServices,
    build_identity_services,
)
from userservice.modules.identity.infrastructure.repositories import (
    SQLBackupCodeRepository,
    SQLMFAMethodRepository,
    SQLMFASessionRepository,
    SQLPolicyRepository,
    SQLUserRepository,
)
from userservice.modules.identity.infrastructure.security import SecretCipher

from .factories import RecordingEventPublisher


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def encryption_key() -> str:
    return SecretCipher.generate_key()


@pytest.fixture
def settings(tmp_path, encryption_key) -> Settings:
    """Settings for tests: cheap bcrypt, file database under tmp_path."""
    return Settings(
        environment=Environment.TESTING,
        mfa=MFAConfig(session_ttl_minutes=5, max_attempts=3, otp_length=6, backup_code_count=10),
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'userservice-test.db'}"),
        security=SecurityConfig(mfa_encryption_key=encryption_key, bcrypt_rounds=4),
    )


@pytest.fixture
def secret_cipher(encryption_key) -> SecretCipher:
    return SecretCipher(encryption_key)


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def database(settings) -> Iterator[DatabaseManager]:
    manager = DatabaseManager(settings.database)
    manager.create_tables()
    yield manager
    manager.drop_tables()
    manager.dispose()


@pytest.fixture
def db_session(database) -> Iterator[Session]:
    session = database.new_session()
    yield session
    session.close()


@pytest.fixture
def user_repository(db_session) -> SQLUserRepository:
    return SQLUserRepository(db_session)


@pytest.fixture
def method_repository(db_session) -> SQLMFAMethodRepository:
    return SQLMFAMethodRepository(db_session)


@pytest.fixture
def backup_code_repository(db_session) -> SQLBackupCodeRepository:
    return SQLBackupCodeRepository(db_session)


@pytest.fixture
def session_repository(db_session) -> SQLMFASessionRepository:
    return SQLMFASessionRepository(db_session)


@pytest.fixture
def policy_repository(db_session) -> SQLPolicyRepository:
    return SQLPolicyRepository(db_session)


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def event_publisher() -> RecordingEventPublisher:
    return RecordingEventPublisher()


@pytest.fixture
def services(db_session, settings, secret_cipher, event_publisher) -> IdentityServices:
    return build_identity_services(
        db_session,
        settings,
        secret_cipher=secret_cipher,
        event_publisher=event_publisher,
    )


@pytest.fixture
def mandatory_policy() -> MFAEnforcementPolicy:
    """Admin policy: TOTP or email, mandatory after a 7 day grace period."""
    return MFAEnforcementPolicy(
        role=UserRole.ADMIN,
        primary_methods=[MFAMethodType.TOTP],
        alternative_methods=[MFAMethodType.EMAIL_OTP],
        enforcement_level=EnforcementLevel.MANDATORY,
        grace_period_days=7,
        require_backup_codes=True,
    )
