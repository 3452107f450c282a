"""
Concurrency tests: racing redemptions and verification attempts, each worker
with its own database session.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from userservice.modules.identity.domain.entities import MFAMethod
from userservice.modules.identity.domain.enums import MFAMethodType
from userservice.modules.identity.domain.errors import (
    AttemptsExceededError,
    BackupCodeAlreadyUsedError,
    ConcurrentModificationError,
    InvalidCodeError,
    SessionAlreadyVerifiedError,
)
from userservice.modules.identity.infrastructure.dependencies import build_identity_services
from userservice.modules.identity.infrastructure.repositories import SQLMFASessionRepository
from userservice.tests.factories import consenting_user

pytestmark = pytest.mark.integration

WORKERS = 6


@pytest.fixture
def user(user_repository, method_repository):
    user = consenting_user()
    user_repository.create(user)
    method_repository.add(
        MFAMethod.create(
            user.id, MFAMethodType.EMAIL_OTP, is_primary=True, email_address=user.email
        )
    )
    return user


@pytest.fixture
def race(database, settings, secret_cipher):
    """Run ``operation(mfa_service)`` in parallel, one session per worker."""

    def run(operation, workers=WORKERS):
        barrier = threading.Barrier(workers)

        def worker():
            session = database.new_session()
            try:
                services = build_identity_services(session, settings, secret_cipher=secret_cipher)
                barrier.wait()
                return operation(services.mfa_service), None
            except Exception as e:
                return None, e
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(worker) for _ in range(workers)]
            return [future.result() for future in futures]

    return run


class TestBackupCodeRace:
    """Test concurrent redemption of one backup code."""

    def test_exactly_one_redemption_wins(self, services, user, race):
        """Test one worker consumes the code and the rest are refused."""
        _, plain = services.mfa_service.generate_backup_codes(user.id, count=3)

        outcomes = race(lambda mfa: mfa.consume_backup_code(user.id, plain[0]))

        winners = [result for result, error in outcomes if error is None]
        errors = [error for _, error in outcomes if error is not None]
        assert len(winners) == 1
        assert all(isinstance(e, BackupCodeAlreadyUsedError) for e in errors)
        assert services.mfa_service.backup_codes_remaining(user.id) == 2


class TestVerificationRace:
    """Test concurrent attempts against one verification session."""

    def test_one_successful_verification(self, services, user, race, db_session):
        """Test the correct code verifies the session once."""
        session, code = services.mfa_service.issue_challenge(user)

        outcomes = race(lambda mfa: mfa.verify_challenge(session.id, code))

        winners = [result for result, error in outcomes if error is None]
        errors = [error for _, error in outcomes if error is not None]
        assert len(winners) == 1
        assert winners[0].succeeded
        assert all(
            isinstance(e, (ConcurrentModificationError, SessionAlreadyVerifiedError))
            for e in errors
        )

        stored = SQLMFASessionRepository(db_session).get_by_id(session.id)
        assert stored.is_verified is True

    def test_attempt_budget_never_overspent(self, services, settings, user, race, db_session):
        """Test racing wrong codes cannot push attempts past the maximum."""
        session, _ = services.mfa_service.issue_challenge(user)

        outcomes = race(lambda mfa: mfa.verify_challenge(session.id, "000000"), workers=10)

        assert all(result is None for result, _ in outcomes)
        assert all(
            isinstance(
                error, (InvalidCodeError, AttemptsExceededError, ConcurrentModificationError)
            )
            for _, error in outcomes
        )

        stored = SQLMFASessionRepository(db_session).get_by_id(session.id)
        assert stored.attempts <= settings.mfa.max_attempts
        assert stored.is_verified is False
