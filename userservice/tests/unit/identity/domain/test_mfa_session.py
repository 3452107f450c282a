"""
Test suite for the MFA verification session state machine.

Tests cover state derivation, attempt accounting, terminal states and the
errors raised for failed outcomes.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from userservice.modules.identity.domain.entities import MFASession
from userservice.modules.identity.domain.enums import (
    MFAMethodType,
    MFASessionState,
    VerificationOutcome,
)
from userservice.modules.identity.domain.errors import (
    AttemptsExceededError,
    InvalidCodeError,
    SessionAlreadyVerifiedError,
    SessionExpiredError,
)
from userservice.tests.factories import FIXED_NOW

pytestmark = pytest.mark.unit


@pytest.fixture
def email_session() -> MFASession:
    return MFASession.create(
        uuid4(),
        MFAMethodType.EMAIL_OTP,
        code="482910",
        ttl=timedelta(minutes=5),
        max_attempts=3,
        now=FIXED_NOW,
    )


class TestSessionCreation:
    """Test opening a session."""

    def test_create_sets_expiry_and_hash(self, email_session):
        """Test expiry is relative to now and the code is only kept hashed."""
        assert email_session.expires_at == FIXED_NOW + timedelta(minutes=5)
        assert email_session.created_at == FIXED_NOW
        assert email_session.attempts == 0
        assert email_session.code_hash is not None
        assert email_session.code_hash.value != "482910"
        assert email_session.state(FIXED_NOW) == MFASessionState.ACTIVE

    def test_max_attempts_must_be_positive(self):
        """Test a session needs at least one attempt."""
        with pytest.raises(ValueError):
            MFASession.create(uuid4(), MFAMethodType.EMAIL_OTP, code="123456", max_attempts=0)

    def test_to_dict_omits_code_hash(self, email_session):
        """Test the hash never leaves through serialisation."""
        data = email_session.to_dict()

        assert "code_hash" not in data
        assert data["state"] in {state.value for state in MFASessionState}


class TestAttempts:
    """Test MFASession.attempt transitions."""

    def test_correct_code_verifies(self, email_session):
        """Test ACTIVE to VERIFIED on a match."""
        now = FIXED_NOW + timedelta(minutes=1)

        result = email_session.attempt("482910", now=now)

        assert result.outcome == VerificationOutcome.VERIFIED
        assert result.succeeded
        assert result.consumed_attempt
        assert email_session.is_verified
        assert email_session.verified_at == now
        assert email_session.attempts == 1
        assert email_session.state(now) == MFASessionState.VERIFIED

    def test_wrong_code_keeps_session_active(self, email_session):
        """Test a mismatch below the limit stays ACTIVE."""
        result = email_session.attempt("000000", now=FIXED_NOW)

        assert result.outcome == VerificationOutcome.INVALID_CODE
        assert result.attempts_remaining == 2
        assert email_session.state(FIXED_NOW) == MFASessionState.ACTIVE

    def test_last_wrong_code_exhausts(self, email_session):
        """Test the final mismatch moves to EXHAUSTED."""
        email_session.attempt("000000", now=FIXED_NOW)
        email_session.attempt("000001", now=FIXED_NOW)
        result = email_session.attempt("000002", now=FIXED_NOW)

        assert result.outcome == VerificationOutcome.ATTEMPTS_EXCEEDED
        assert result.consumed_attempt
        assert email_session.attempts == 3
        assert email_session.state(FIXED_NOW) == MFASessionState.EXHAUSTED

    def test_exhausted_session_rejects_correct_code(self, email_session):
        """Test a terminal session never verifies."""
        for _ in range(3):
            email_session.attempt("000000", now=FIXED_NOW)

        result = email_session.attempt("482910", now=FIXED_NOW)

        assert result.outcome == VerificationOutcome.ATTEMPTS_EXCEEDED
        assert result.consumed_attempt is False
        assert email_session.attempts == 3
        assert email_session.is_verified is False

    def test_expired_session_consumes_nothing(self, email_session):
        """Test attempts after expiry are not counted."""
        later = email_session.expires_at + timedelta(seconds=1)

        result = email_session.attempt("482910", now=later)

        assert result.outcome == VerificationOutcome.EXPIRED
        assert result.consumed_attempt is False
        assert email_session.attempts == 0
        assert email_session.state(later) == MFASessionState.EXPIRED

    def test_expiry_boundary_is_inclusive(self, email_session):
        """Test a session is still usable exactly at its expiry instant."""
        result = email_session.attempt("482910", now=email_session.expires_at)

        assert result.outcome == VerificationOutcome.VERIFIED

    def test_verified_session_cannot_be_reused(self, email_session):
        """Test a second attempt reports ALREADY_VERIFIED."""
        email_session.attempt("482910", now=FIXED_NOW)

        result = email_session.attempt("482910", now=FIXED_NOW)

        assert result.outcome == VerificationOutcome.ALREADY_VERIFIED
        assert result.consumed_attempt is False
        assert email_session.attempts == 1

    def test_verified_wins_over_expiry(self, email_session):
        """Test a verified session stays VERIFIED after it expires."""
        email_session.attempt("482910", now=FIXED_NOW)

        assert email_session.state(FIXED_NOW + timedelta(hours=1)) == MFASessionState.VERIFIED

    def test_code_comparison_ignores_spacing(self, email_session):
        """Test grouped input still matches."""
        result = email_session.attempt(" 482 910 ", now=FIXED_NOW)

        assert result.succeeded

    def test_matcher_used_instead_of_hash(self):
        """Test TOTP style sessions verify through the matcher."""
        session = MFASession.create(uuid4(), MFAMethodType.TOTP, now=FIXED_NOW)

        result = session.attempt("123456", now=FIXED_NOW, matcher=lambda code: code == "123456")

        assert result.succeeded

    def test_session_without_code_or_matcher(self):
        """Test a session with nothing to compare against is a programming error."""
        session = MFASession.create(uuid4(), MFAMethodType.TOTP, now=FIXED_NOW)

        with pytest.raises(ValueError):
            session.attempt("123456", now=FIXED_NOW)


class TestOutcomeErrors:
    """Test verify() and raise_for_outcome()."""

    def test_invalid_code_error_reports_remaining(self, email_session):
        """Test the remaining attempts are surfaced."""
        with pytest.raises(InvalidCodeError) as exc_info:
            email_session.verify("000000", now=FIXED_NOW)

        assert exc_info.value.attempts_remaining == 2
        assert exc_info.value.details["session_id"] == str(email_session.id)

    def test_attempts_exceeded_error(self, email_session):
        """Test exhaustion raises AttemptsExceededError."""
        email_session.attempt("000000", now=FIXED_NOW)
        email_session.attempt("000000", now=FIXED_NOW)

        with pytest.raises(AttemptsExceededError):
            email_session.verify("000000", now=FIXED_NOW)

    def test_expired_error(self, email_session):
        """Test expiry raises SessionExpiredError."""
        with pytest.raises(SessionExpiredError):
            email_session.verify("482910", now=FIXED_NOW + timedelta(minutes=10))

    def test_already_verified_error(self, email_session):
        """Test reuse raises SessionAlreadyVerifiedError."""
        email_session.verify("482910", now=FIXED_NOW)

        with pytest.raises(SessionAlreadyVerifiedError):
            email_session.verify("482910", now=FIXED_NOW)

    def test_success_returns_result(self, email_session):
        """Test a successful verify returns without raising."""
        result = email_session.verify("482910", now=FIXED_NOW)

        assert result.succeeded
        assert result.attempts_remaining == 2

    def test_session_error_serialises_code(self, email_session):
        """Test the error code and user message are serialised."""
        with pytest.raises(InvalidCodeError) as exc_info:
            email_session.verify("111111", now=FIXED_NOW)

        data = exc_info.value.to_dict()
        assert data["error"] == "INVALID_CODE"
        assert "attempt(s) remaining" in data["message"]
