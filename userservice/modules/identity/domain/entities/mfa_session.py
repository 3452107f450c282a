"""
MFA Session Entity

A bounded verification attempt. The session state is derived from the stored
columns (``is_verified``, ``attempts``, ``max_attempts``, ``expires_at``) so
expiry is evaluated at read time and nothing needs to sweep sessions.

State machine:

    ACTIVE --match--------------------------> VERIFIED
    ACTIVE --mismatch, attempts >= max------> EXHAUSTED
    ACTIVE --now > expires_at---------------> EXPIRED
    ACTIVE --mismatch, attempts < max-------> ACTIVE

Terminal states are never left; a retry needs a new session.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from userservice.core.domain.base import Entity, utc_now

from ..enums import MFAMethodType, MFASessionState, VerificationOutcome
from ..errors import (
    AttemptsExceededError,
    InvalidCodeError,
    SessionAlreadyVerifiedError,
    SessionExpiredError,
)
from ..value_objects import CodeHash

DEFAULT_SESSION_TTL = timedelta(minutes=5)
DEFAULT_MAX_ATTEMPTS = 3

CodeMatcher = Callable[[str], bool]


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one call to ``MFASession.attempt``."""

    session_id: UUID
    outcome: VerificationOutcome
    attempts: int
    max_attempts: int
    consumed_attempt: bool
    expires_at: datetime

    @property
    def succeeded(self) -> bool:
        return self.outcome.is_success

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempts, 0)

    def raise_for_outcome(self) -> None:
        """Raise the error matching a failed outcome; no-op on success."""
        if self.outcome == VerificationOutcome.EXPIRED:
            raise SessionExpiredError(self.session_id, self.expires_at)
        if self.outcome == VerificationOutcome.INVALID_CODE:
            raise InvalidCodeError(self.session_id, self.attempts_remaining)
        if self.outcome == VerificationOutcome.ATTEMPTS_EXCEEDED:
            raise AttemptsExceededError(self.session_id, self.max_attempts)
        if self.outcome == VerificationOutcome.ALREADY_VERIFIED:
            raise SessionAlreadyVerifiedError(self.session_id)


class MFASession(Entity):
    """Short-lived verification session for one method type."""

    def __init__(
        self,
        *,
        user_id: UUID,
        method_type: MFAMethodType,
        expires_at: datetime,
        code_hash: CodeHash | None = None,
        is_verified: bool = False,
        verified_at: datetime | None = None,
        attempts: int = 0,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        ip_address: str = "",
        user_agent: str = "",
        entity_id: UUID | None = None,
        created_at: datetime | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.user_id = user_id
        self.method_type = method_type
        self.expires_at = expires_at
        self.code_hash = code_hash
        self.is_verified = is_verified
        self.verified_at = verified_at
        self.attempts = attempts
        self.max_attempts = max_attempts
        self.ip_address = ip_address
        self.user_agent = user_agent
        super().__init__(entity_id, created_at)

    @classmethod
    def create(
        cls,
        user_id: UUID,
        method_type: MFAMethodType,
        *,
        code: str | None = None,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        ip_address: str = "",
        user_agent: str = "",
        now: datetime | None = None,
    ) -> "MFASession":
        """Open a session in ACTIVE state. ``code`` is hashed, never stored."""
        now = now or utc_now()
        return cls(
            user_id=user_id,
            method_type=method_type,
            expires_at=now + ttl,
            code_hash=CodeHash.from_plain(code) if code else None,
            max_attempts=max_attempts,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
        )

    # ------------------------------------------------------------------ state

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) > self.expires_at

    def has_exceeded_attempts(self) -> bool:
        return self.attempts >= self.max_attempts

    def state(self, now: datetime | None = None) -> MFASessionState:
        if self.is_verified:
            return MFASessionState.VERIFIED
        if self.has_exceeded_attempts():
            return MFASessionState.EXHAUSTED
        if self.is_expired(now):
            return MFASessionState.EXPIRED
        return MFASessionState.ACTIVE

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempts, 0)

    # ------------------------------------------------------------- transitions

    def attempt(
        self,
        code: str,
        now: datetime | None = None,
        matcher: CodeMatcher | None = None,
    ) -> VerificationResult:
        """
        Apply one verification attempt.

        Only an ACTIVE session consumes an attempt. The code is compared with
        ``matcher`` when given (TOTP, WebAuthn), otherwise with the stored
        hash of the issued code.

        Raises:
            ValueError: If the session has neither a code hash nor a matcher
        """
        now = now or utc_now()
        state = self.state(now)

        if state == MFASessionState.VERIFIED:
            return self._result(VerificationOutcome.ALREADY_VERIFIED, consumed=False)
        if state == MFASessionState.EXHAUSTED:
            return self._result(VerificationOutcome.ATTEMPTS_EXCEEDED, consumed=False)
        if state == MFASessionState.EXPIRED:
            return self._result(VerificationOutcome.EXPIRED, consumed=False)

        if matcher is None and self.code_hash is None:
            raise ValueError(
                f"Session {self.id} has no issued code; a matcher is required "
                f"for {self.method_type.value}"
            )

        self.attempts += 1
        matched = matcher(code) if matcher is not None else self.code_hash.matches(code)

        if matched:
            self.is_verified = True
            self.verified_at = now
            self.updated_at = now
            return self._result(VerificationOutcome.VERIFIED, consumed=True)

        self.updated_at = now
        if self.has_exceeded_attempts():
            return self._result(VerificationOutcome.ATTEMPTS_EXCEEDED, consumed=True)
        return self._result(VerificationOutcome.INVALID_CODE, consumed=True)

    def verify(
        self,
        code: str,
        now: datetime | None = None,
        matcher: CodeMatcher | None = None,
    ) -> VerificationResult:
        """``attempt`` followed by ``raise_for_outcome``."""
        result = self.attempt(code, now=now, matcher=matcher)
        result.raise_for_outcome()
        return result

    def _result(self, outcome: VerificationOutcome, consumed: bool) -> VerificationResult:
        return VerificationResult(
            session_id=self.id,
            outcome=outcome,
            attempts=self.attempts,
            max_attempts=self.max_attempts,
            consumed_attempt=consumed,
            expires_at=self.expires_at,
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.pop("code_hash", None)
        data["state"] = self.state().value
        return data
