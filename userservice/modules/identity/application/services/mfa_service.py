"""
MFA Service

Coordinates the MFA lifecycle: deciding whether a user must present a second
factor, registering methods, issuing and verifying challenges, and the backup
code fallback.

Verification flow:
    1. ``issue_challenge`` opens a session (and, for email/SMS, returns the
       one-time code the caller must deliver)
    2. ``verify_challenge`` loads the session, applies one attempt and writes
       it back with a compare-and-set on the attempt counter
    3. on success the method is marked used and the user logged in
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

from userservice.core.config import Settings, get_settings
from userservice.core.domain.base import DomainEvent, utc_now
from userservice.core.logging import get_logger
from userservice.modules.identity.domain.entities import (
    BackupCode,
    MFAMethod,
    MFASession,
    User,
    VerificationResult,
)
from userservice.modules.identity.domain.entities.mfa_session import CodeMatcher
from userservice.modules.identity.domain.enums import MFAMethodType, MFASessionState
from userservice.modules.identity.domain.errors import (
    AuthenticationError,
    BackupCodeAlreadyUsedError,
    BackupCodeInvalidError,
    ConcurrentModificationError,
    MFAMethodDisabledError,
    MFAMethodNotAllowedError,
    MFAMethodNotFoundError,
    MFASessionNotFoundError,
    SystemAccessDeniedError,
    UserNotFoundError,
)
from userservice.modules.identity.domain.events import (
    BackupCodeConsumed,
    BackupCodesGenerated,
    MFAChallengeFailed,
    MFAChallengeVerified,
)
from userservice.modules.identity.domain.interfaces import (
    IBackupCodeRepository,
    IEventPublisher,
    IMFAMethodRepository,
    IMFASessionRepository,
    IUserRepository,
)
from userservice.modules.identity.domain.rules import MFAEnforcementRule, PolicyValidationResult
from userservice.modules.identity.domain.services import (
    EnforcementDecision,
    EnforcementPolicyResolver,
)
from userservice.modules.identity.domain.value_objects import CodeHash
from userservice.modules.identity.infrastructure.security import (
    SecretCipher,
    TOTPService,
    generate_numeric_code,
)

logger = get_logger(__name__)

# Verifies a WebAuthn assertion against the stored credential
WebAuthnVerifier = Callable[[MFAMethod, str], bool]


class MFAService:
    """Service to orchestrate MFA operations for users."""

    def __init__(
        self,
        *,
        user_repository: IUserRepository,
        method_repository: IMFAMethodRepository,
        backup_code_repository: IBackupCodeRepository,
        session_repository: IMFASessionRepository,
        policy_resolver: EnforcementPolicyResolver,
        totp_service: TOTPService,
        secret_cipher: SecretCipher,
        settings: Settings | None = None,
        event_publisher: IEventPublisher | None = None,
        webauthn_verifier: WebAuthnVerifier | None = None,
    ):
        """Initialize MFA service.

        Args:
            user_repository: Repository for users
            method_repository: Repository for registered MFA methods
            backup_code_repository: Repository for backup codes
            session_repository: Repository for verification sessions
            policy_resolver: Per-role enforcement policy lookup
            totp_service: TOTP generation and verification
            secret_cipher: Encryption of TOTP secrets at rest
            settings: Service settings, defaults to ``get_settings()``
            event_publisher: Receives domain events after persistence
            webauthn_verifier: Assertion checker; WebAuthn challenges fail
                without one
        """
        self.user_repository = user_repository
        self.method_repository = method_repository
        self.backup_code_repository = backup_code_repository
        self.session_repository = session_repository
        self.policy_resolver = policy_resolver
        self.totp_service = totp_service
        self.secret_cipher = secret_cipher
        self.settings = settings or get_settings()
        self.event_publisher = event_publisher
        self.webauthn_verifier = webauthn_verifier
        self.enforcement_rule = MFAEnforcementRule()

    # ------------------------------------------------------------ enforcement

    def requirement_for(
        self,
        user: User,
        enforced_since: datetime | None = None,
        now: datetime | None = None,
    ) -> EnforcementDecision:
        """
        Decide what the user's role policy demands right now.

        Only enabled methods the policy allows count as configured MFA. The
        grace period runs from ``enforced_since``, defaulting to the user's
        registration time.
        """
        policy = self.policy_resolver.resolve(user.role)
        methods = self.method_repository.list_for_user(user.id, enabled_only=True)
        has_mfa = any(policy.allows(method.method_type) for method in methods)

        decision = self.policy_resolver.evaluate(
            policy,
            has_mfa=has_mfa,
            enforced_since=enforced_since or user.created_at,
            now=now,
        )
        logger.info(
            "mfa_requirement_evaluated",
            user_id=str(user.id),
            role=user.role.value,
            enforcement_level=policy.enforcement_level.value,
            has_mfa=has_mfa,
            blocks_access=decision.blocks_access,
            in_grace_period=decision.in_grace_period,
        )
        return decision

    def check_compliance(
        self,
        user: User,
        enforced_since: datetime | None = None,
        now: datetime | None = None,
    ) -> PolicyValidationResult:
        """Report every gap between the user's MFA setup and the role policy."""
        now = now or utc_now()
        policy = self.policy_resolver.resolve(user.role)
        return self.enforcement_rule.validate_with_result(
            policy,
            self.method_repository.list_for_user(user.id),
            usable_backup_codes=self.backup_code_repository.count_usable(user.id, now),
            enforced_since=enforced_since or user.created_at,
            now=now,
        )

    # ---------------------------------------------------------------- methods

    def register_method(
        self,
        user: User,
        method_type: MFAMethodType | str,
        *,
        make_primary: bool = False,
        phone_number: str | None = None,
        email_address: str | None = None,
        webauthn_data: dict[str, Any] | None = None,
    ) -> tuple[MFAMethod, str | None]:
        """
        Register a second factor for a user.

        A TOTP secret is generated here and stored encrypted. The user's first
        method becomes primary even without ``make_primary``.

        Returns:
            Tuple of (method, provisioning URI for TOTP or None)

        Raises:
            ValidationError: Unknown type or missing contact data
            MFAMethodNotAllowedError: The role policy does not allow the type
        """
        method_type = MFAMethod.parse_type(method_type)
        policy = self.policy_resolver.resolve(user.role)
        if not policy.allows(method_type):
            raise MFAMethodNotAllowedError(
                method_type.value,
                user.role.value,
                [m.value for m in policy.allowed_methods],
            )

        secret_encrypted = None
        provisioning_uri = None
        if method_type == MFAMethodType.TOTP:
            secret = self.totp_service.generate_secret()
            secret_encrypted = self.secret_cipher.encrypt(secret)
            provisioning_uri = self.totp_service.generate_uri(secret, user.email)

        is_primary = make_primary or self.method_repository.get_primary(user.id) is None
        method = MFAMethod.create(
            user.id,
            method_type,
            is_primary=is_primary,
            secret_encrypted=secret_encrypted,
            phone_number=phone_number,
            email_address=email_address,
            webauthn_data=webauthn_data,
        )
        self.method_repository.add(method)
        self._publish(method.clear_events())

        logger.info(
            "mfa_method_registered",
            user_id=str(user.id),
            method_id=str(method.id),
            method_type=method_type.value,
            is_primary=is_primary,
        )
        return method, provisioning_uri

    def list_methods(self, user_id: UUID, enabled_only: bool = False) -> list[MFAMethod]:
        return self.method_repository.list_for_user(user_id, enabled_only=enabled_only)

    def set_primary_method(self, user_id: UUID, method_id: UUID) -> MFAMethod:
        """
        Make one of the user's methods primary, demoting the current one.

        Raises:
            MFAMethodNotFoundError: Unknown method or owned by another user
            MFAMethodDisabledError: The method is disabled
            ConcurrentModificationError: The method changed while switching
        """
        method = self._get_owned_method(user_id, method_id)
        if not method.is_enabled:
            raise MFAMethodDisabledError(method_id)

        if not self.method_repository.set_primary(user_id, method_id):
            raise ConcurrentModificationError("MFA method", method_id)

        method.promote()
        logger.info("mfa_primary_method_set", user_id=str(user_id), method_id=str(method_id))
        return method

    def disable_method(self, user_id: UUID, method_id: UUID) -> MFAMethod:
        method = self._get_owned_method(user_id, method_id)
        method.disable()
        self.method_repository.update(method)
        logger.info("mfa_method_disabled", user_id=str(user_id), method_id=str(method_id))
        return method

    # ------------------------------------------------------------- challenges

    def issue_challenge(
        self,
        user: User,
        method_type: MFAMethodType | str | None = None,
        *,
        ip_address: str = "",
        user_agent: str = "",
        now: datetime | None = None,
    ) -> tuple[MFASession, str | None]:
        """
        Open a verification session for one of the user's methods.

        Uses the primary method unless ``method_type`` is given. For email and
        SMS a one-time code is generated; delivering it is the caller's job.

        Returns:
            Tuple of (session, plain code or None)

        Raises:
            SystemAccessDeniedError: Inactive user or missing legal consent
            ValidationError: Unknown method type
            MFAMethodNotFoundError: No such method registered
            MFAMethodDisabledError: The method is disabled
            MFAMethodNotAllowedError: The role policy no longer allows it
        """
        if method_type is not None:
            method_type = MFAMethod.parse_type(method_type)
        if not user.can_access_system():
            raise SystemAccessDeniedError(user.id, user.access_denial_reason())

        if method_type is None:
            method = self.method_repository.get_primary(user.id)
        else:
            method = self.method_repository.get_by_type(user.id, method_type)
        if method is None:
            raise MFAMethodNotFoundError(
                f"{user.id}:{method_type.value if method_type else 'primary'}"
            )
        if not method.is_enabled:
            raise MFAMethodDisabledError(method.id)

        policy = self.policy_resolver.resolve(user.role)
        if not policy.allows(method.method_type):
            raise MFAMethodNotAllowedError(
                method.method_type.value,
                user.role.value,
                [m.value for m in policy.allowed_methods],
            )

        mfa_config = self.settings.mfa
        code = (
            generate_numeric_code(mfa_config.otp_length)
            if method.method_type.uses_issued_code
            else None
        )
        session = MFASession.create(
            user.id,
            method.method_type,
            code=code,
            ttl=mfa_config.session_ttl,
            max_attempts=mfa_config.max_attempts,
            ip_address=ip_address,
            user_agent=user_agent,
            now=now,
        )
        self.session_repository.add(session)

        logger.info(
            "mfa_challenge_issued",
            user_id=str(user.id),
            session_id=str(session.id),
            method_type=method.method_type.value,
            expires_at=session.expires_at.isoformat(),
        )
        return session, code

    def verify_challenge(
        self, session_id: UUID, code: str, now: datetime | None = None
    ) -> VerificationResult:
        """
        Apply one verification attempt to a session.

        The attempt is written with a compare-and-set on the counter read
        here, so concurrent attempts can never overspend the attempt budget
        or verify a session twice.

        Raises:
            MFASessionNotFoundError: Unknown session
            SessionExpiredError / InvalidCodeError / AttemptsExceededError /
            SessionAlreadyVerifiedError: Failed outcome
            ConcurrentModificationError: Another attempt was written first
        """
        now = now or utc_now()
        session = self.session_repository.get_by_id(session_id)
        if session is None:
            raise MFASessionNotFoundError(session_id)

        method = self.method_repository.get_by_type(session.user_id, session.method_type)
        matcher = None
        if session.state(now) == MFASessionState.ACTIVE:
            matcher = self._matcher_for(session, method, now)

        expected_attempts = session.attempts
        result = session.attempt(code, now=now, matcher=matcher)

        if result.consumed_attempt and not self.session_repository.save_attempt(
            session, expected_attempts
        ):
            raise ConcurrentModificationError("MFA session", session.id)

        if result.succeeded:
            self._complete_login(session, method, now)
        elif result.consumed_attempt:
            self._publish(
                [
                    MFAChallengeFailed(
                        session_id=session.id,
                        user_id=session.user_id,
                        outcome=result.outcome.value,
                        attempts=result.attempts,
                    )
                ]
            )

        logger.info(
            "mfa_challenge_attempted",
            session_id=str(session.id),
            user_id=str(session.user_id),
            outcome=result.outcome.value,
            attempts=result.attempts,
            attempts_remaining=result.attempts_remaining,
        )
        result.raise_for_outcome()
        return result

    def purge_expired_sessions(self, now: datetime | None = None) -> int:
        return self.session_repository.delete_expired(now or utc_now())

    # ----------------------------------------------------------- backup codes

    def generate_backup_codes(
        self, user_id: UUID, count: int | None = None, now: datetime | None = None
    ) -> tuple[list[BackupCode], list[str]]:
        """
        Replace the user's unused backup codes with a fresh batch.

        Returns:
            Tuple of (stored codes, plain codes to show the user once)
        """
        if self.user_repository.get_by_id(user_id) is None:
            raise UserNotFoundError(user_id)

        mfa_config = self.settings.mfa
        codes, plain_codes = BackupCode.generate_batch(
            user_id,
            count=count if count is not None else mfa_config.backup_code_count,
            validity=mfa_config.backup_code_validity,
            length=mfa_config.backup_code_length,
            now=now,
        )
        revoked = self.backup_code_repository.replace_unused(user_id, codes)
        self._publish(
            [BackupCodesGenerated(user_id=user_id, count=len(codes), expires_at=codes[0].expires_at)]
        )

        logger.info(
            "backup_codes_generated", user_id=str(user_id), count=len(codes), revoked=revoked
        )
        return codes, plain_codes

    def consume_backup_code(
        self, user_id: UUID, code: str, now: datetime | None = None
    ) -> BackupCode:
        """
        Redeem a backup code. Of concurrent redemptions exactly one succeeds.

        Raises:
            BackupCodeInvalidError: No such code for the user
            BackupCodeExpiredError: The code is past its validity
            BackupCodeAlreadyUsedError: The code was already redeemed
        """
        now = now or utc_now()
        if not code or not code.strip():
            raise BackupCodeInvalidError()

        stored = self.backup_code_repository.find_by_hash(user_id, CodeHash.from_plain(code))
        if stored is None:
            logger.warning("backup_code_rejected", user_id=str(user_id))
            raise BackupCodeInvalidError()

        stored.consume(now)
        if not self.backup_code_repository.consume(stored.id, now):
            raise BackupCodeAlreadyUsedError(stored.id)

        self._publish([BackupCodeConsumed(user_id=user_id, code_id=stored.id)])
        logger.info(
            "backup_code_consumed",
            user_id=str(user_id),
            code_id=str(stored.id),
            remaining=self.backup_code_repository.count_usable(user_id, now),
        )
        return stored

    def backup_codes_remaining(self, user_id: UUID, now: datetime | None = None) -> int:
        return self.backup_code_repository.count_usable(user_id, now)

    # ---------------------------------------------------------------- helpers

    def _get_owned_method(self, user_id: UUID, method_id: UUID) -> MFAMethod:
        method = self.method_repository.get_by_id(method_id)
        if method is None or method.user_id != user_id:
            raise MFAMethodNotFoundError(method_id)
        return method

    def _matcher_for(
        self, session: MFASession, method: MFAMethod | None, now: datetime
    ) -> CodeMatcher | None:
        """Code checker for methods verified outside the session's stored hash."""
        if session.method_type.uses_issued_code:
            return None
        if method is None:
            raise MFAMethodNotFoundError(f"{session.user_id}:{session.method_type.value}")

        if session.method_type == MFAMethodType.TOTP:
            secret = self.secret_cipher.decrypt(method.secret_encrypted or "")
            return lambda code: self.totp_service.verify_token(secret, code, for_time=now)

        if self.webauthn_verifier is None:
            raise AuthenticationError(
                "WebAuthn assertion verification is not configured",
                details={"session_id": str(session.id)},
            )
        verifier = self.webauthn_verifier
        return lambda assertion: verifier(method, assertion)

    def _complete_login(self, session: MFASession, method: MFAMethod | None, now: datetime) -> None:
        if method is not None:
            method.mark_used(now)
            self.method_repository.update(method)

        events: list[DomainEvent] = [
            MFAChallengeVerified(
                session_id=session.id,
                user_id=session.user_id,
                method_type=session.method_type.value,
            )
        ]
        user = self.user_repository.get_by_id(session.user_id)
        if user is not None:
            user.mark_logged_in(now)
            self.user_repository.update(user)
            events.extend(user.clear_events())
        self._publish(events)

    def _publish(self, events: list[DomainEvent]) -> None:
        if self.event_publisher is None:
            return
        for event in events:
            self.event_publisher.publish(event)
