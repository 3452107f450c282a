"""Identity module dependency wiring.

Builds the application services for one database session. Repositories are
scoped to the session; the security adapters are derived from settings.
"""

from dataclasses import dataclass

from sqlmodel import Session

from userservice.core.config import Settings, get_settings
from userservice.core.logging import get_logger
from userservice.modules.identity.application.services import (
    MFAService,
    UserService,
    WebAuthnVerifier,
)
from userservice.modules.identity.domain.interfaces import IEventPublisher
from userservice.modules.identity.domain.services import EnforcementPolicyResolver

from .repositories import (
    SQLBackupCodeRepository,
    SQLMFAMethodRepository,
    SQLMFASessionRepository,
    SQLPolicyRepository,
    SQLUserRepository,
)
from .security import BcryptPasswordHasher, SecretCipher, TOTPService

logger = get_logger(__name__)


@dataclass
class IdentityServices:
    user_service: UserService
    mfa_service: MFAService


def build_secret_cipher(settings: Settings) -> SecretCipher:
    key = settings.security.mfa_encryption_key
    if not key:
        # Production settings refuse to load without a key
        logger.warning(
            "mfa_encryption_key_missing",
            environment=settings.environment.value,
            detail="using an ephemeral key; stored TOTP secrets will not survive a restart",
        )
        key = SecretCipher.generate_key()
    return SecretCipher(key)


def build_identity_services(
    session: Session,
    settings: Settings | None = None,
    *,
    secret_cipher: SecretCipher | None = None,
    event_publisher: IEventPublisher | None = None,
    webauthn_verifier: WebAuthnVerifier | None = None,
) -> IdentityServices:
    """Wire the user and MFA services against one session."""
    settings = settings or get_settings()
    user_repository = SQLUserRepository(session)

    user_service = UserService(
        user_repository,
        BcryptPasswordHasher(rounds=settings.security.bcrypt_rounds),
        settings=settings,
        event_publisher=event_publisher,
    )
    mfa_service = MFAService(
        user_repository=user_repository,
        method_repository=SQLMFAMethodRepository(session),
        backup_code_repository=SQLBackupCodeRepository(session),
        session_repository=SQLMFASessionRepository(session),
        policy_resolver=EnforcementPolicyResolver(SQLPolicyRepository(session)),
        totp_service=TOTPService(
            issuer_name=settings.mfa.totp_issuer,
            valid_window=settings.mfa.totp_valid_window,
        ),
        secret_cipher=secret_cipher or build_secret_cipher(settings),
        settings=settings,
        event_publisher=event_publisher,
        webauthn_verifier=webauthn_verifier,
    )
    return IdentityServices(user_service=user_service, mfa_service=mfa_service)
