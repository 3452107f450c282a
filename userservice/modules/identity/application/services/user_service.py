"""
User Service

Registration, lookup, consent and activation use cases for the user
aggregate.
"""

from datetime import datetime
from uuid import UUID

from userservice.core.config import Settings, get_settings
from userservice.core.logging import get_logger
from userservice.modules.identity.domain.entities import User
from userservice.modules.identity.domain.enums import DocumentType, UserRole
from userservice.modules.identity.domain.errors import DuplicateUserError, UserNotFoundError
from userservice.modules.identity.domain.interfaces import (
    IEventPublisher,
    IUserRepository,
    PaginatedUsers,
    UserFilters,
)
from userservice.modules.identity.domain.validation import validate_password
from userservice.modules.identity.infrastructure.security import BcryptPasswordHasher

logger = get_logger(__name__)


class UserService:
    """Application service for user lifecycle operations."""

    def __init__(
        self,
        user_repository: IUserRepository,
        password_hasher: BcryptPasswordHasher,
        settings: Settings | None = None,
        event_publisher: IEventPublisher | None = None,
    ):
        self.user_repository = user_repository
        self.password_hasher = password_hasher
        self.settings = settings or get_settings()
        self.event_publisher = event_publisher

    def register_user(
        self,
        first_name: str,
        last_name: str,
        email: str,
        document_number: str,
        document_type: DocumentType | str,
        role: UserRole | str,
        password: str,
        *,
        phone: str | None = None,
        ficha_id: str | None = None,
        sede_id: UUID | None = None,
        program: str | None = None,
    ) -> User:
        """
        Register a new user.

        Raises:
            ValidationError: A field or the password fails validation
            DuplicateUserError: Email or document number already registered
        """
        user = User.create(
            first_name,
            last_name,
            email,
            document_number,
            document_type,
            role,
            phone=phone,
            ficha_id=ficha_id,
            sede_id=sede_id,
            program=program,
        )
        validate_password(password)

        if self.user_repository.exists_by_email(user.email):
            raise DuplicateUserError("email", user.email)
        if self.user_repository.exists_by_document_number(user.document_number):
            raise DuplicateUserError("document_number", user.document_number)

        user.set_password_hash(self.password_hasher.hash_password(password))
        self.user_repository.create(user)
        self._publish(user)

        logger.info("user_registered", user_id=str(user.id), role=user.role.value)
        return user

    def get_user(self, user_id: UUID) -> User:
        user = self.user_repository.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_user_by_email(self, email: str) -> User:
        user = self.user_repository.get_by_email(email)
        if user is None:
            raise UserNotFoundError(email)
        return user

    def list_users(self, filters: UserFilters | None = None) -> PaginatedUsers:
        return self.user_repository.list(filters or UserFilters())

    def verify_password(self, user_id: UUID, password: str) -> bool:
        user = self.get_user(user_id)
        if not user.password_hash:
            return False
        return self.password_hasher.verify_password(password, user.password_hash)

    def accept_legal_policies(
        self, user_id: UUID, ip_address: str, now: datetime | None = None
    ) -> User:
        """Record consent to the currently published versions of all three documents."""
        user = self.get_user(user_id)
        privacy, terms, data = self.settings.legal.current_versions()
        user.accept_legal_policies(privacy, terms, data, ip_address, now=now)
        self.user_repository.update(user)
        self._publish(user)

        logger.info("legal_policies_accepted", user_id=str(user_id), versions=[privacy, terms, data])
        return user

    def needs_policy_update(self, user: User) -> bool:
        return user.needs_policy_update(*self.settings.legal.current_versions())

    def activate(self, user_id: UUID) -> User:
        user = self.get_user(user_id)
        user.activate()
        self.user_repository.update(user)
        self._publish(user)
        logger.info("user_activated", user_id=str(user_id))
        return user

    def deactivate(self, user_id: UUID) -> User:
        user = self.get_user(user_id)
        user.deactivate()
        self.user_repository.update(user)
        self._publish(user)
        logger.info("user_deactivated", user_id=str(user_id))
        return user

    def _publish(self, user: User) -> None:
        events = user.clear_events()
        if self.event_publisher is None:
            return
        for event in events:
            self.event_publisher.publish(event)
