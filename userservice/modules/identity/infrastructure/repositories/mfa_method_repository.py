"""
MFA Method Repository Implementation

Primary method reassignment runs as demote-all then promote inside one
transaction, backed by a partial unique index on ``(user_id) WHERE
is_primary``, so a user never ends up with two primary methods.
"""

from uuid import UUID

from sqlalchemy import delete, update
from sqlmodel import Session, col, select

from userservice.core.logging import get_logger
from userservice.modules.identity.domain.entities import MFAMethod
from userservice.modules.identity.domain.enums import MFAMethodType
from userservice.modules.identity.domain.errors import MFAMethodNotFoundError
from userservice.modules.identity.infrastructure.models import MFAMethodModel
from userservice.modules.identity.infrastructure.models.common import utc_now

from .base import SQLRepository

logger = get_logger(__name__)


class SQLMFAMethodRepository(SQLRepository[MFAMethodModel]):
    """SQLModel implementation of the MFA method repository."""

    model_class = MFAMethodModel

    def __init__(self, session: Session):
        super().__init__(session)

    def add(self, method: MFAMethod) -> None:
        if method.is_primary:
            self._demote_all(method.user_id)
        self.session.add(MFAMethodModel.from_domain(method))
        self._commit()

        logger.info(
            "mfa_method_stored",
            method_id=str(method.id),
            user_id=str(method.user_id),
            method_type=method.method_type.value,
            is_primary=method.is_primary,
        )

    def get_by_id(self, method_id: UUID) -> MFAMethod | None:
        model = self._get_model(method_id)
        return model.to_domain() if model else None

    def list_for_user(self, user_id: UUID, enabled_only: bool = False) -> list[MFAMethod]:
        """Methods of a user, primary first then oldest first."""
        stmt = select(MFAMethodModel).where(MFAMethodModel.user_id == user_id)
        if enabled_only:
            stmt = stmt.where(col(MFAMethodModel.is_enabled).is_(True))
        stmt = stmt.order_by(col(MFAMethodModel.is_primary).desc(), col(MFAMethodModel.created_at))
        return [model.to_domain() for model in self.session.exec(stmt).all()]

    def get_primary(self, user_id: UUID) -> MFAMethod | None:
        stmt = select(MFAMethodModel).where(
            MFAMethodModel.user_id == user_id,
            col(MFAMethodModel.is_primary).is_(True),
        )
        model = self.session.exec(stmt).first()
        return model.to_domain() if model else None

    def get_by_type(self, user_id: UUID, method_type: MFAMethodType) -> MFAMethod | None:
        stmt = (
            select(MFAMethodModel)
            .where(
                MFAMethodModel.user_id == user_id,
                MFAMethodModel.method_type == MFAMethodType(method_type).value,
            )
            .order_by(col(MFAMethodModel.is_primary).desc(), col(MFAMethodModel.created_at))
        )
        model = self.session.exec(stmt).first()
        return model.to_domain() if model else None

    def update(self, method: MFAMethod) -> None:
        """
        Persist changes to a method.

        Raises:
            MFAMethodNotFoundError: No row for ``method.id``
        """
        model = self._get_model(method.id)
        if model is None:
            raise MFAMethodNotFoundError(method.id)

        if method.is_primary and not model.is_primary:
            self._demote_all(method.user_id, exclude_id=method.id)

        source = MFAMethodModel.from_domain(method)
        for key in MFAMethodModel.model_fields:
            if key not in ("id", "user_id", "created_at"):
                setattr(model, key, getattr(source, key))
        self.session.add(model)
        self._commit()
        self.session.expire_all()

    def set_primary(self, user_id: UUID, method_id: UUID) -> bool:
        """
        Make ``method_id`` the user's only primary method.

        Returns:
            False when the method is missing, disabled or owned by another user
        """
        model = self._get_model(method_id)
        if model is None or model.user_id != user_id or not model.is_enabled:
            return False

        now = utc_now()
        self._demote_all(user_id, exclude_id=method_id)
        promoted = self.session.exec(  # type: ignore[call-overload]
            update(MFAMethodModel)
            .where(
                col(MFAMethodModel.id) == method_id,
                col(MFAMethodModel.user_id) == user_id,
                col(MFAMethodModel.is_enabled).is_(True),
            )
            .values(is_primary=True, updated_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount

        if promoted != 1:
            self.session.rollback()
            return False

        self._commit()
        self.session.expire_all()

        logger.info("mfa_primary_method_changed", user_id=str(user_id), method_id=str(method_id))
        return True

    def delete(self, method_id: UUID) -> bool:
        return self._execute_write(delete(MFAMethodModel).where(col(MFAMethodModel.id) == method_id)) > 0

    def _demote_all(self, user_id: UUID, exclude_id: UUID | None = None) -> None:
        """Clear the primary flag within the current transaction; the caller commits."""
        stmt = update(MFAMethodModel).where(
            col(MFAMethodModel.user_id) == user_id,
            col(MFAMethodModel.is_primary).is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(col(MFAMethodModel.id) != exclude_id)
        self.session.exec(  # type: ignore[call-overload]
            stmt.values(is_primary=False, updated_at=utc_now()).execution_options(
                synchronize_session=False
            )
        )
