"""
Enforcement Policy Repository Implementation

One row per role, keyed by the role's text value.
"""

from sqlmodel import Session, select

from userservice.modules.identity.domain.entities import MFAEnforcementPolicy
from userservice.modules.identity.domain.enums import UserRole
from userservice.modules.identity.infrastructure.models import MFAEnforcementPolicyModel
from userservice.modules.identity.infrastructure.models.common import utc_now

from .base import SQLRepository


class SQLPolicyRepository(SQLRepository[MFAEnforcementPolicyModel]):
    """SQLModel implementation of the enforcement policy repository."""

    model_class = MFAEnforcementPolicyModel

    def __init__(self, session: Session):
        super().__init__(session)

    def get_by_role(self, role: UserRole) -> MFAEnforcementPolicy | None:
        model = self._find_by_role(UserRole(role))
        return model.to_domain() if model else None

    def list_all(self) -> list[MFAEnforcementPolicy]:
        stmt = select(MFAEnforcementPolicyModel).order_by(MFAEnforcementPolicyModel.role_name)
        return [model.to_domain() for model in self.session.exec(stmt).all()]

    def save(self, policy: MFAEnforcementPolicy) -> None:
        """Insert the role's policy or replace the stored one."""
        source = MFAEnforcementPolicyModel.from_domain(policy)
        model = self._find_by_role(policy.role)
        if model is None:
            self.session.add(source)
        else:
            for key in ("primary_methods", "alternative_methods", "enforcement_level",
                        "grace_period_days", "require_backup_codes"):
                setattr(model, key, getattr(source, key))
            model.updated_at = utc_now()
            self.session.add(model)
        self._commit()

    def _find_by_role(self, role: UserRole) -> MFAEnforcementPolicyModel | None:
        stmt = select(MFAEnforcementPolicyModel).where(
            MFAEnforcementPolicyModel.role_name == role.value
        )
        return self.session.exec(stmt).first()
