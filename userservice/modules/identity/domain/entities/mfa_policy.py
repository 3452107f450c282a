"""
MFA Enforcement Policy Entity

Per-role MFA configuration. Read-mostly; administrative updates happen
outside this service.
"""

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from userservice.core.domain.base import Entity

from ..enums import EnforcementLevel, MFAMethodType, UserRole


class MFAEnforcementPolicy(Entity):
    """Which MFA methods a role may use and how strongly MFA is enforced."""

    def __init__(
        self,
        *,
        role: UserRole,
        primary_methods: Iterable[MFAMethodType],
        alternative_methods: Iterable[MFAMethodType] = (),
        enforcement_level: EnforcementLevel = EnforcementLevel.OPTIONAL,
        grace_period_days: int = 0,
        require_backup_codes: bool = True,
        entity_id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        if grace_period_days < 0:
            raise ValueError("grace_period_days cannot be negative")
        self.role = role
        self.primary_methods = tuple(primary_methods)
        self.alternative_methods = tuple(
            m for m in alternative_methods if m not in self.primary_methods
        )
        self.enforcement_level = enforcement_level
        self.grace_period_days = grace_period_days
        self.require_backup_codes = require_backup_codes
        super().__init__(entity_id, created_at, updated_at)

    @classmethod
    def default_for(cls, role: UserRole) -> "MFAEnforcementPolicy":
        """Fallback used when a role has no configured policy: MFA optional."""
        return cls(
            role=role,
            primary_methods=tuple(MFAMethodType),
            enforcement_level=EnforcementLevel.OPTIONAL,
            grace_period_days=0,
            require_backup_codes=False,
        )

    @property
    def allowed_methods(self) -> tuple[MFAMethodType, ...]:
        """Primary methods first, then alternatives, in configured order."""
        return self.primary_methods + self.alternative_methods

    def allows(self, method_type: MFAMethodType) -> bool:
        return method_type in self.allowed_methods

    @property
    def is_mandatory(self) -> bool:
        return self.enforcement_level.is_mandatory

    def __repr__(self) -> str:
        return (
            f"MFAEnforcementPolicy(role={self.role.value}, "
            f"level={self.enforcement_level.value}, grace_days={self.grace_period_days})"
        )
