"""
Enforcement Policy Resolver

Maps a role to its MFA enforcement policy. Resolution is a pure lookup with
no merging across roles. A role without a configured policy falls back to the
optional default, so a missing policy never blocks anyone.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from userservice.core.domain.base import utc_now
from userservice.core.logging import get_logger

from ..entities.mfa_policy import MFAEnforcementPolicy
from ..enums import EnforcementLevel, UserRole
from ..errors import PolicyNotFoundError
from ..interfaces.repositories import IPolicyRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class EnforcementDecision:
    """What a policy means for one user at one point in time."""

    policy: MFAEnforcementPolicy
    mfa_required: bool
    challenge_required: bool
    blocks_access: bool
    in_grace_period: bool
    grace_ends_at: datetime | None
    setup_recommended: bool

    @property
    def enforcement_level(self) -> EnforcementLevel:
        return self.policy.enforcement_level


def evaluate_policy(
    policy: MFAEnforcementPolicy,
    *,
    has_mfa: bool,
    enforced_since: datetime | None,
    now: datetime | None = None,
) -> EnforcementDecision:
    """
    Interpret a policy for a user.

    ``enforced_since`` is when the policy became mandatory for this user. A
    mandatory policy blocks a user without MFA only once ``grace_period_days``
    have elapsed since then. ``None`` means the start is unknown and the grace
    period is treated as elapsed.

    Users with MFA configured are always challenged, whatever the level.
    """
    now = now or utc_now()
    mandatory = policy.is_mandatory

    grace_ends_at = None
    if mandatory and enforced_since is not None:
        grace_ends_at = enforced_since + timedelta(days=policy.grace_period_days)

    in_grace = (
        mandatory
        and not has_mfa
        and grace_ends_at is not None
        and now < grace_ends_at
    )
    blocks = mandatory and not has_mfa and not in_grace

    return EnforcementDecision(
        policy=policy,
        mfa_required=mandatory,
        challenge_required=has_mfa,
        blocks_access=blocks,
        in_grace_period=in_grace,
        grace_ends_at=grace_ends_at,
        setup_recommended=not has_mfa
        and policy.enforcement_level != EnforcementLevel.OPTIONAL,
    )


class EnforcementPolicyResolver:
    """Looks up per-role MFA policies through the policy repository."""

    def __init__(self, repository: IPolicyRepository):
        self._repository = repository

    def get(self, role: UserRole) -> MFAEnforcementPolicy:
        """
        Strict lookup.

        Raises:
            PolicyNotFoundError: If no policy is configured for the role
        """
        policy = self._repository.get_by_role(role)
        if policy is None:
            raise PolicyNotFoundError(role.value)
        return policy

    def resolve(self, role: UserRole) -> MFAEnforcementPolicy:
        """Lookup that falls back to the optional default policy."""
        policy = self._repository.get_by_role(role)
        if policy is None:
            logger.info("mfa_policy_defaulted", role=role.value)
            return MFAEnforcementPolicy.default_for(role)
        return policy

    def evaluate(
        self,
        policy: MFAEnforcementPolicy,
        *,
        has_mfa: bool,
        enforced_since: datetime | None,
        now: datetime | None = None,
    ) -> EnforcementDecision:
        return evaluate_policy(
            policy, has_mfa=has_mfa, enforced_since=enforced_since, now=now
        )
