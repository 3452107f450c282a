"""
MFA Enforcement Rule

Checks a user's MFA setup against the role policy and reports what is missing.
"""

from collections.abc import Sequence
from datetime import datetime

from userservice.core.domain.base import utc_now

from ..entities.mfa_method import MFAMethod
from ..entities.mfa_policy import MFAEnforcementPolicy
from ..services.policy_resolver import evaluate_policy
from .base import BusinessRule, PolicyViolation, RemediationAction, ViolationSeverity

GRACE_WARNING_RATIO = 0.8


class MFAEnforcementRule(BusinessRule):
    """Multi-factor authentication enforcement validation."""

    def validate(
        self,
        policy: MFAEnforcementPolicy,
        methods: Sequence[MFAMethod],
        *,
        usable_backup_codes: int = 0,
        enforced_since: datetime | None = None,
        now: datetime | None = None,
    ) -> list[PolicyViolation]:
        now = now or utc_now()
        enabled = [m for m in methods if m.is_enabled]
        allowed = [m for m in enabled if policy.allows(m.method_type)]
        has_mfa = bool(allowed)

        violations: list[PolicyViolation] = []
        violations.extend(self._validate_disallowed_methods(policy, enabled))
        violations.extend(
            self._validate_requirement(policy, has_mfa, enforced_since, now)
        )
        if has_mfa and policy.require_backup_codes and usable_backup_codes == 0:
            violations.append(
                self.create_violation(
                    "backup_codes_required",
                    "Backup codes are required for this role",
                    ViolationSeverity.WARNING,
                    current_value=usable_backup_codes,
                    expected_value="> 0",
                    remediation_actions=[
                        RemediationAction("generate_backup_codes", "Generate a new set of backup codes")
                    ],
                )
            )
        return violations

    def _validate_disallowed_methods(
        self, policy: MFAEnforcementPolicy, enabled: list[MFAMethod]
    ) -> list[PolicyViolation]:
        disallowed = sorted({m.method_type.value for m in enabled if not policy.allows(m.method_type)})
        if not disallowed:
            return []
        return [
            self.create_violation(
                "method_not_allowed",
                f"Methods not allowed for role {policy.role.value}: {', '.join(disallowed)}",
                ViolationSeverity.WARNING,
                current_value=disallowed,
                expected_value=[m.value for m in policy.allowed_methods],
            )
        ]

    def _validate_requirement(
        self,
        policy: MFAEnforcementPolicy,
        has_mfa: bool,
        enforced_since: datetime | None,
        now: datetime,
    ) -> list[PolicyViolation]:
        if has_mfa or not policy.is_mandatory:
            return []

        decision = evaluate_policy(
            policy, has_mfa=has_mfa, enforced_since=enforced_since, now=now
        )
        setup_action = RemediationAction(
            "register_mfa_method",
            "Register one of the allowed MFA methods",
            parameters={"allowed_methods": [m.value for m in policy.allowed_methods]},
        )

        if decision.blocks_access:
            return [
                self.create_violation(
                    "mfa_grace_period_expired" if policy.grace_period_days else "mfa_required",
                    f"MFA is mandatory for role {policy.role.value}",
                    ViolationSeverity.ERROR,
                    current_value=False,
                    expected_value=True,
                    context={"grace_period_days": policy.grace_period_days},
                    remediation_actions=[setup_action],
                )
            ]

        grace = decision.grace_ends_at - enforced_since
        elapsed = now - enforced_since
        if elapsed > grace * GRACE_WARNING_RATIO:
            return [
                self.create_violation(
                    "mfa_grace_period_ending",
                    "MFA setup grace period ending soon",
                    ViolationSeverity.WARNING,
                    current_value=f"{elapsed.days} days",
                    expected_value=f"< {policy.grace_period_days} days",
                    context={"grace_ends_at": decision.grace_ends_at.isoformat()},
                    remediation_actions=[setup_action],
                )
            ]
        return []
