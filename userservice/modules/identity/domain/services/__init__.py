"""Identity domain services."""

from .policy_resolver import EnforcementDecision, EnforcementPolicyResolver, evaluate_policy

__all__ = ["EnforcementDecision", "EnforcementPolicyResolver", "evaluate_policy"]
