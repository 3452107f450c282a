"""
Base Business Rule

Foundation for business rules in the identity domain. A rule inspects domain
state and returns ``PolicyViolation``s instead of raising, so callers can
decide which violations block.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from userservice.core.domain.base import utc_now


class ViolationSeverity(Enum):
    """Severity levels for policy violations."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class RemediationAction:
    """Something the user or an operator can do to clear a violation."""
    action_type: str
    description: str
    user_action_required: bool = True
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class PolicyViolation:
    """A single policy violation with remediation guidance."""
    rule_name: str
    description: str
    severity: ViolationSeverity
    current_value: Any
    expected_value: Any
    context: dict[str, Any] = field(default_factory=dict)
    violation_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)
    remediation_actions: list[RemediationAction] = field(default_factory=list)

    def is_blocking(self) -> bool:
        return self.severity in (ViolationSeverity.ERROR, ViolationSeverity.CRITICAL)

    def to_dict(self) -> dict[str, Any]:
        return {
            "violation_id": self.violation_id,
            "rule_name": self.rule_name,
            "description": self.description,
            "severity": self.severity.value,
            "current_value": self.current_value,
            "expected_value": self.expected_value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "remediation_actions": [
                {
                    "action_type": action.action_type,
                    "description": action.description,
                    "user_action_required": action.user_action_required,
                    "parameters": action.parameters,
                }
                for action in self.remediation_actions
            ],
        }


@dataclass
class PolicyValidationResult:
    """Result of running one rule."""
    policy_name: str
    is_compliant: bool
    violations: list[PolicyViolation]
    validation_timestamp: datetime = field(default_factory=utc_now)

    def has_blocking_violations(self) -> bool:
        return any(v.is_blocking() for v in self.violations)

    def get_violation_summary(self) -> dict[str, int]:
        summary = {severity.value: 0 for severity in ViolationSeverity}
        for violation in self.violations:
            summary[violation.severity.value] += 1
        return summary


class BusinessRule(ABC):
    """Base class for business rules."""

    def __init__(self, rule_name: str | None = None):
        self.rule_name = rule_name or self.__class__.__name__

    @abstractmethod
    def validate(self, *args, **kwargs) -> list[PolicyViolation]:
        """Validate the rule and return any violations."""

    def is_compliant(self, *args, **kwargs) -> bool:
        return not self.has_blocking_violations(self.validate(*args, **kwargs))

    def validate_with_result(self, *args, **kwargs) -> PolicyValidationResult:
        violations = self.validate(*args, **kwargs)
        return PolicyValidationResult(
            policy_name=self.rule_name,
            is_compliant=not self.has_blocking_violations(violations),
            violations=violations,
        )

    @staticmethod
    def has_blocking_violations(violations: list[PolicyViolation]) -> bool:
        return any(v.is_blocking() for v in violations)

    def create_violation(
        self,
        rule_name: str,
        description: str,
        severity: ViolationSeverity,
        current_value: Any,
        expected_value: Any,
        **kwargs: Any,
    ) -> PolicyViolation:
        """Create a violation namespaced under this rule."""
        return PolicyViolation(
            rule_name=f"{self.rule_name}.{rule_name}",
            description=description,
            severity=severity,
            current_value=current_value,
            expected_value=expected_value,
            context=kwargs.get("context", {}),
            remediation_actions=list(kwargs.get("remediation_actions", [])),
        )
