"""
Base Value Object

Provides common functionality for all value objects in the identity domain.
Concrete value objects are frozen dataclasses deriving from ``ValueObject``.
"""

from abc import ABC
from dataclasses import fields
from datetime import datetime
from enum import Enum
from typing import Any


class ValueObject(ABC):
    """
    Base class for all value objects.

    Equality and hashing come from the frozen dataclass machinery; this base
    only adds serialization.
    """

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {f.name: self._serialize_value(getattr(self, f.name)) for f in fields(self)}

    @staticmethod
    def _serialize_value(value: Any) -> Any:
        if hasattr(value, "to_dict"):
            return value.to_dict()
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.value
        return value
