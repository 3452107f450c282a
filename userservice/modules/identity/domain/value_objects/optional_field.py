"""
Optional Field Value Object

Wraps a nullable attribute (phone, sede, ficha) so that "not applicable to
this user" and "applicable but not provided yet" stay distinct.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from .base import ValueObject

T = TypeVar("T")


class FieldState(Enum):
    PRESENT = "present"
    UNSET = "unset"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class OptionalField(ValueObject, Generic[T]):
    """Explicit present/absent wrapper for a single attribute."""

    state: FieldState
    value: T | None = None

    def __post_init__(self):
        if self.state == FieldState.PRESENT and self.value is None:
            raise ValueError("A present field must carry a value")
        if self.state != FieldState.PRESENT and self.value is not None:
            raise ValueError(f"A {self.state.value} field cannot carry a value")

    @classmethod
    def present(cls, value: T) -> "OptionalField[T]":
        return cls(FieldState.PRESENT, value)

    @classmethod
    def unset(cls) -> "OptionalField[T]":
        return cls(FieldState.UNSET)

    @classmethod
    def not_applicable(cls) -> "OptionalField[T]":
        return cls(FieldState.NOT_APPLICABLE)

    @classmethod
    def from_nullable(cls, value: T | None) -> "OptionalField[T]":
        """Map a stored nullable value: ``None`` means unset."""
        return cls.unset() if value is None else cls.present(value)

    @property
    def is_present(self) -> bool:
        return self.state == FieldState.PRESENT

    @property
    def is_applicable(self) -> bool:
        return self.state != FieldState.NOT_APPLICABLE

    def get(self, default: T | None = None) -> T | None:
        return self.value if self.is_present else default

    def to_nullable(self) -> T | None:
        """Storage representation (``None`` for both absent states)."""
        return self.value

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.state.value, "value": self.value}

    def __str__(self) -> str:
        return str(self.value) if self.is_present else f"<{self.state.value}>"
