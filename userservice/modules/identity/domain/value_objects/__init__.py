"""Identity domain value objects."""

from .base import ValueObject
from .code_hash import CodeHash, normalize_code
from .optional_field import FieldState, OptionalField

__all__ = [
    "CodeHash",
    "FieldState",
    "OptionalField",
    "ValueObject",
    "normalize_code",
]
