"""
Code Hash Value Object

SHA-256 digest of a one-time code (backup code or issued OTP). Plain codes are
never stored; verification hashes the candidate and compares in constant time.
"""

import hashlib
import secrets
from dataclasses import dataclass

from .base import ValueObject

_HEX_DIGITS = frozenset("0123456789abcdef")


def normalize_code(plain_code: str) -> str:
    """Strip whitespace and grouping hyphens, upper-case letters."""
    return "".join(plain_code.split()).replace("-", "").upper()


@dataclass(frozen=True)
class CodeHash(ValueObject):
    """Hex encoded SHA-256 of a normalised code."""

    value: str

    def __post_init__(self):
        if len(self.value) != 64 or not set(self.value) <= _HEX_DIGITS:
            raise ValueError("Invalid code hash format")

    @classmethod
    def from_plain(cls, plain_code: str) -> "CodeHash":
        digest = hashlib.sha256(normalize_code(plain_code).encode()).hexdigest()
        return cls(digest)

    def matches(self, plain_code: str) -> bool:
        if not plain_code:
            return False
        candidate = hashlib.sha256(normalize_code(plain_code).encode()).hexdigest()
        return secrets.compare_digest(self.value, candidate)

    def __str__(self) -> str:
        return f"{self.value[:8]}..."

    def __repr__(self) -> str:
        return f"CodeHash({self.value[:8]}...)"
