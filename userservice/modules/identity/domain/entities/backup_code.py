"""
Backup Code Entity

Single-use recovery codes. Only the SHA-256 hash is kept; the plain codes are
returned once from ``generate_batch`` and must be shown to the user then.
"""

import secrets
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from userservice.core.domain.base import Entity, utc_now

from ..errors import BackupCodeAlreadyUsedError, BackupCodeExpiredError
from ..value_objects import CodeHash

# Excludes ambiguous characters (0, O, 1, I)
BACKUP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_BATCH_SIZE = 10
DEFAULT_CODE_LENGTH = 10
DEFAULT_VALIDITY = timedelta(days=365)


class BackupCode(Entity):
    """A hashed, time-bounded recovery code."""

    def __init__(
        self,
        *,
        user_id: UUID,
        code_hash: CodeHash,
        expires_at: datetime,
        is_used: bool = False,
        used_at: datetime | None = None,
        entity_id: UUID | None = None,
        created_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.code_hash = code_hash
        self.expires_at = expires_at
        self.is_used = is_used
        self.used_at = used_at
        super().__init__(entity_id, created_at)

    @classmethod
    def generate_batch(
        cls,
        user_id: UUID,
        count: int = DEFAULT_BATCH_SIZE,
        validity: timedelta = DEFAULT_VALIDITY,
        length: int = DEFAULT_CODE_LENGTH,
        now: datetime | None = None,
    ) -> tuple[list["BackupCode"], list[str]]:
        """
        Generate a set of backup codes sharing one validity window.

        Returns tuple of (BackupCode objects, plain text codes).
        """
        if count < 1:
            raise ValueError("count must be positive")

        now = now or utc_now()
        expires_at = now + validity
        codes: list[BackupCode] = []
        plain_codes: list[str] = []
        seen: set[str] = set()

        while len(plain_codes) < count:
            plain = "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(length))
            if plain in seen:
                continue
            seen.add(plain)
            plain_codes.append(plain)
            codes.append(
                cls(
                    user_id=user_id,
                    code_hash=CodeHash.from_plain(plain),
                    expires_at=expires_at,
                    created_at=now,
                )
            )

        return codes, plain_codes

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) > self.expires_at

    def is_usable(self, now: datetime | None = None) -> bool:
        return not self.is_used and not self.is_expired(now)

    def matches(self, plain_code: str) -> bool:
        return self.code_hash.matches(plain_code)

    def consume(self, now: datetime | None = None) -> None:
        """
        Mark the code used.

        Raises:
            BackupCodeExpiredError: Past ``expires_at``, whatever the used flag
            BackupCodeAlreadyUsedError: Already consumed
        """
        now = now or utc_now()
        if self.is_expired(now):
            raise BackupCodeExpiredError(self.id, self.expires_at)
        if self.is_used:
            raise BackupCodeAlreadyUsedError(self.id)
        self.is_used = True
        self.used_at = now
        self.updated_at = now

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.pop("code_hash", None)
        return data
