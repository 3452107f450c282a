"""Password hasher service implementation (bcrypt)."""

import base64
import hashlib

import bcrypt

from userservice.core.logging import get_logger

logger = get_logger(__name__)

# bcrypt only considers the first 72 bytes of input
BCRYPT_MAX_BYTES = 72


def _prepare(password: str) -> bytes:
    """Encode a password; inputs past bcrypt's limit are pre-hashed with SHA-256."""
    encoded = password.encode("utf-8")
    if len(encoded) <= BCRYPT_MAX_BYTES:
        return encoded
    return base64.b64encode(hashlib.sha256(encoded).digest())


class BcryptPasswordHasher:
    """Hashes and verifies passwords with bcrypt."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(_prepare(password), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(_prepare(password), password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("password_hash_malformed")
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        """True when the stored cost factor differs from the configured one."""
        try:
            stored_rounds = int(password_hash.split("$")[2])
        except (IndexError, ValueError):
            return True
        return stored_rounds != self.rounds
