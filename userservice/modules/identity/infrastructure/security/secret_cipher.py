"""
Secret Cipher

Symmetric encryption for MFA secrets at rest (Fernet: AES-128-CBC with an
HMAC-SHA256 tag). The key comes from ``SecurityConfig.mfa_encryption_key``.
"""

from cryptography.fernet import Fernet, InvalidToken

from userservice.core.errors import ConfigurationError, InfrastructureError
from userservice.core.logging import get_logger

logger = get_logger(__name__)


class SecretDecryptionError(InfrastructureError):
    """Stored ciphertext could not be authenticated with the current key."""

    default_code = "SECRET_DECRYPTION_FAILED"
    retryable = False


class SecretCipher:
    """Encrypts and decrypts opaque secret strings."""

    def __init__(self, key: str | bytes):
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                "MFA encryption key must be a url-safe base64 encoded 32-byte key",
                config_key="mfa_encryption_key",
                cause=e,
            ) from e

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("ascii")

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a stored secret.

        Raises:
            SecretDecryptionError: Tampered ciphertext or wrong key
        """
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            logger.error("mfa_secret_decryption_failed")
            raise SecretDecryptionError("Stored MFA secret could not be decrypted", cause=e) from e
