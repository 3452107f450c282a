"""Cryptographic adapters for the identity module."""

from .otp_generator import generate_numeric_code
from .password_hasher import BcryptPasswordHasher
from .secret_cipher import SecretCipher, SecretDecryptionError
from .totp_service import TOTPService

__all__ = [
    "BcryptPasswordHasher",
    "SecretCipher",
    "SecretDecryptionError",
    "TOTPService",
    "generate_numeric_code",
]
