"""
TOTP Service Implementation

Time-based One-Time Password service using pyotp library.
"""

import hashlib
import time
from datetime import datetime

import pyotp

from userservice.core.logging import get_logger

logger = get_logger(__name__)

_DIGESTS = {
    "SHA1": hashlib.sha1,
    "SHA256": hashlib.sha256,
    "SHA512": hashlib.sha512,
}


class TOTPService:
    """TOTP service implementation using pyotp."""

    def __init__(
        self,
        issuer_name: str = "SICORA",
        digits: int = 6,
        interval: int = 30,
        algorithm: str = "SHA1",
        valid_window: int = 1,
    ):
        """Initialize TOTP service.

        Args:
            issuer_name: Name to display in authenticator apps
            digits: Number of digits in the OTP (default: 6)
            interval: Time interval in seconds (default: 30)
            algorithm: Hash algorithm (SHA1, SHA256, SHA512)
            valid_window: Neighbouring time steps accepted for clock drift
        """
        if algorithm not in _DIGESTS:
            raise ValueError(f"Unsupported TOTP algorithm: {algorithm}")
        self.issuer_name = issuer_name
        self.digits = digits
        self.interval = interval
        self.algorithm = algorithm
        self.valid_window = valid_window

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(
            secret,
            digits=self.digits,
            interval=self.interval,
            digest=_DIGESTS[self.algorithm],
            issuer=self.issuer_name,
        )

    def generate_secret(self) -> str:
        """Generate a new base32 TOTP secret."""
        return pyotp.random_base32()

    def generate_uri(self, secret: str, user_identifier: str, issuer_name: str | None = None) -> str:
        """Generate provisioning URI for authenticator apps.

        Args:
            secret: TOTP secret
            user_identifier: User's email
            issuer_name: Optional override for issuer name
        """
        return self._totp(secret).provisioning_uri(
            name=user_identifier,
            issuer_name=issuer_name or self.issuer_name,
        )

    def verify_token(
        self, secret: str, token: str, for_time: datetime | int | float | None = None
    ) -> bool:
        """Verify a TOTP token within the configured drift window."""
        token = "".join(token.split())
        if not token.isdigit() or len(token) != self.digits:
            return False
        return self._totp(secret).verify(token, for_time=for_time, valid_window=self.valid_window)

    def generate_current_token(self, secret: str) -> str:
        return self._totp(secret).now()

    def get_remaining_seconds(self) -> int:
        """Seconds until the next token rotation."""
        return self.interval - int(time.time() % self.interval)
