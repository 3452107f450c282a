"""Identity application services."""

from .mfa_service import MFAService, WebAuthnVerifier
from .user_service import UserService

__all__ = ["MFAService", "UserService", "WebAuthnVerifier"]
