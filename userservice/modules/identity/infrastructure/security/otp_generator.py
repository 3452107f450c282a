"""One-time numeric codes for email and SMS challenges."""

import secrets


def generate_numeric_code(length: int = 6) -> str:
    """Uniformly random digits, leading zeros preserved."""
    if length < 4:
        raise ValueError("OTP length must be at least 4 digits")
    return "".join(secrets.choice("0123456789") for _ in range(length))
