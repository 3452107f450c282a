"""Service configuration.

Settings are plain dataclasses populated from environment variables (and an
optional ``.env`` file) by ``EnvironmentLoader``. All variables share the
``USERSERVICE_`` prefix.

Architecture:
- EnvironmentLoader: typed access to os.environ with validation
- MFAConfig / LegalConfig / DatabaseConfig / SecurityConfig: section dataclasses
- Settings: aggregate of every section, built once by get_settings()
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from functools import lru_cache
from typing import Any

from userservice.core.enums import Environment, LogLevel
from userservice.core.errors import ConfigurationError

ENV_PREFIX = "USERSERVICE_"

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


class EnvironmentLoader:
    """
    Environment variable loader with type conversion and validation.

    Values already present in ``os.environ`` win over the ``.env`` file. Keys
    are looked up with the ``USERSERVICE_`` prefix.
    """

    def __init__(self, env_file: str | None = ".env", prefix: str = ENV_PREFIX):
        self.env_file = env_file
        self.prefix = prefix
        self._load_env_file()

    def _load_env_file(self) -> None:
        """Load environment variables from file if it exists."""
        if not self.env_file or not os.path.exists(self.env_file):
            return

        try:
            with open(self.env_file, encoding="utf-8") as f:
                for raw_line in f:
                    line = raw_line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue

                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip()

                    if (value.startswith('"') and value.endswith('"')) or (
                        value.startswith("'") and value.endswith("'")
                    ):
                        value = value[1:-1]

                    if key not in os.environ:
                        os.environ[key] = value
        except OSError as e:
            raise ConfigurationError(
                f"Failed to load environment file {self.env_file}: {e}"
            ) from e

    def _raw(self, key: str) -> str | None:
        return os.environ.get(f"{self.prefix}{key}")

    def get_string(self, key: str, default: str | None = None, required: bool = False) -> str | None:
        value = self._raw(key)
        if value is None or value == "":
            if required and default is None:
                raise ConfigurationError(f"{self.prefix}{key} is required", config_key=key)
            return default
        return value

    def get_integer(
        self,
        key: str,
        default: int,
        min_value: int | None = None,
        max_value: int | None = None,
    ) -> int:
        raw = self._raw(key)
        if raw is None or raw == "":
            return default
        try:
            value = int(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"{self.prefix}{key} must be an integer, got {raw!r}", config_key=key
            ) from e
        if min_value is not None and value < min_value:
            raise ConfigurationError(f"{self.prefix}{key} must be >= {min_value}", config_key=key)
        if max_value is not None and value > max_value:
            raise ConfigurationError(f"{self.prefix}{key} must be <= {max_value}", config_key=key)
        return value

    def get_boolean(self, key: str, default: bool) -> bool:
        raw = self._raw(key)
        if raw is None or raw == "":
            return default
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"{self.prefix}{key} must be a boolean, got {raw!r}", config_key=key)

    def get_enum(self, key: str, enum_class: type[Enum], default: Enum) -> Any:
        raw = self._raw(key)
        if raw is None or raw == "":
            return default

        if hasattr(enum_class, "from_string"):
            try:
                return enum_class.from_string(raw)
            except ValueError as e:
                raise ConfigurationError(str(e), config_key=key) from e

        for member in enum_class:
            if raw.lower() in (str(member.value).lower(), member.name.lower()):
                return member
        valid = ", ".join(str(m.value) for m in enum_class)
        raise ConfigurationError(
            f"{self.prefix}{key} must be one of: {valid}", config_key=key
        )


@dataclass
class MFAConfig:
    """MFA challenge and backup code parameters."""

    session_ttl_minutes: int = 5
    max_attempts: int = 3
    otp_length: int = 6
    backup_code_count: int = 10
    backup_code_length: int = 10
    backup_code_validity_days: int = 365
    totp_issuer: str = "SICORA"
    totp_valid_window: int = 1

    def __post_init__(self):
        if self.session_ttl_minutes < 1:
            raise ConfigurationError("MFA session TTL must be at least 1 minute", config_key="session_ttl_minutes")
        if self.max_attempts < 1:
            raise ConfigurationError("MFA max attempts must be at least 1", config_key="max_attempts")
        if not 4 <= self.otp_length <= 10:
            raise ConfigurationError("OTP length must be between 4 and 10", config_key="otp_length")
        if self.backup_code_count < 1:
            raise ConfigurationError("Backup code count must be positive", config_key="backup_code_count")
        if self.backup_code_length < 8:
            raise ConfigurationError("Backup codes must be at least 8 characters", config_key="backup_code_length")

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(minutes=self.session_ttl_minutes)

    @property
    def backup_code_validity(self) -> timedelta:
        return timedelta(days=self.backup_code_validity_days)


@dataclass
class LegalConfig:
    """Current versions of the legal documents users must accept."""

    privacy_policy_version: str = "1.0"
    terms_version: str = "1.0"
    data_treatment_version: str = "1.0"

    def current_versions(self) -> tuple[str, str, str]:
        return (self.privacy_policy_version, self.terms_version, self.data_treatment_version)


@dataclass
class DatabaseConfig:
    """Database connection configuration."""

    url: str = "sqlite:///./userservice.db"
    echo: bool = False
    pool_pre_ping: bool = True

    def __post_init__(self):
        if not self.url:
            raise ConfigurationError("Database URL is required", config_key="database_url")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def engine_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"echo": self.echo, "pool_pre_ping": self.pool_pre_ping}
        if self.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
        return kwargs


@dataclass
class SecurityConfig:
    """Secrets and hashing parameters."""

    mfa_encryption_key: str | None = None
    bcrypt_rounds: int = 12
    password_min_length: int = 10
    password_max_length: int = 128

    def __post_init__(self):
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ConfigurationError("bcrypt rounds must be between 4 and 31", config_key="bcrypt_rounds")


@dataclass
class Settings:
    """
    Aggregate service settings.

    Usage Example:
        settings = get_settings()
        ttl = settings.mfa.session_ttl
        versions = settings.legal.current_versions()
    """

    app_name: str = "userservice"
    environment: Environment = Environment.DEVELOPMENT
    log_level: LogLevel = LogLevel.INFO
    mfa: MFAConfig = field(default_factory=MFAConfig)
    legal: LegalConfig = field(default_factory=LegalConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)

    @classmethod
    def from_env(cls, env_file: str | None = ".env") -> "Settings":
        """Build settings from ``USERSERVICE_*`` environment variables."""
        env = EnvironmentLoader(env_file)
        environment = env.get_enum("ENVIRONMENT", Environment, Environment.DEVELOPMENT)

        settings = cls(
            app_name=env.get_string("APP_NAME", "userservice"),
            environment=environment,
            log_level=env.get_enum("LOG_LEVEL", LogLevel, LogLevel.INFO),
            mfa=MFAConfig(
                session_ttl_minutes=env.get_integer("MFA_SESSION_TTL_MINUTES", 5, min_value=1),
                max_attempts=env.get_integer("MFA_MAX_ATTEMPTS", 3, min_value=1, max_value=10),
                otp_length=env.get_integer("MFA_OTP_LENGTH", 6),
                backup_code_count=env.get_integer("MFA_BACKUP_CODE_COUNT", 10, min_value=1),
                backup_code_length=env.get_integer("MFA_BACKUP_CODE_LENGTH", 10),
                backup_code_validity_days=env.get_integer(
                    "MFA_BACKUP_CODE_VALIDITY_DAYS", 365, min_value=1
                ),
                totp_issuer=env.get_string("MFA_TOTP_ISSUER", "SICORA"),
                totp_valid_window=env.get_integer("MFA_TOTP_VALID_WINDOW", 1, min_value=0),
            ),
            legal=LegalConfig(
                privacy_policy_version=env.get_string("PRIVACY_POLICY_VERSION", "1.0"),
                terms_version=env.get_string("TERMS_VERSION", "1.0"),
                data_treatment_version=env.get_string("DATA_TREATMENT_VERSION", "1.0"),
            ),
            database=DatabaseConfig(
                url=env.get_string("DATABASE_URL", "sqlite:///./userservice.db"),
                echo=env.get_boolean("DATABASE_ECHO", False),
            ),
            security=SecurityConfig(
                mfa_encryption_key=env.get_string(
                    "MFA_ENCRYPTION_KEY", required=environment.is_production
                ),
                bcrypt_rounds=env.get_integer(
                    "BCRYPT_ROUNDS", 4 if environment.is_testing else 12
                ),
            ),
        )
        return settings


@lru_cache
def get_settings(env_file: str | None = ".env") -> Settings:
    """
    Get cached settings instance.

    Args:
        env_file: Environment file to load
    """
    return Settings.from_env(env_file)


__all__ = [
    "DatabaseConfig",
    "EnvironmentLoader",
    "LegalConfig",
    "MFAConfig",
    "SecurityConfig",
    "Settings",
    "get_settings",
]
