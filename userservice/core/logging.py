# ruff: noqa: A005
"""Structured logging configuration.

The service logs through structlog with a stdlib backend. Every record passes
through a sensitive-data processor so MFA secrets, OTP codes, backup codes and
password material never reach the log sink even if a caller binds them by
mistake.

Architecture:
- LogConfig: configuration with environment defaults
- SensitiveDataFilter: structlog processor masking sensitive keys
- configure_logging / get_logger: module-level entry points
"""

import logging
import re
import sys
from dataclasses import dataclass, field
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars

from userservice.core.enums import Environment, LogFormat, LogLevel
from userservice.core.errors import ConfigurationError


@dataclass
class LogConfig:
    """
    Logging configuration with validation and environment defaults.

    Usage Example:
        config = LogConfig(level=LogLevel.INFO, environment=Environment.PRODUCTION)
        configure_logging(config)
    """

    level: LogLevel = field(default=LogLevel.INFO)
    format: LogFormat = field(default=LogFormat.JSON)
    environment: Environment = field(default=Environment.DEVELOPMENT)

    enable_timestamps: bool = field(default=True)
    enable_caller_info: bool = field(default=False)
    enable_exception_info: bool = field(default=True)
    enable_sensitive_data_filtering: bool = field(default=True)
    max_message_length: int = field(default=10000)

    def __post_init__(self):
        self.validate()
        self.apply_environment_defaults()

    def validate(self) -> None:
        """
        Validate logging configuration parameters.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.max_message_length < 1000:
            raise ConfigurationError(
                "Maximum message length must be at least 1000 characters",
                config_key="max_message_length",
            )

    def apply_environment_defaults(self) -> None:
        """Apply environment-specific defaults."""
        if self.environment == Environment.DEVELOPMENT:
            self.format = LogFormat.CONSOLE
            self.enable_caller_info = True
        elif self.environment == Environment.TESTING:
            self.level = LogLevel.WARNING
            self.format = LogFormat.PLAIN
        elif self.environment == Environment.PRODUCTION:
            self.format = LogFormat.JSON
            self.enable_caller_info = False
            self.enable_sensitive_data_filtering = True


class SensitiveDataFilter:
    """
    structlog processor masking sensitive values in event dictionaries.

    Keys are matched case-insensitively against the patterns below; nested
    dictionaries and lists of dictionaries are walked recursively.
    """

    MASK = "***[MASKED]"

    def __init__(self, extra_patterns: list[str] | None = None):
        patterns = [
            r"password",
            r"secret",
            r"token",
            r"credential",
            r"webauthn",
            r"code_hash",
            r"backup_code",
            r"^code$",
            r"otp",
        ]
        patterns.extend(extra_patterns or [])
        self.sensitive_patterns = [re.compile(p, re.IGNORECASE) for p in patterns]

    def __call__(self, logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        return self.filter(event_dict)

    def filter(self, record: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``record`` with sensitive values masked."""
        filtered = {}
        for key, value in record.items():
            if key != "event" and self._is_sensitive_field(key):
                filtered[key] = None if value is None else self.MASK
            elif isinstance(value, dict):
                filtered[key] = self.filter(value)
            elif isinstance(value, list):
                filtered[key] = [
                    self.filter(item) if isinstance(item, dict) else item for item in value
                ]
            else:
                filtered[key] = value
        return filtered

    def _is_sensitive_field(self, field_name: str) -> bool:
        return any(pattern.search(field_name) for pattern in self.sensitive_patterns)


class MessageLengthFilter:
    """structlog processor truncating overly long event messages."""

    def __init__(self, max_length: int = 10000, truncation_suffix: str = "... [TRUNCATED]"):
        self.max_length = max_length
        self.truncation_suffix = truncation_suffix

    def __call__(self, logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        message = event_dict.get("event")
        if isinstance(message, str) and len(message) > self.max_length:
            cut = self.max_length - len(self.truncation_suffix)
            event_dict["event"] = message[:cut] + self.truncation_suffix
            event_dict["message_truncated"] = True
        return event_dict


def build_processors(config: LogConfig) -> list[Any]:
    """Assemble the structlog processor chain for ``config``."""
    processors: list[Any] = [
        merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]

    if config.enable_timestamps:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))

    if config.enable_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )

    if config.enable_sensitive_data_filtering:
        processors.append(SensitiveDataFilter())

    processors.append(MessageLengthFilter(config.max_message_length))

    if config.enable_exception_info:
        processors.extend(
            [
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
            ]
        )

    processors.append(structlog.processors.UnicodeDecoder())

    if config.format == LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    elif config.format == LogFormat.CONSOLE:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.KeyValueRenderer(key_order=["event"]))

    return processors


_configured = False


def configure_logging(config: LogConfig | None = None) -> None:
    """
    Configure global logging system.

    Args:
        config: Logging configuration (built from settings if not provided)
    """
    global _configured  # noqa: PLW0603

    if config is None:
        from userservice.core.config import get_settings

        settings = get_settings()
        config = LogConfig(level=settings.log_level, environment=settings.environment)

    structlog.configure(
        processors=build_processors(config),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=config.level.to_logging_level(),
    )

    if config.environment == Environment.PRODUCTION:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get structured logger instance.

    Args:
        name: Logger name (usually __name__)
    """
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> None:
    """Bind key/value pairs to every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()
