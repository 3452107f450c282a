"""
Test suite for the error hierarchy and the structured logging processors.
"""

from uuid import uuid4

import pytest
import structlog

from userservice.core.enums import Environment, LogFormat, LogLevel
from userservice.core.errors import (
    ConfigurationError,
    NotFoundError,
    ValidationError,
    error_context,
)
from userservice.core.logging import (
    LogConfig,
    MessageLengthFilter,
    SensitiveDataFilter,
    build_processors,
    clear_context,
    configure_logging,
    get_logger,
    log_context,
)
from userservice.modules.identity.domain.errors import (
    DuplicateUserError,
    MFAMethodNotAllowedError,
    SystemAccessDeniedError,
    UserNotFoundError,
)

pytestmark = pytest.mark.unit


class TestErrorSerialisation:
    """Test UserServiceError.to_dict and subclasses."""

    def test_validation_error_carries_field_and_rule(self):
        """Test field and rule land in details."""
        error = ValidationError("Email format is not valid", field="email", rule="format")

        data = error.to_dict()

        assert data["error"] == "VALIDATION_ERROR"
        assert data["message"] == "Email format is not valid"
        assert data["details"] == {"field": "email", "rule": "format"}
        assert error.status_code == 422

    def test_sensitive_details_redacted(self):
        """Test secret-looking keys never leave in details."""
        error = ValidationError(
            "bad", details={"password": "Segura#2024", "nested": {"api_key": "abc"}, "ok": 1}
        )

        details = error.to_dict()["details"]

        assert details["password"] == "***REDACTED***"
        assert details["nested"]["api_key"] == "***REDACTED***"
        assert details["ok"] == 1

    def test_internal_fields_only_on_request(self):
        """Test correlation data is opt-in."""
        error = NotFoundError("User", "abc")

        assert "correlation_id" not in error.to_dict()
        internal = error.to_dict(include_internal=True)
        assert internal["internal_message"] == "User not found: abc"
        assert internal["severity"] == "low"

    def test_configuration_error_not_retryable(self):
        """Test configuration problems carry their key and are critical."""
        error = ConfigurationError("missing", config_key="mfa_encryption_key")

        assert error.retryable is False
        assert error.details["config_key"] == "mfa_encryption_key"
        assert error.to_dict()["message"] == "Service configuration issue"

    def test_duplicate_user_error(self):
        """Test the colliding field is exposed."""
        error = DuplicateUserError("document_number", "1032456789")

        assert error.field == "document_number"
        assert error.status_code == 409
        assert error.user_message == "A user with this document number already exists."

    def test_user_not_found(self):
        """Test not found errors identify the resource."""
        user_id = uuid4()
        error = UserNotFoundError(user_id)

        assert error.details["identifier"] == str(user_id)
        assert error.code == "USER_NOT_FOUND"

    def test_method_not_allowed_lists_alternatives(self):
        """Test the allowed methods accompany the refusal."""
        error = MFAMethodNotAllowedError("sms", "admin", ["totp", "email_otp"])

        assert error.details["allowed_methods"] == ["totp", "email_otp"]
        assert error.status_code == 403

    def test_access_denied_reason(self):
        """Test the denial reason is kept."""
        error = SystemAccessDeniedError(uuid4(), "inactive")

        assert error.details["reason"] == "inactive"

    def test_error_context_attaches_correlation(self):
        """Test errors raised in the block get the correlation id."""
        with pytest.raises(ValidationError) as exc_info:
            with error_context("corr-123", operation="register"):
                raise ValidationError("bad")

        assert exc_info.value.correlation_id == "corr-123"
        assert exc_info.value.context["operation"] == "register"


class TestSensitiveDataFilter:
    """Test masking of secret values in log events."""

    @pytest.fixture
    def log_filter(self):
        return SensitiveDataFilter()

    def test_masks_secret_keys(self, log_filter):
        """Test passwords, codes and secrets are masked."""
        event = {
            "event": "mfa_challenge_issued",
            "user_id": "u-1",
            "password": "Segura#2024",
            "code": "482910",
            "totp_secret": "JBSWY3DPEHPK3PXP",
            "webauthn_data": {"credential_id": "abc"},
        }

        filtered = log_filter(None, "info", event)

        assert filtered["event"] == "mfa_challenge_issued"
        assert filtered["user_id"] == "u-1"
        assert filtered["password"] == SensitiveDataFilter.MASK
        assert filtered["code"] == SensitiveDataFilter.MASK
        assert filtered["totp_secret"] == SensitiveDataFilter.MASK
        assert filtered["webauthn_data"] == SensitiveDataFilter.MASK

    def test_walks_nested_structures(self, log_filter):
        """Test nested dicts and lists of dicts are filtered."""
        event = {
            "event": "bulk",
            "payload": {"token": "t", "count": 2},
            "items": [{"otp": "1234"}, "plain"],
        }

        filtered = log_filter.filter(event)

        assert filtered["payload"] == {"token": SensitiveDataFilter.MASK, "count": 2}
        assert filtered["items"] == [{"otp": SensitiveDataFilter.MASK}, "plain"]

    def test_none_values_stay_none(self, log_filter):
        """Test absent secrets are not reported as present."""
        assert log_filter.filter({"password": None})["password"] is None

    def test_error_code_keys_not_masked(self, log_filter):
        """Test only an exact code key is treated as an OTP."""
        filtered = log_filter.filter({"error_code": "INVALID_CODE"})

        assert filtered["error_code"] == "INVALID_CODE"


class TestLoggingProcessors:
    """Test processor chain assembly."""

    def test_message_truncation(self):
        """Test long events are cut with a marker."""
        processor = MessageLengthFilter(max_length=20)

        event = processor(None, "info", {"event": "x" * 50})

        assert len(event["event"]) == 20
        assert event["event"].endswith("... [TRUNCATED]")
        assert event["message_truncated"] is True

    def test_config_rejects_tiny_message_limit(self):
        """Test max_message_length lower bound."""
        with pytest.raises(ConfigurationError):
            LogConfig(max_message_length=10)

    def test_environment_defaults(self):
        """Test testing environments log plain text at warning level."""
        config = LogConfig(level=LogLevel.DEBUG, environment=Environment.TESTING)

        assert config.level == LogLevel.WARNING
        assert config.format == LogFormat.PLAIN

    def test_filter_included_when_enabled(self):
        """Test the sensitive data filter is part of the chain."""
        config = LogConfig(environment=Environment.PRODUCTION)

        processors = build_processors(config)

        assert any(isinstance(p, SensitiveDataFilter) for p in processors)
        assert any(isinstance(p, MessageLengthFilter) for p in processors)

    def test_configure_logging_returns_bound_loggers(self):
        """Test loggers work after explicit configuration."""
        configure_logging(LogConfig(environment=Environment.TESTING))

        logger = get_logger("userservice.tests")

        assert hasattr(logger, "info")
        logger.info("logging_configured_in_test", user_id="u-1")


class TestLogContext:
    """Test context binding."""

    @pytest.fixture(autouse=True)
    def isolated_context(self):
        clear_context()
        yield
        clear_context()

    def test_bind_and_clear(self):
        """Test bound values are visible until cleared."""
        log_context(correlation_id="corr-123", user_id="u-1")

        assert structlog.contextvars.get_contextvars() == {
            "correlation_id": "corr-123",
            "user_id": "u-1",
        }

        clear_context()

        assert structlog.contextvars.get_contextvars() == {}
