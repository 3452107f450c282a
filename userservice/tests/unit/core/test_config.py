"""
Test suite for service configuration loading.
"""

import os
from datetime import timedelta

import pytest

from userservice.core.config import (
    ENV_PREFIX,
    EnvironmentLoader,
    LegalConfig,
    MFAConfig,
    SecurityConfig,
    Settings,
)
from userservice.core.enums import Environment, LogLevel
from userservice.core.errors import ConfigurationError

pytestmark = pytest.mark.unit


@pytest.fixture
def clean_env(monkeypatch):
    """Isolate os.environ from the test and drop every USERSERVICE_ variable."""
    environ = {key: value for key, value in os.environ.items() if not key.startswith(ENV_PREFIX)}
    monkeypatch.setattr(os, "environ", environ)
    return monkeypatch


class TestEnvironmentLoader:
    """Test typed environment access."""

    def test_string_default(self, clean_env):
        """Test missing values fall back to the default."""
        loader = EnvironmentLoader(env_file=None)

        assert loader.get_string("APP_NAME", "userservice") == "userservice"

    def test_required_string_missing(self, clean_env):
        """Test a required variable without default raises."""
        loader = EnvironmentLoader(env_file=None)

        with pytest.raises(ConfigurationError) as exc_info:
            loader.get_string("MFA_ENCRYPTION_KEY", required=True)

        assert exc_info.value.details["config_key"] == "MFA_ENCRYPTION_KEY"

    def test_integer_parsing_and_bounds(self, clean_env):
        """Test integers are parsed and range checked."""
        clean_env.setenv("USERSERVICE_MFA_MAX_ATTEMPTS", "5")
        loader = EnvironmentLoader(env_file=None)

        assert loader.get_integer("MFA_MAX_ATTEMPTS", 3, min_value=1, max_value=10) == 5

        clean_env.setenv("USERSERVICE_MFA_MAX_ATTEMPTS", "50")
        with pytest.raises(ConfigurationError, match="must be <= 10"):
            loader.get_integer("MFA_MAX_ATTEMPTS", 3, min_value=1, max_value=10)

    def test_integer_not_a_number(self, clean_env):
        """Test garbage integers are reported."""
        clean_env.setenv("USERSERVICE_MFA_OTP_LENGTH", "six")
        loader = EnvironmentLoader(env_file=None)

        with pytest.raises(ConfigurationError, match="must be an integer"):
            loader.get_integer("MFA_OTP_LENGTH", 6)

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("YES", True), ("1", True), ("off", False), ("0", False)],
    )
    def test_boolean_values(self, clean_env, raw, expected):
        """Test accepted boolean spellings."""
        clean_env.setenv("USERSERVICE_DATABASE_ECHO", raw)

        assert EnvironmentLoader(env_file=None).get_boolean("DATABASE_ECHO", False) is expected

    def test_boolean_invalid(self, clean_env):
        """Test unknown boolean spellings raise."""
        clean_env.setenv("USERSERVICE_DATABASE_ECHO", "maybe")

        with pytest.raises(ConfigurationError):
            EnvironmentLoader(env_file=None).get_boolean("DATABASE_ECHO", False)

    def test_enum_by_value_or_name(self, clean_env):
        """Test enums resolve from their value or member name."""
        loader = EnvironmentLoader(env_file=None)

        clean_env.setenv("USERSERVICE_ENVIRONMENT", "prod")
        assert loader.get_enum("ENVIRONMENT", Environment, Environment.DEVELOPMENT) == Environment.PRODUCTION

        clean_env.setenv("USERSERVICE_ENVIRONMENT", "testing")
        assert loader.get_enum("ENVIRONMENT", Environment, Environment.DEVELOPMENT) == Environment.TESTING

        clean_env.setenv("USERSERVICE_LOG_LEVEL", "debug")
        assert loader.get_enum("LOG_LEVEL", LogLevel, LogLevel.INFO) == LogLevel.DEBUG

    def test_env_file_does_not_override_environment(self, clean_env, tmp_path):
        """Test process variables win over the .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# comment\n"
            'USERSERVICE_APP_NAME="from-file"\n'
            "USERSERVICE_TERMS_VERSION=3.0\n",
            encoding="utf-8",
        )
        clean_env.setenv("USERSERVICE_APP_NAME", "from-env")

        loader = EnvironmentLoader(env_file=str(env_file))

        assert loader.get_string("APP_NAME") == "from-env"
        assert loader.get_string("TERMS_VERSION") == "3.0"


class TestSettings:
    """Test Settings.from_env and section validation."""

    def test_defaults(self, clean_env):
        """Test defaults without any variables set."""
        settings = Settings.from_env(env_file=None)

        assert settings.environment == Environment.DEVELOPMENT
        assert settings.mfa.session_ttl == timedelta(minutes=5)
        assert settings.mfa.max_attempts == 3
        assert settings.mfa.backup_code_validity == timedelta(days=365)
        assert settings.legal.current_versions() == ("1.0", "1.0", "1.0")
        assert settings.security.bcrypt_rounds == 12

    def test_overrides(self, clean_env):
        """Test variables feed every section."""
        clean_env.setenv("USERSERVICE_ENVIRONMENT", "test")
        clean_env.setenv("USERSERVICE_MFA_SESSION_TTL_MINUTES", "10")
        clean_env.setenv("USERSERVICE_PRIVACY_POLICY_VERSION", "2.1")
        clean_env.setenv("USERSERVICE_DATABASE_URL", "sqlite:///:memory:")

        settings = Settings.from_env(env_file=None)

        assert settings.environment == Environment.TESTING
        assert settings.mfa.session_ttl == timedelta(minutes=10)
        assert settings.legal.privacy_policy_version == "2.1"
        assert settings.database.is_sqlite
        assert settings.security.bcrypt_rounds == 4

    def test_production_requires_encryption_key(self, clean_env):
        """Test production refuses to start without an MFA key."""
        clean_env.setenv("USERSERVICE_ENVIRONMENT", "prod")

        with pytest.raises(ConfigurationError):
            Settings.from_env(env_file=None)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"otp_length": 3},
            {"otp_length": 11},
            {"max_attempts": 0},
            {"session_ttl_minutes": 0},
            {"backup_code_length": 6},
            {"backup_code_count": 0},
        ],
    )
    def test_invalid_mfa_config(self, kwargs):
        """Test MFA parameters are range checked."""
        with pytest.raises(ConfigurationError):
            MFAConfig(**kwargs)

    def test_invalid_bcrypt_rounds(self):
        """Test bcrypt cost must be in bcrypt's range."""
        with pytest.raises(ConfigurationError):
            SecurityConfig(bcrypt_rounds=3)

    def test_legal_versions_order(self):
        """Test versions come back as (privacy, terms, data treatment)."""
        legal = LegalConfig(privacy_policy_version="2", terms_version="3", data_treatment_version="4")

        assert legal.current_versions() == ("2", "3", "4")

    def test_sqlite_engine_kwargs(self):
        """Test SQLite connections may be shared across threads."""
        settings = Settings()

        assert settings.database.engine_kwargs()["connect_args"] == {"check_same_thread": False}
