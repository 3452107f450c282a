"""
Test suite for identity field validation.

Covers normalisation, rule ordering and the exact messages surfaced to
clients.
"""

import pytest

from userservice.core.errors import ValidationError
from userservice.modules.identity.domain.enums import UserRole
from userservice.modules.identity.domain.validation import (
    collect_user_data_errors,
    validate_document_number,
    validate_email,
    validate_ficha_id,
    validate_first_name,
    validate_last_name,
    validate_password,
    validate_role,
    validate_user_data,
)

pytestmark = pytest.mark.unit


class TestNameValidation:
    """Test first and last name rules."""

    def test_trims_whitespace(self):
        """Test surrounding whitespace is removed."""
        assert validate_first_name("  María José ") == "María José"

    def test_accepts_spanish_accents(self):
        """Test accented letters and ñ are allowed."""
        assert validate_last_name("Peña Gutiérrez") == "Peña Gutiérrez"

    @pytest.mark.parametrize(
        ("value", "rule", "message"),
        [
            ("A", "min_length", "First name must be at least 2 characters long"),
            ("   ", "min_length", "First name must be at least 2 characters long"),
            ("A" * 101, "max_length", "First name must not exceed 100 characters"),
            ("Ana3", "pattern", "First name may only contain letters, spaces and accents"),
            ("O'Neil", "pattern", "First name may only contain letters, spaces and accents"),
        ],
    )
    def test_rejects_invalid_first_names(self, value, rule, message):
        """Test each name rule and its message."""
        with pytest.raises(ValidationError) as exc_info:
            validate_first_name(value)

        assert exc_info.value.field == "first_name"
        assert exc_info.value.rule == rule
        assert exc_info.value.message == message

    @pytest.mark.parametrize("separator", ["\u00a0", "\u2003", "\v"])
    def test_rejects_non_ascii_whitespace_inside_names(self, separator):
        """Test only ASCII whitespace may separate words."""
        with pytest.raises(ValidationError) as exc_info:
            validate_first_name(f"Ana{separator}María")

        assert exc_info.value.rule == "pattern"

    def test_accepts_ascii_whitespace_inside_names(self):
        """Test tabs between words are kept."""
        assert validate_first_name("Ana\tMaría") == "Ana\tMaría"

    def test_last_name_label(self):
        """Test last name errors carry their own label."""
        with pytest.raises(ValidationError, match="Last name must be at least 2 characters long"):
            validate_last_name("Z")

    def test_boundary_lengths_accepted(self):
        """Test 2 and 100 characters are both valid."""
        assert validate_first_name("Al") == "Al"
        assert validate_first_name("A" * 100) == "A" * 100


class TestEmailValidation:
    """Test email normalisation and format rules."""

    def test_lowercases_and_trims(self):
        """Test emails are stored lower-cased."""
        assert validate_email("  Ana.Garcia@SENA.edu.co ") == "ana.garcia@sena.edu.co"

    def test_empty_email(self):
        """Test empty input is a required-field error."""
        with pytest.raises(ValidationError) as exc_info:
            validate_email("   ")

        assert exc_info.value.rule == "required"
        assert exc_info.value.message == "Email cannot be empty"

    def test_too_long_email(self):
        """Test the 100 character limit."""
        email = "a" * 95 + "@x.com"
        with pytest.raises(ValidationError, match="Email must not exceed 100 characters"):
            validate_email(email)

    @pytest.mark.parametrize(
        "email",
        ["no-at-sign", "user@", "user@domain", "user@domain.c", "us er@domain.com"],
    )
    def test_rejects_malformed_emails(self, email):
        """Test malformed addresses fail the format rule."""
        with pytest.raises(ValidationError) as exc_info:
            validate_email(email)

        assert exc_info.value.rule == "format"
        assert exc_info.value.message == "Email format is not valid"


class TestDocumentAndRoleValidation:
    """Test document number and role rules."""

    @pytest.mark.parametrize("document", ["1234567", "AB-123456", "12345678901234567890"])
    def test_valid_documents(self, document):
        """Test letters, digits and hyphens within 7 to 20 characters."""
        assert validate_document_number(document) == document

    @pytest.mark.parametrize(
        ("document", "rule"),
        [("123456", "min_length"), ("1" * 21, "max_length"), ("1234 5678", "pattern")],
    )
    def test_invalid_documents(self, document, rule):
        """Test document rules in order."""
        with pytest.raises(ValidationError) as exc_info:
            validate_document_number(document)

        assert exc_info.value.field == "document_number"
        assert exc_info.value.rule == rule

    def test_role_from_stored_value(self):
        """Test roles are accepted by their stored text value."""
        assert validate_role("aprendiz") == UserRole.LEARNER
        assert validate_role(UserRole.ADMIN) == UserRole.ADMIN

    @pytest.mark.parametrize("role", ["student", "", None, 3])
    def test_unknown_role(self, role):
        """Test unknown roles list the allowed values."""
        with pytest.raises(ValidationError) as exc_info:
            validate_role(role)

        assert exc_info.value.rule == "choice"
        assert exc_info.value.message.startswith("Role is not valid: must be one of")
        assert "aprendiz" in exc_info.value.details["allowed"]


class TestFichaValidation:
    """Test learner cohort identifiers."""

    def test_valid_ficha(self):
        """Test a seven digit ficha is accepted."""
        assert validate_ficha_id(" 2556789 ") == "2556789"

    def test_empty_ficha(self):
        """Test empty ficha is a required error."""
        with pytest.raises(ValidationError, match="Ficha ID cannot be empty"):
            validate_ficha_id("")

    @pytest.mark.parametrize("ficha", ["255678", "25567890", "25567A9"])
    def test_malformed_ficha(self, ficha):
        """Test the seven digit format."""
        with pytest.raises(ValidationError, match="Ficha ID must be a 7 digit number"):
            validate_ficha_id(ficha)


class TestPasswordValidation:
    """Test password length and character classes."""

    def test_valid_password_returned_unchanged(self):
        """Test passwords are never trimmed."""
        password = " Segura#2024 "
        assert validate_password(password) == password

    @pytest.mark.parametrize(
        ("password", "rule"),
        [
            ("Ab1!", "min_length"),
            ("Aa1!" + "x" * 125, "max_length"),
            ("ABCDEFGH1!", "lowercase"),
            ("abcdefgh1!", "uppercase"),
            ("Abcdefghi!", "digit"),
            ("Abcdefghi1", "special"),
        ],
    )
    def test_rule_order(self, password, rule):
        """Test the first failing rule is reported."""
        with pytest.raises(ValidationError) as exc_info:
            validate_password(password)

        assert exc_info.value.field == "password"
        assert exc_info.value.rule == rule

    def test_lowercase_message(self):
        """Test a character class message."""
        with pytest.raises(ValidationError, match="Password must contain at least one lowercase letter"):
            validate_password("ABCDEFGH1!")


class TestUserDataValidation:
    """Test whole-record validation helpers."""

    def test_validate_user_data_normalises(self):
        """Test all fields come back normalised."""
        data = validate_user_data(" Ana ", "García", "ANA@SENA.EDU.CO", "1234567890", "instructor")

        assert data.first_name == "Ana"
        assert data.email == "ana@sena.edu.co"
        assert data.role == UserRole.INSTRUCTOR

    def test_validate_user_data_stops_at_first_error(self):
        """Test first name is checked before email."""
        with pytest.raises(ValidationError) as exc_info:
            validate_user_data("A", "García", "bad", "1234567890", "instructor")

        assert exc_info.value.field == "first_name"

    def test_collect_errors_reports_every_field(self):
        """Test all failing fields are reported together."""
        errors = collect_user_data_errors("A", "B", "bad", "123", "student", password="short")

        assert set(errors) == {
            "first_name",
            "last_name",
            "email",
            "document_number",
            "role",
            "password",
        }
        assert errors["email"] == ["Email format is not valid"]

    def test_collect_errors_empty_when_valid(self):
        """Test a valid record yields no errors."""
        errors = collect_user_data_errors(
            "Ana", "García", "ana@sena.edu.co", "1234567890", "aprendiz", password="Segura#2024"
        )

        assert errors == {}
