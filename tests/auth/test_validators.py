"""Tests for account input validators."""

import pytest

from src.auth.validators import (
    PASSWORD_MAX_LENGTH,
    validate_email,
    validate_name,
    validate_password,
    validate_password_confirmation,
)


class TestValidatePassword:
    """Tests for validate_password."""

    @pytest.mark.parametrize("password", ["secret", "password123", "a b c d"])
    def test_valid_passwords(self, password: str) -> None:
        """Passwords of six or more characters pass."""
        assert validate_password(password).valid is True

    def test_too_short(self) -> None:
        """Short passwords report the minimum length."""
        result = validate_password("abc")
        assert result.valid is False
        assert result.message == "Password must be at least 6 characters"

    def test_too_long(self) -> None:
        """Overlong passwords are rejected."""
        assert validate_password("x" * (PASSWORD_MAX_LENGTH + 1)).valid is False

    def test_blank(self) -> None:
        """Whitespace-only passwords are rejected."""
        assert validate_password("       ").valid is False


class TestValidatePasswordConfirmation:
    """Tests for validate_password_confirmation."""

    def test_matching(self) -> None:
        assert validate_password_confirmation("secret1", "secret1").valid is True

    def test_mismatch(self) -> None:
        result = validate_password_confirmation("secret1", "secret2")
        assert result.valid is False
        assert result.message == "Passwords do not match"


class TestValidateName:
    """Tests for validate_name."""

    def test_valid(self) -> None:
        assert validate_name("Ana").valid is True

    @pytest.mark.parametrize("name", ["", "A", "  B  "])
    def test_too_short(self, name: str) -> None:
        """Names need two visible characters."""
        assert validate_name(name).valid is False


class TestValidateEmail:
    """Tests for validate_email."""

    @pytest.mark.parametrize(
        "email", ["admin@example.com", "first.last+tag@sub.example.org"]
    )
    def test_valid(self, email: str) -> None:
        assert validate_email(email).valid is True

    @pytest.mark.parametrize("email", ["", "plain", "user@", "@example.com", "a@b"])
    def test_invalid(self, email: str) -> None:
        result = validate_email(email)
        assert result.valid is False
        assert result.message == "Invalid email"
