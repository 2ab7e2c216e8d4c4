"""Validation utilities for account input."""

import re
from typing import NamedTuple


PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128
NAME_MIN_LENGTH = 2

_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class ValidationResult(NamedTuple):
    """Result of a validation check."""

    valid: bool
    message: str | None = None


def validate_password(password: str) -> ValidationResult:
    """Validate password length.

    Examples:
        >>> validate_password("secret1")
        ValidationResult(valid=True, message=None)
        >>> validate_password("abc")
        ValidationResult(valid=False, message='Password must be at least 6 characters')
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        return ValidationResult(
            False, f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        return ValidationResult(
            False, f"Password must be at most {PASSWORD_MAX_LENGTH} characters"
        )
    if password.strip() == "":
        return ValidationResult(False, "Password cannot be blank")
    return ValidationResult(True)


def validate_password_confirmation(password: str, confirmation: str) -> ValidationResult:
    """Check that the confirmation matches the password."""
    if password != confirmation:
        return ValidationResult(False, "Passwords do not match")
    return ValidationResult(True)


def validate_name(name: str) -> ValidationResult:
    """Require a display name of at least two visible characters."""
    if len(name.strip()) < NAME_MIN_LENGTH:
        return ValidationResult(
            False, f"Name must be at least {NAME_MIN_LENGTH} characters"
        )
    return ValidationResult(True)


def validate_email(email: str) -> ValidationResult:
    """Basic email format validation.

    Request schemas use Pydantic's ``EmailStr``; this check serves code
    paths that receive raw strings, such as the seed script.
    """
    if _EMAIL_PATTERN.match(email):
        return ValidationResult(True)
    return ValidationResult(False, "Invalid email")
