"""Pydantic schemas for authentication.

Request bodies accept both camelCase and snake_case field names.
"""

from datetime import datetime
from typing import Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from src.auth.permissions import UserRole
from src.auth.validators import (
    validate_name,
    validate_password,
    validate_password_confirmation,
)


def _check_password(value: str) -> str:
    result = validate_password(value)
    if not result.valid:
        raise ValueError(result.message or "Invalid password")
    return value


# ==============================================================================
# Request Schemas
# ==============================================================================


class SignupRequest(BaseModel):
    """Account registration request."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., max_length=100, description="Display name")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., description="Password")
    password_confirmation: str = Field(
        ..., alias="passwordConfirmation", description="Password, repeated"
    )

    @field_validator("name")
    @classmethod
    def validate_name_length(cls, v: str) -> str:
        result = validate_name(v)
        if not result.valid:
            raise ValueError(result.message or "Invalid name")
        return v.strip()

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _check_password(v)

    @model_validator(mode="after")
    def passwords_match(self) -> Self:
        result = validate_password_confirmation(
            self.password, self.password_confirmation
        )
        if not result.valid:
            raise ValueError(result.message or "Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """Login request."""

    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=1, description="Password")


class ChangePasswordRequest(BaseModel):
    """Password change request."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password(v)


# ==============================================================================
# Response Schemas
# ==============================================================================


class UserResponse(BaseModel):
    """Public account data (never includes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    role: UserRole
    created_at: datetime
    updated_at: datetime | None = None


class TokenResponse(BaseModel):
    """Access token response; the refresh token travels in a cookie."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token lifetime in seconds")


class SignupResponse(TokenResponse):
    """Signup response: the new account plus a session."""

    user: UserResponse


class MessageResponse(BaseModel):
    message: str
