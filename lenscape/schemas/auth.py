"""Pydantic schemas for authentication endpoints."""
from __future__ import annotations

import re
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

_EMAIL_PATTERN = re.compile(r"^[\w\-.]+@([\w-]+\.)+[\w-]{2,4}$")


def _validate_email(value: str) -> str:
    candidate = (value or "").strip()
    if not candidate:
        raise ValueError("Please enter your email")
    if not _EMAIL_PATTERN.match(candidate):
        raise ValueError("Please enter a valid email")
    return candidate.lower()


class RegisterRequest(BaseModel):
    full_name: str = Field(..., max_length=150)
    username: str = Field(..., max_length=30)
    email: str
    password: str = Field(..., max_length=128)
    confirm_password: str

    @field_validator("full_name")
    @classmethod
    def _full_name_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Please enter your full name")
        return value.strip()

    @field_validator("username")
    @classmethod
    def _username_length(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            raise ValueError("Please enter a username")
        if len(candidate) < 3:
            raise ValueError("Username must be at least 3 characters")
        return candidate

    @field_validator("email")
    @classmethod
    def _email_format(cls, value: str) -> str:
        return _validate_email(value)

    @field_validator("password")
    @classmethod
    def _password_length(cls, value: str) -> str:
        if not value:
            raise ValueError("Please enter your password")
        if len(value) < 8:
            raise ValueError("Password must be at least 8 characters")
        return value

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterRequest":
        if not self.confirm_password:
            raise ValueError("Please confirm your password")
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _email_format(cls, value: str) -> str:
        return _validate_email(value)


class AuthResponse(BaseModel):
    access_token: str
    user_id: UUID
    token_type: str = "bearer"
    user_type: str | None = None


class OAuthStartResponse(BaseModel):
    provider: str
    authorize_url: str
    state: str


__all__ = ["RegisterRequest", "LoginRequest", "AuthResponse", "OAuthStartResponse"]
