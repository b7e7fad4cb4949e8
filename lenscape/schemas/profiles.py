"""Schemas for profile endpoints."""
from __future__ import annotations

import re
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

_USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    display_name: str | None = None
    email: str | None = None
    user_type: str | None = None
    role_display_name: str | None = None
    avatar_url: str | None = None
    is_verified: bool = False
    initials: str = "U"


class ProfileResponse(UserSummary):
    full_name: str | None = None
    bio: str | None = None
    is_admin: bool = False
    created_at: datetime
    last_active_at: datetime


class UserListResponse(BaseModel):
    items: list[UserSummary]


class ProfileUpdateRequest(BaseModel):
    username: str | None = None
    display_name: str | None = None
    bio: str | None = Field(default=None, max_length=500)

    @field_validator("username")
    @classmethod
    def _username_rules(cls, value: str | None) -> str | None:
        if value is None:
            return None
        candidate = value.strip()
        if not candidate:
            raise ValueError("Please enter a username")
        if len(candidate) < 3:
            raise ValueError("Username must be at least 3 characters")
        if len(candidate) > 30:
            raise ValueError("Username must be less than 30 characters")
        if not _USERNAME_PATTERN.match(candidate):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return candidate

    @field_validator("display_name")
    @classmethod
    def _display_name_rules(cls, value: str | None) -> str | None:
        if value is None:
            return None
        candidate = value.strip()
        if not candidate:
            raise ValueError("Please enter a display name")
        if len(candidate) > 50:
            raise ValueError("Display name must be less than 50 characters")
        return candidate


class AvatarResponse(BaseModel):
    success: bool = True
    avatar_url: str | None = None
    message: str


class RoleUpdateRequest(BaseModel):
    role: Literal["client", "photographer", "admin"]


class UserAnalyticsResponse(BaseModel):
    total_users: int
    new_users_last_30_days: int
    clients: int
    photographers: int
    admins: int
    verified_users: int


__all__ = [
    "UserSummary",
    "ProfileResponse",
    "UserListResponse",
    "ProfileUpdateRequest",
    "AvatarResponse",
    "RoleUpdateRequest",
    "UserAnalyticsResponse",
]
