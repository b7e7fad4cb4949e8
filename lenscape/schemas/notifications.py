"""Schemas for notifications."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationCreate(BaseModel):
    message: str = Field(..., max_length=2000)


class NotificationUpdate(BaseModel):
    message: str = Field(..., max_length=2000)


class NotificationResponse(BaseModel):
    id: UUID
    message: str
    created_by: UUID | None = None
    created_at: datetime
    is_read: bool = False
    time_ago: str = ""


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    unread_count: int = 0


class NotificationSummaryResponse(BaseModel):
    unread_count: int = 0


class TopBarCountsResponse(BaseModel):
    unread_messages: int = 0
    unread_notifications: int = 0


__all__ = [
    "NotificationCreate",
    "NotificationUpdate",
    "NotificationResponse",
    "NotificationListResponse",
    "NotificationSummaryResponse",
    "TopBarCountsResponse",
]
