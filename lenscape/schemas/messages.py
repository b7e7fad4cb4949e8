"""Schemas used by messaging endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ConversationParticipant(BaseModel):
    id: UUID
    display_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    user_type: str | None = None
    initials: str = "U"


class ConversationResponse(BaseModel):
    id: UUID
    other_user: ConversationParticipant
    last_message: str | None = None
    last_message_at: datetime | None = None
    time_label: str = ""
    unread_count: int = 0


class ConversationListResponse(BaseModel):
    items: List[ConversationResponse]


class ConversationLookupResponse(BaseModel):
    conversation_id: UUID | None = None
    other_user: ConversationParticipant


class MessageSendRequest(BaseModel):
    recipient_id: UUID | None = Field(None, description="Other participant; opens the conversation when missing")
    conversation_id: UUID | None = Field(None, description="Existing conversation to post into")
    content: str = Field(default="", max_length=4000)
    images: List[str] = Field(default_factory=list, max_length=10)
    reply_to_id: UUID | None = Field(None, description="Optional message being replied to")


class MessageEditRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=4000)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    sender_id: UUID
    receiver_id: UUID
    content: str
    images: List[str] = Field(default_factory=list)
    is_read: bool = False
    reply_to_id: UUID | None = None
    reply_to_content: str | None = None
    edited_at: datetime | None = None
    created_at: datetime
    time_label: str = ""
    show_date_divider: bool = False


class MessageThreadResponse(BaseModel):
    conversation_id: UUID
    other_user: ConversationParticipant
    messages: List[MessageResponse]


class AttachmentUploadResponse(BaseModel):
    urls: List[str]


class UnreadCountResponse(BaseModel):
    unread_count: int = 0


__all__ = [
    "ConversationParticipant",
    "ConversationResponse",
    "ConversationListResponse",
    "ConversationLookupResponse",
    "MessageSendRequest",
    "MessageEditRequest",
    "MessageResponse",
    "MessageThreadResponse",
    "AttachmentUploadResponse",
    "UnreadCountResponse",
]
