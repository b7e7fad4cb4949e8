"""Pydantic schemas for community posts."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PostResponse(BaseModel):
    """Serialized representation of a post as shown in the community feed."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    caption: str
    images: list[str] = Field(default_factory=list)
    location: str | None = None
    tags: list[str] = Field(default_factory=list)
    likes_count: int = 0
    comments_count: int = 0
    is_featured: bool = False
    allow_comments: bool = True
    allow_likes: bool = True
    created_at: datetime
    username: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    user_type: str | None = None
    is_verified: bool = False
    is_liked: bool = False
    is_bookmarked: bool = False


class PostPageResponse(BaseModel):
    """One page of posts plus whether another page may follow."""

    items: list[PostResponse]
    page: int
    has_more: bool


class PostEngagementResponse(BaseModel):
    post_id: UUID
    likes_count: int
    comments_count: int
    is_liked: bool
    is_bookmarked: bool


class PostCommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    parent_id: UUID | None = None


class PostCommentResponse(BaseModel):
    id: UUID
    post_id: UUID
    user_id: UUID
    username: str | None = None
    avatar_url: str | None = None
    content: str
    parent_id: UUID | None = None
    created_at: datetime
    replies: list["PostCommentResponse"] = Field(default_factory=list)


class PostCommentListResponse(BaseModel):
    items: list[PostCommentResponse]


class TagListResponse(BaseModel):
    tags: list[str]
    max_tags: int


PostCommentResponse.model_rebuild()


__all__ = [
    "PostResponse",
    "PostPageResponse",
    "PostEngagementResponse",
    "PostCommentCreate",
    "PostCommentResponse",
    "PostCommentListResponse",
    "TagListResponse",
]
