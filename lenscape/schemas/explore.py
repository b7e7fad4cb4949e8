"""Schemas for the explore grid and tag sections."""
from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class ExplorePost(BaseModel):
    id: UUID
    user_id: UUID
    image_url: str
    caption: str = ""
    user_name: str = "Anonymous"
    avatar_url: str | None = None
    location: str | None = None
    likes: int = 0
    likes_label: str = "0"
    comment_count: int = 0
    is_verified: bool = False
    tags: list[str] = Field(default_factory=list)


class ExplorePageResponse(BaseModel):
    items: list[ExplorePost]
    page: int
    has_more: bool


class TagCategory(BaseModel):
    name: str
    post_count: int
    post_count_label: str
    posts: list[ExplorePost]


class TagCategoryListResponse(BaseModel):
    items: list[TagCategory]


class TagPostsResponse(BaseModel):
    tag: str
    items: list[ExplorePost]


__all__ = ["ExplorePost", "ExplorePageResponse", "TagCategory", "TagCategoryListResponse", "TagPostsResponse"]
