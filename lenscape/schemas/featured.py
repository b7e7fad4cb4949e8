"""Schemas for featured items."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FeaturedItemCreate(BaseModel):
    image_url: str = Field(..., min_length=1, max_length=2048)
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=150)
    category: str | None = Field(default=None, max_length=64)


class FeaturedItemUpdate(BaseModel):
    image_url: str | None = Field(default=None, min_length=1, max_length=2048)
    title: str | None = Field(default=None, min_length=1, max_length=255)
    author: str | None = Field(default=None, min_length=1, max_length=150)
    category: str | None = Field(default=None, max_length=64)
    is_active: bool | None = None


class FeaturedItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    image_url: str
    title: str
    author: str
    category: str | None = None
    likes: int
    is_active: bool
    created_at: datetime


__all__ = ["FeaturedItemCreate", "FeaturedItemUpdate", "FeaturedItemResponse"]
