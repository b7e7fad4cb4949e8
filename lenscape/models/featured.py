"""SQLAlchemy ORM model for the "Image of the Day" featured item."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import expression

from lenscape.database import Base
from .base import TimestampMixin


class FeaturedItem(TimestampMixin, Base):
    __tablename__ = "featured_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    image_url = Column(String(2048), nullable=False)
    title = Column(String(255), nullable=False)
    author = Column(String(150), nullable=False)
    category = Column(String(64), nullable=True)
    likes = Column(Integer, nullable=False, server_default="0", default=0)
    is_active = Column(Boolean, nullable=False, server_default=expression.false(), default=False, index=True)


__all__ = ["FeaturedItem"]
