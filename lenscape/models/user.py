"""SQLAlchemy ORM model for user profiles."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression, func

from lenscape.database import Base
from .base import utcnow


class User(Base):
    __tablename__ = "profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(30), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    full_name = Column(String(150), nullable=True)
    display_name = Column(String(50), nullable=True)
    hashed_password = Column(String(255), nullable=True)
    oauth_provider = Column(String(32), nullable=True)
    bio = Column(String(500), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    avatar_key = Column(String(1024), nullable=True)
    user_type = Column(String(32), nullable=False, server_default="client", default="client")
    is_admin = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    is_verified = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)
    last_active_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    posts = relationship("Post", back_populates="author", cascade="all, delete-orphan")
    post_likes = relationship("PostLike", back_populates="user", cascade="all, delete-orphan")
    post_comments = relationship("PostComment", back_populates="user", cascade="all, delete-orphan")
    bookmarks = relationship("Bookmark", back_populates="user", cascade="all, delete-orphan")
    notification_reads = relationship("NotificationRead", back_populates="user", cascade="all, delete-orphan")
    marketplace_images = relationship(
        "MarketplaceImage",
        foreign_keys="MarketplaceImage.user_id",
        back_populates="owner",
        cascade="all, delete-orphan",
    )
    purchases = relationship("Purchase", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_admin_user(self) -> bool:
        return bool(self.is_admin) or (self.user_type or "").lower() == "admin"

    @property
    def name_for_display(self) -> str:
        return self.display_name or self.full_name or self.username or "Unknown"


__all__ = ["User"]
