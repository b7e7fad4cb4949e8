"""Persistent key/value settings such as the marketplace image price."""
from __future__ import annotations

from sqlalchemy import Column, String, Text

from lenscape.database import Base
from .base import TimestampMixin


class AppSetting(TimestampMixin, Base):
    __tablename__ = "settings"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=True)


__all__ = ["AppSetting"]
