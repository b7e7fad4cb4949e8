"""SQLAlchemy ORM models for delivered images, purchases and M-Pesa payments."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression, func

from lenscape.database import Base
from .base import utcnow


class MarketplaceImage(Base):
    __tablename__ = "marketplace_images"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    image_url = Column(String(2048), nullable=False)
    storage_key = Column(String(1024), nullable=True)
    collection_title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    file_name = Column(String(255), nullable=True)
    is_payment_required = Column(Boolean, nullable=False, server_default=expression.true(), default=True)
    status = Column(String(16), nullable=False, server_default="unpaid", default="unpaid")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    owner = relationship("User", foreign_keys=[user_id], back_populates="marketplace_images")
    sender = relationship("User", foreign_keys=[sender_id])
    purchases = relationship("Purchase", back_populates="image", cascade="all, delete-orphan")

    @property
    def sender_name(self) -> str | None:
        if self.sender is None:
            return None
        return self.sender.name_for_display


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    phone_number = Column(String(16), nullable=False)
    amount = Column(Integer, nullable=False)
    description = Column(String(255), nullable=False)
    status = Column(String(16), nullable=False, server_default="pending", default="pending", index=True)
    checkout_request_id = Column(String(128), nullable=True, unique=True)
    mpesa_receipt_number = Column(String(64), nullable=True)
    result_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)

    purchases = relationship("Purchase", back_populates="transaction")


class Purchase(Base):
    __tablename__ = "user_purchases"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    image_id = Column(
        UUID(as_uuid=True),
        ForeignKey("marketplace_images.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_id = Column(
        UUID(as_uuid=True),
        ForeignKey("payment_transactions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    amount = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, server_default="pending", default="pending")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="purchases")
    image = relationship("MarketplaceImage", back_populates="purchases")
    transaction = relationship("PaymentTransaction", back_populates="purchases")


__all__ = ["MarketplaceImage", "PaymentTransaction", "Purchase"]
