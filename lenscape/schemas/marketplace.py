"""Schemas for marketplace images, purchases, payments and collections."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MarketplaceImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    image_url: str
    status: Literal["paid", "unpaid"]
    collection_title: str | None = None
    description: str | None = None
    sender_id: UUID | None = None
    sender_name: str | None = None
    file_name: str | None = None
    is_payment_required: bool = True
    created_at: datetime


class MarketplaceImageListResponse(BaseModel):
    items: list[MarketplaceImageResponse]
    paid_count: int = 0
    unpaid_count: int = 0


class SendImagesResponse(BaseModel):
    success: bool = True
    message: str
    recipient_id: UUID
    items: list[MarketplaceImageResponse]


class SenderListResponse(BaseModel):
    senders: list[str]


class PriceResponse(BaseModel):
    price: int
    currency: str = "KES"


class PriceUpdateRequest(BaseModel):
    price: int = Field(..., gt=0, le=150000)


class PaymentInitiateRequest(BaseModel):
    phone_number: str
    image_ids: list[UUID] = Field(..., min_length=1)


class PaymentStatusResponse(BaseModel):
    transaction_id: UUID
    status: Literal["pending", "completed", "failed", "timeout", "cancelled"]
    is_pending: bool
    is_completed: bool
    is_failed: bool
    amount: int
    description: str
    message: str | None = None
    mpesa_receipt_number: str | None = None


class PaymentCallbackRequest(BaseModel):
    checkout_request_id: str
    result_code: int
    result_desc: str | None = None
    mpesa_receipt_number: str | None = None


class DeleteImagesRequest(BaseModel):
    image_ids: list[UUID] = Field(..., min_length=1)


class DeleteResult(BaseModel):
    success: bool
    success_count: int
    failed_count: int
    message: str | None = None


class PurchaseResponse(BaseModel):
    id: UUID
    image_id: UUID
    amount: int
    status: str
    created_at: datetime
    image: MarketplaceImageResponse | None = None


class PurchaseListResponse(BaseModel):
    items: list[PurchaseResponse]


class CollectionGroup(BaseModel):
    title: str
    paid_count: int
    unpaid_count: int
    images: list[MarketplaceImageResponse]


class CollectionListResponse(BaseModel):
    items: list[CollectionGroup]


__all__ = [
    "MarketplaceImageResponse",
    "MarketplaceImageListResponse",
    "SendImagesResponse",
    "SenderListResponse",
    "PriceResponse",
    "PriceUpdateRequest",
    "PaymentInitiateRequest",
    "PaymentStatusResponse",
    "PaymentCallbackRequest",
    "DeleteImagesRequest",
    "DeleteResult",
    "PurchaseResponse",
    "PurchaseListResponse",
    "CollectionGroup",
    "CollectionListResponse",
]
