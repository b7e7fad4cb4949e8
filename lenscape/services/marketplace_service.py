"""Delivered images, pricing, collections and purchase history."""
from __future__ import annotations

import logging
import re
from typing import Literal, Sequence
from uuid import UUID

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..constants import MAX_IMAGES_PER_SEND, ROLE_ADMIN, ROLE_PHOTOGRAPHER
from ..models import AppSetting, MarketplaceImage, Purchase, User
from ..schemas import CollectionGroup, DeleteResult, MarketplaceImageResponse, PurchaseResponse
from . import spaces_service
from .notification_service import notify_user

logger = logging.getLogger(__name__)

PRICE_SETTING_KEY = "image_price"
MAX_PAYMENT_AMOUNT = 150000
UNTITLED_COLLECTION = "Untitled"
SETTLED_PURCHASE_STATUSES = ("completed", "paid")

_PHONE_PATTERN = re.compile(r"^(07|01)\d{8}$")


def is_valid_phone(phone: str | None) -> bool:
    return bool(_PHONE_PATTERN.match((phone or "").strip()))


def is_valid_amount(amount: int | float | None) -> bool:
    return amount is not None and 0 < amount <= MAX_PAYMENT_AMOUNT


def _commit(db: Session, failure: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(failure)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure) from exc


def to_image_response(image: MarketplaceImage) -> MarketplaceImageResponse:
    return MarketplaceImageResponse(
        id=image.id,
        image_url=image.image_url,
        status="paid" if image.status == "paid" else "unpaid",
        collection_title=image.collection_title,
        description=image.description,
        sender_id=image.sender_id,
        sender_name=image.sender_name,
        file_name=image.file_name,
        is_payment_required=bool(image.is_payment_required),
        created_at=image.created_at,
    )


def current_price(db: Session) -> int:
    setting = db.get(AppSetting, PRICE_SETTING_KEY)
    if setting is not None and setting.value:
        try:
            price = int(float(setting.value))
        except ValueError:
            logger.warning("Ignoring malformed %s setting %r", PRICE_SETTING_KEY, setting.value)
        else:
            if price > 0:
                return price
    return int(get_settings().default_image_price)


def set_price(db: Session, amount: int) -> int:
    if not is_valid_amount(amount):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Price must be between 1 and 150000")
    setting = db.get(AppSetting, PRICE_SETTING_KEY)
    if setting is None:
        setting = AppSetting(key=PRICE_SETTING_KEY)
        db.add(setting)
    setting.value = str(int(amount))
    _commit(db, "Failed to update price")
    logger.info("Image price set to %s", amount)
    return int(amount)


async def send_images(
    db: Session,
    *,
    sender: User,
    recipient_id: UUID,
    files: Sequence[UploadFile],
    title: str | None = None,
    description: str | None = None,
    is_payment_required: bool = True,
) -> list[MarketplaceImage]:
    """Deliver photos to a client; free deliveries arrive already paid."""

    role = ROLE_ADMIN if sender.is_admin_user else (sender.user_type or "").lower()
    if role not in (ROLE_PHOTOGRAPHER, ROLE_ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only photographers can send images")
    if sender.id == recipient_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot send images to yourself")
    recipient = db.get(User, recipient_id)
    if recipient is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipient not found")

    uploads = [item for item in files if item is not None and item.filename]
    if not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please select at least one image")
    if len(uploads) > MAX_IMAGES_PER_SEND:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"You can send at most {MAX_IMAGES_PER_SEND} images at once",
        )
    for upload in uploads:
        if not spaces_service.is_image_upload(upload):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only image files can be sent")

    collection_title = (title or "").strip() or None
    note = (description or "").strip() or None
    images: list[MarketplaceImage] = []
    for upload in uploads:
        result = await spaces_service.store_upload(upload, folder="marketplace")
        images.append(
            MarketplaceImage(
                user_id=recipient.id,
                sender_id=sender.id,
                image_url=result.url,
                storage_key=result.key,
                collection_title=collection_title,
                description=note,
                file_name=upload.filename,
                is_payment_required=is_payment_required,
                status="unpaid" if is_payment_required else "paid",
            )
        )

    db.add_all(images)
    _commit(db, "Failed to save delivered images")
    for image in images:
        db.refresh(image)

    logger.info("User %s sent %d image(s) to %s", sender.id, len(images), recipient.id)
    notify_user(
        recipient.id,
        {
            "type": "marketplace.images_received",
            "sender_id": str(sender.id),
            "sender_name": sender.name_for_display,
            "count": len(images),
            "collection_title": collection_title,
        },
    )
    return images


def list_images(
    db: Session,
    *,
    user_id: UUID,
    status_filter: Literal["all", "paid", "unpaid"] = "all",
    sender: str | None = None,
) -> list[MarketplaceImage]:
    stmt = (
        select(MarketplaceImage)
        .where(MarketplaceImage.user_id == user_id)
        .options(selectinload(MarketplaceImage.sender))
        .order_by(MarketplaceImage.created_at.desc())
    )
    if status_filter in ("paid", "unpaid"):
        stmt = stmt.where(MarketplaceImage.status == status_filter)
    images = list(db.scalars(stmt))

    wanted = (sender or "").strip().lower()
    if wanted and wanted != "all":
        images = [image for image in images if (image.sender_name or "").lower() == wanted]

    if status_filter == "all":
        images.sort(key=lambda image: image.status == "paid")
    return images


def list_senders(db: Session, *, user_id: UUID) -> list[str]:
    stmt = (
        select(MarketplaceImage)
        .where(MarketplaceImage.user_id == user_id, MarketplaceImage.sender_id.is_not(None))
        .options(selectinload(MarketplaceImage.sender))
    )
    names = {image.sender_name for image in db.scalars(stmt) if image.sender_name}
    return sorted(names, key=str.lower)


def get_owned_image(db: Session, *, image_id: UUID, user_id: UUID) -> MarketplaceImage:
    image = db.get(MarketplaceImage, image_id)
    if image is None or image.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return image


def download_url(db: Session, *, image_id: UUID, user_id: UUID) -> str:
    image = get_owned_image(db, image_id=image_id, user_id=user_id)
    if image.status != "paid":
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail="Purchase this image to download it")
    return image.image_url


def _remove_image(db: Session, image: MarketplaceImage) -> str | None:
    db.execute(delete(Purchase).where(Purchase.image_id == image.id))
    db.delete(image)
    return image.storage_key or spaces_service.key_from_url(image.image_url)


def delete_image(db: Session, *, image_id: UUID, user_id: UUID) -> None:
    """Remove an image and any purchase rows that reference it."""

    image = get_owned_image(db, image_id=image_id, user_id=user_id)
    key = _remove_image(db, image)
    _commit(db, "Failed to delete image")
    spaces_service.try_delete_file(key)


def delete_images(db: Session, *, image_ids: Sequence[UUID], user_id: UUID) -> DeleteResult:
    removed_keys: list[str | None] = []
    failed = 0
    for image_id in dict.fromkeys(image_ids):
        image = db.get(MarketplaceImage, image_id)
        if image is None or image.user_id != user_id:
            failed += 1
            continue
        removed_keys.append(_remove_image(db, image))
    _commit(db, "Failed to delete images")
    for key in removed_keys:
        spaces_service.try_delete_file(key)

    succeeded = len(removed_keys)
    if failed == 0:
        message = f"Deleted {succeeded} image(s)"
    elif succeeded == 0:
        message = "No images were deleted"
    else:
        message = f"Deleted {succeeded} image(s); {failed} could not be deleted"
    return DeleteResult(success=failed == 0, success_count=succeeded, failed_count=failed, message=message)


def list_purchases(db: Session, *, user_id: UUID) -> list[PurchaseResponse]:
    stmt = (
        select(Purchase)
        .where(Purchase.user_id == user_id, Purchase.status.in_(SETTLED_PURCHASE_STATUSES))
        .options(selectinload(Purchase.image).selectinload(MarketplaceImage.sender))
        .order_by(Purchase.created_at.desc())
    )
    return [
        PurchaseResponse(
            id=purchase.id,
            image_id=purchase.image_id,
            amount=purchase.amount,
            status=purchase.status,
            created_at=purchase.created_at,
            image=to_image_response(purchase.image) if purchase.image else None,
        )
        for purchase in db.scalars(stmt)
    ]


def list_collections(db: Session, *, user_id: UUID) -> list[CollectionGroup]:
    """Group the caller's delivered images by collection title, newest group first."""

    groups: dict[str, list[MarketplaceImage]] = {}
    for image in list_images(db, user_id=user_id):
        groups.setdefault((image.collection_title or "").strip() or UNTITLED_COLLECTION, []).append(image)

    ordered = sorted(
        groups.items(),
        key=lambda entry: max(image.created_at for image in entry[1]),
        reverse=True,
    )
    result: list[CollectionGroup] = []
    for title, images in ordered:
        images.sort(key=lambda image: image.created_at, reverse=True)
        paid = sum(1 for image in images if image.status == "paid")
        result.append(
            CollectionGroup(
                title=title,
                paid_count=paid,
                unpaid_count=len(images) - paid,
                images=[to_image_response(image) for image in images],
            )
        )
    return result


__all__ = [
    "PRICE_SETTING_KEY",
    "MAX_PAYMENT_AMOUNT",
    "UNTITLED_COLLECTION",
    "is_valid_phone",
    "is_valid_amount",
    "to_image_response",
    "current_price",
    "set_price",
    "send_images",
    "list_images",
    "list_senders",
    "get_owned_image",
    "download_url",
    "delete_image",
    "delete_images",
    "list_purchases",
    "list_collections",
]
