"""M-Pesa purchase flow for marketplace images."""
from __future__ import annotations

import logging
from typing import Any, Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..clients import mpesa
from ..models import MarketplaceImage, PaymentTransaction, Purchase, User
from ..schemas import PaymentStatusResponse
from .marketplace_service import current_price, is_valid_amount, is_valid_phone
from .notification_service import notify_user

logger = logging.getLogger(__name__)

_RESULT_STATUSES = {
    mpesa.RESULT_SUCCESS: "completed",
    mpesa.RESULT_CANCELLED: "cancelled",
    mpesa.RESULT_TIMEOUT: "timeout",
}


def _commit(db: Session, failure: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(failure)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure) from exc


def purchase_description(images: Sequence[MarketplaceImage]) -> str:
    if len(images) == 1:
        title = images[0].collection_title or "Untitled"
        return f"Purchase 1 image: {title}"
    return f"Purchase {len(images)} image(s)"


def to_status_response(transaction: PaymentTransaction) -> PaymentStatusResponse:
    state = transaction.status
    return PaymentStatusResponse(
        transaction_id=transaction.id,
        status=state,
        is_pending=state == "pending",
        is_completed=state == "completed",
        is_failed=state in ("failed", "timeout", "cancelled"),
        amount=transaction.amount,
        description=transaction.description,
        message=transaction.result_message,
        mpesa_receipt_number=transaction.mpesa_receipt_number,
    )


def _payable_images(db: Session, *, user_id: UUID, image_ids: Sequence[UUID]) -> list[MarketplaceImage]:
    unique_ids = list(dict.fromkeys(image_ids))
    if not unique_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Select at least one image to purchase")
    images = list(
        db.scalars(
            select(MarketplaceImage).where(MarketplaceImage.id.in_(unique_ids), MarketplaceImage.user_id == user_id)
        )
    )
    if len(images) != len(unique_ids):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="One or more images were not found")
    if any(image.status == "paid" for image in images):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="One or more images are already paid for")
    return images


async def initiate_payment(
    db: Session,
    *,
    user: User,
    phone_number: str,
    image_ids: Sequence[UUID],
) -> PaymentTransaction:
    """Record a pending purchase and ask the gateway for an STK push."""

    phone = (phone_number or "").strip()
    if not is_valid_phone(phone):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please enter a valid phone number (07XXXXXXXX or 01XXXXXXXX)",
        )

    images = _payable_images(db, user_id=user.id, image_ids=image_ids)
    price = current_price(db)
    amount = price * len(images)
    if not is_valid_amount(amount):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must be between 1 and 150000")

    try:
        mpesa.load_mpesa_config()
    except mpesa.PaymentConfigurationError as exc:
        logger.error("Payment requested but M-Pesa is not configured: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payments are not available right now") from exc

    transaction = PaymentTransaction(
        user_id=user.id,
        phone_number=phone,
        amount=amount,
        description=purchase_description(images),
        status="pending",
    )
    transaction.purchases = [
        Purchase(user_id=user.id, image_id=image.id, amount=price, status="pending") for image in images
    ]
    db.add(transaction)
    _commit(db, "Failed to record payment")
    db.refresh(transaction)

    try:
        result = await mpesa.request_stk_push(
            phone_number=phone,
            amount=amount,
            account_reference=str(transaction.id).replace("-", "")[:12],
            description=transaction.description,
        )
    except mpesa.PaymentGatewayError as exc:
        transaction.status = "failed"
        transaction.result_message = str(exc)
        for purchase in transaction.purchases:
            purchase.status = "failed"
        _commit(db, "Failed to record payment failure")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    transaction.checkout_request_id = result.checkout_request_id
    transaction.result_message = result.customer_message
    _commit(db, "Failed to record payment request")
    db.refresh(transaction)
    logger.info("STK push %s sent for transaction %s", result.checkout_request_id, transaction.id)
    return transaction


def handle_callback(db: Session, payload: dict[str, Any]) -> PaymentTransaction:
    """Settle a transaction from the gateway result.

    Repeated callbacks are ignored, except that a success for a transaction the
    buyer cancelled locally still completes it and marks the images paid.
    """

    try:
        callback = mpesa.parse_stk_callback(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    transaction = db.scalar(
        select(PaymentTransaction).where(PaymentTransaction.checkout_request_id == callback.checkout_request_id)
    )
    if transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    outcome = _RESULT_STATUSES.get(callback.result_code, "failed")
    late_success = transaction.status == "cancelled" and outcome == "completed"
    if transaction.status != "pending" and not late_success:
        logger.info("Ignoring callback for settled transaction %s", transaction.id)
        return transaction
    if late_success:
        logger.warning("Completing cancelled transaction %s after gateway success", transaction.id)

    transaction.status = outcome
    transaction.result_message = callback.result_desc
    if outcome == "completed":
        transaction.mpesa_receipt_number = callback.mpesa_receipt_number
        for purchase in transaction.purchases:
            purchase.status = "completed"
            if purchase.image is not None:
                purchase.image.status = "paid"
    else:
        purchase_state = "cancelled" if outcome == "cancelled" else "failed"
        for purchase in transaction.purchases:
            purchase.status = purchase_state

    _commit(db, "Failed to settle payment")
    db.refresh(transaction)
    logger.info("Transaction %s settled as %s", transaction.id, outcome)
    notify_user(
        transaction.user_id,
        {"type": "payment.updated", "transaction_id": str(transaction.id), "status": transaction.status},
    )
    return transaction


def get_transaction(db: Session, *, transaction_id: UUID, user_id: UUID) -> PaymentTransaction:
    transaction = db.get(PaymentTransaction, transaction_id)
    if transaction is None or transaction.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return transaction


def cancel_payment(db: Session, *, transaction_id: UUID, user_id: UUID) -> PaymentTransaction:
    transaction = get_transaction(db, transaction_id=transaction_id, user_id=user_id)
    if transaction.status != "pending":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only pending payments can be cancelled")
    transaction.status = "cancelled"
    transaction.result_message = "Cancelled by user"
    for purchase in transaction.purchases:
        purchase.status = "cancelled"
    _commit(db, "Failed to cancel payment")
    db.refresh(transaction)
    return transaction


__all__ = [
    "purchase_description",
    "to_status_response",
    "initiate_payment",
    "handle_callback",
    "get_transaction",
    "cancel_payment",
]
