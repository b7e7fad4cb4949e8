"""Marketplace deliveries, M-Pesa payments and collections."""
from __future__ import annotations

import hmac
from typing import Any, List, Literal
from uuid import UUID

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import (
    CollectionListResponse,
    DeleteImagesRequest,
    DeleteResult,
    MarketplaceImageListResponse,
    PaymentInitiateRequest,
    PaymentStatusResponse,
    PriceResponse,
    PriceUpdateRequest,
    PurchaseListResponse,
    SendImagesResponse,
    SenderListResponse,
)
from ..security.secrets import optional_secret
from ..services import (
    cancel_payment,
    current_price,
    delete_image,
    delete_images,
    download_url,
    get_current_user,
    get_transaction,
    handle_callback,
    initiate_payment,
    list_collections,
    list_images,
    list_purchases,
    list_senders,
    require_admin,
    send_images,
    set_price,
)
from ..services.marketplace_service import to_image_response
from ..services.payment_service import to_status_response

router = APIRouter(tags=["marketplace"])


@router.post("/marketplace/send", response_model=SendImagesResponse, status_code=status.HTTP_201_CREATED)
async def send_images_endpoint(
    recipient_id: UUID = Form(...),
    title: str | None = Form(None, max_length=255),
    description: str | None = Form(None, max_length=2000),
    is_payment_required: bool = Form(True),
    files: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> SendImagesResponse:
    images = await send_images(
        db,
        sender=current_user,
        recipient_id=recipient_id,
        files=files,
        title=title,
        description=description,
        is_payment_required=is_payment_required,
    )
    return SendImagesResponse(
        message=f"Successfully sent {len(images)} image(s)",
        recipient_id=recipient_id,
        items=[to_image_response(image) for image in images],
    )


@router.get("/marketplace/images", response_model=MarketplaceImageListResponse)
async def list_images_endpoint(
    status_filter: Literal["all", "paid", "unpaid"] = Query("all", alias="status"),
    sender: str | None = Query(None, max_length=150),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> MarketplaceImageListResponse:
    images = list_images(db, user_id=current_user.id, status_filter=status_filter, sender=sender)
    paid = sum(1 for image in images if image.status == "paid")
    return MarketplaceImageListResponse(
        items=[to_image_response(image) for image in images],
        paid_count=paid,
        unpaid_count=len(images) - paid,
    )


@router.get("/marketplace/senders", response_model=SenderListResponse)
async def list_senders_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> SenderListResponse:
    return SenderListResponse(senders=list_senders(db, user_id=current_user.id))


@router.get("/marketplace/images/{image_id}/download")
async def download_image_endpoint(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> RedirectResponse:
    url = download_url(db, image_id=image_id, user_id=current_user.id)
    return RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.delete("/marketplace/images/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_image_endpoint(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> None:
    delete_image(db, image_id=image_id, user_id=current_user.id)


@router.post("/marketplace/images/delete", response_model=DeleteResult)
async def delete_images_endpoint(
    payload: DeleteImagesRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> DeleteResult:
    return delete_images(db, image_ids=payload.image_ids, user_id=current_user.id)


@router.get("/marketplace/price", response_model=PriceResponse)
async def price_endpoint(db: Session = Depends(get_session)) -> PriceResponse:
    return PriceResponse(price=current_price(db))


@router.put("/marketplace/price", response_model=PriceResponse)
async def update_price_endpoint(
    payload: PriceUpdateRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_session),
) -> PriceResponse:
    return PriceResponse(price=set_price(db, payload.price))


@router.post("/marketplace/payments", response_model=PaymentStatusResponse, status_code=status.HTTP_201_CREATED)
async def initiate_payment_endpoint(
    payload: PaymentInitiateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PaymentStatusResponse:
    transaction = await initiate_payment(
        db,
        user=current_user,
        phone_number=payload.phone_number,
        image_ids=payload.image_ids,
    )
    return to_status_response(transaction)


@router.post("/marketplace/payments/callback")
async def payment_callback_endpoint(
    payload: dict[str, Any] = Body(...),
    token: str | None = Query(None),
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    """Result hook called by the gateway once the customer answers the prompt."""

    expected = optional_secret("MPESA_CALLBACK_TOKEN")
    if expected and not hmac.compare_digest(expected, token or ""):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid callback token")
    handle_callback(db, payload)
    return {"ResultCode": 0, "ResultDesc": "Accepted"}


@router.get("/marketplace/payments/{transaction_id}", response_model=PaymentStatusResponse)
async def payment_status_endpoint(
    transaction_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PaymentStatusResponse:
    return to_status_response(get_transaction(db, transaction_id=transaction_id, user_id=current_user.id))


@router.post("/marketplace/payments/{transaction_id}/cancel", response_model=PaymentStatusResponse)
async def cancel_payment_endpoint(
    transaction_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PaymentStatusResponse:
    return to_status_response(cancel_payment(db, transaction_id=transaction_id, user_id=current_user.id))


@router.get("/marketplace/purchases", response_model=PurchaseListResponse)
async def purchases_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PurchaseListResponse:
    return PurchaseListResponse(items=list_purchases(db, user_id=current_user.id))


@router.get("/collections", response_model=CollectionListResponse)
async def collections_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> CollectionListResponse:
    return CollectionListResponse(items=list_collections(db, user_id=current_user.id))


@router.delete("/collections/images/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection_image_endpoint(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> None:
    delete_image(db, image_id=image_id, user_id=current_user.id)
