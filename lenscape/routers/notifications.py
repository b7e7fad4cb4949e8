"""Notification API routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import (
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
    NotificationSummaryResponse,
    NotificationUpdate,
    TopBarCountsResponse,
)
from ..services import (
    count_unread_notifications,
    create_notification,
    decode_access_token,
    delete_notification,
    get_current_user,
    list_notifications,
    mark_all_read,
    require_admin,
    unread_message_count,
    update_notification,
)
from ..services.notification_service import to_notification_response
from ..services.streams import notification_stream, serve_channel

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=NotificationListResponse)
async def list_my_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> NotificationListResponse:
    items = list_notifications(db, current_user.id)
    return NotificationListResponse(items=items, unread_count=sum(1 for item in items if not item.is_read))


@router.post("/", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def create_notification_endpoint(
    payload: NotificationCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session),
) -> NotificationResponse:
    record = create_notification(db, author_id=current_user.id, message=payload.message)
    return to_notification_response(record)


@router.patch("/{notification_id}", response_model=NotificationResponse)
async def update_notification_endpoint(
    notification_id: UUID,
    payload: NotificationUpdate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_session),
) -> NotificationResponse:
    record = update_notification(db, notification_id=notification_id, message=payload.message)
    return to_notification_response(record)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification_endpoint(
    notification_id: UUID,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_session),
) -> None:
    delete_notification(db, notification_id=notification_id)


@router.post("/mark-read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notifications_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> None:
    mark_all_read(db, current_user.id)


@router.get("/summary", response_model=NotificationSummaryResponse)
async def notification_summary_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> NotificationSummaryResponse:
    return NotificationSummaryResponse(unread_count=count_unread_notifications(db, current_user.id))


@router.get("/counts", response_model=TopBarCountsResponse)
async def top_bar_counts_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> TopBarCountsResponse:
    return TopBarCountsResponse(
        unread_messages=unread_message_count(db, current_user.id),
        unread_notifications=count_unread_notifications(db, current_user.id),
    )


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: str = Query(..., alias="token"),
) -> None:
    try:
        user_id = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await serve_channel(notification_stream, str(user_id), websocket)
