"""Broadcast announcements and per-user read receipts."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Notification, NotificationRead
from ..schemas import NotificationResponse
from .formatting import time_ago
from .streams import notification_stream, schedule_event

logger = logging.getLogger(__name__)


def _commit(db: Session, failure: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(failure)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure) from exc


def _clean_message(message: str) -> str:
    text = (message or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Notification message cannot be empty")
    return text


def _read_ids(db: Session, user_id: UUID) -> set[UUID]:
    stmt = select(NotificationRead.notification_id).where(NotificationRead.user_id == user_id)
    return set(db.scalars(stmt))


def to_notification_response(
    notification: Notification,
    *,
    is_read: bool = False,
    now: datetime | None = None,
) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        message=notification.message,
        created_by=notification.created_by,
        created_at=notification.created_at,
        is_read=is_read,
        time_ago=time_ago(notification.created_at, now=now),
    )


def list_notifications(db: Session, user_id: UUID, *, now: datetime | None = None) -> list[NotificationResponse]:
    """Return every announcement newest first with the reader's read flag."""

    read = _read_ids(db, user_id)
    stmt = select(Notification).order_by(Notification.created_at.desc())
    return [
        to_notification_response(item, is_read=item.id in read, now=now)
        for item in db.scalars(stmt)
    ]


def count_unread_notifications(db: Session, user_id: UUID) -> int:
    read_subquery = select(NotificationRead.notification_id).where(NotificationRead.user_id == user_id)
    stmt = select(func.count(Notification.id)).where(Notification.id.not_in(read_subquery))
    return int(db.scalar(stmt) or 0)


def mark_all_read(db: Session, user_id: UUID) -> int:
    """Record a receipt for every unread announcement; repeated calls are no-ops."""

    read_subquery = select(NotificationRead.notification_id).where(NotificationRead.user_id == user_id)
    unread_ids = list(db.scalars(select(Notification.id).where(Notification.id.not_in(read_subquery))))
    if not unread_ids:
        return 0

    now = datetime.now(timezone.utc)
    db.add_all(NotificationRead(notification_id=item, user_id=user_id, read_at=now) for item in unread_ids)
    try:
        db.commit()
    except IntegrityError:
        # Another tab marked the same rows; the receipts exist either way.
        db.rollback()
        return 0
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to mark notifications as read")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to mark notifications as read") from exc

    schedule_event(notification_stream, str(user_id), {"type": "notification.read_all", "unread_count": 0})
    return len(unread_ids)


def _broadcast(event_type: str, payload: dict[str, Any]) -> None:
    schedule_event(notification_stream, None, {"type": event_type, **payload})


def create_notification(db: Session, *, author_id: UUID, message: str) -> Notification:
    notification = Notification(message=_clean_message(message), created_by=author_id)
    db.add(notification)
    _commit(db, "Failed to create notification")
    db.refresh(notification)
    logger.info("Notification %s published by %s", notification.id, author_id)
    _broadcast(
        "notification.created",
        {"notification": to_notification_response(notification).model_dump(mode="json")},
    )
    return notification


def _get_notification_or_404(db: Session, notification_id: UUID) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


def update_notification(db: Session, *, notification_id: UUID, message: str) -> Notification:
    notification = _get_notification_or_404(db, notification_id)
    notification.message = _clean_message(message)
    _commit(db, "Failed to update notification")
    db.refresh(notification)
    _broadcast(
        "notification.updated",
        {"notification": to_notification_response(notification).model_dump(mode="json")},
    )
    return notification


def delete_notification(db: Session, *, notification_id: UUID) -> None:
    notification = _get_notification_or_404(db, notification_id)
    db.delete(notification)
    _commit(db, "Failed to delete notification")
    _broadcast("notification.deleted", {"notification_id": str(notification_id)})


def notify_user(user_id: UUID, payload: dict[str, Any]) -> None:
    """Push a direct event to one user's notification sockets."""

    schedule_event(notification_stream, str(user_id), payload)


__all__ = [
    "to_notification_response",
    "list_notifications",
    "count_unread_notifications",
    "mark_all_read",
    "create_notification",
    "update_notification",
    "delete_notification",
    "notify_user",
]
