"""Image of the Day management."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import FeaturedItem
from ..schemas import FeaturedItemCreate, FeaturedItemUpdate

logger = logging.getLogger(__name__)


def _commit(db: Session, failure: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(failure)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure) from exc


def _get_item_or_404(db: Session, item_id: UUID) -> FeaturedItem:
    item = db.get(FeaturedItem, item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Featured item not found")
    return item


def get_active_featured(db: Session) -> FeaturedItem:
    stmt = (
        select(FeaturedItem)
        .where(FeaturedItem.is_active.is_(True))
        .order_by(FeaturedItem.created_at.desc())
        .limit(1)
    )
    item = db.scalar(stmt)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No featured image available")
    return item


def _deactivate_others(db: Session, keep_id: UUID | None = None) -> None:
    stmt = update(FeaturedItem).where(FeaturedItem.is_active.is_(True)).values(is_active=False)
    if keep_id is not None:
        stmt = stmt.where(FeaturedItem.id != keep_id)
    db.execute(stmt)


def set_featured(db: Session, payload: FeaturedItemCreate) -> FeaturedItem:
    """Publish a new Image of the Day; it replaces whatever was active."""

    _deactivate_others(db)
    item = FeaturedItem(
        image_url=payload.image_url.strip(),
        title=payload.title.strip(),
        author=payload.author.strip(),
        category=(payload.category or "").strip() or None,
        is_active=True,
        likes=0,
    )
    db.add(item)
    _commit(db, "Failed to save featured item")
    db.refresh(item)
    logger.info("Featured item %s is now active", item.id)
    return item


def update_featured(db: Session, item_id: UUID, payload: FeaturedItemUpdate) -> FeaturedItem:
    item = _get_item_or_404(db, item_id)
    changes = payload.model_dump(exclude_unset=True)
    for field in ("image_url", "title", "author"):
        value = changes.get(field)
        if value is not None:
            setattr(item, field, value.strip())
    if "category" in changes:
        item.category = (changes["category"] or "").strip() or None
    if changes.get("is_active") is True:
        _deactivate_others(db, keep_id=item.id)
        item.is_active = True
    elif changes.get("is_active") is False:
        item.is_active = False
    _commit(db, "Failed to update featured item")
    db.refresh(item)
    return item


def delete_featured(db: Session, item_id: UUID) -> None:
    item = _get_item_or_404(db, item_id)
    db.delete(item)
    _commit(db, "Failed to delete featured item")


def like_featured(db: Session, item_id: UUID) -> FeaturedItem:
    item = _get_item_or_404(db, item_id)
    item.likes = int(item.likes or 0) + 1
    _commit(db, "Failed to like featured item")
    db.refresh(item)
    return item


__all__ = ["get_active_featured", "set_featured", "update_featured", "delete_featured", "like_featured"]
