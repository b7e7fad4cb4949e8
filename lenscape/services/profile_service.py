"""Profile lookup, editing, avatar storage and the admin user directory."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import MAX_AVATAR_BYTES, ROLE_ADMIN, ROLE_CLIENT, ROLE_DISPLAY_NAMES, ROLE_PHOTOGRAPHER, USER_SEARCH_LIMIT
from ..models import User
from ..schemas import ProfileResponse, ProfileUpdateRequest, UserAnalyticsResponse, UserSummary
from . import spaces_service
from .formatting import initials, role_display_name

logger = logging.getLogger(__name__)


def to_user_summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        username=user.username,
        display_name=user.display_name,
        email=user.email,
        user_type=user.user_type,
        role_display_name=role_display_name(user.user_type),
        avatar_url=user.avatar_url,
        is_verified=bool(user.is_verified),
        initials=initials(user.name_for_display),
    )


def to_profile_response(user: User) -> ProfileResponse:
    summary = to_user_summary(user)
    return ProfileResponse(
        **summary.model_dump(),
        full_name=user.full_name,
        bio=user.bio,
        is_admin=user.is_admin_user,
        created_at=user.created_at,
        last_active_at=user.last_active_at,
    )


def get_profile(db: Session, username: str) -> User:
    user = db.scalar(select(User).where(func.lower(User.username) == username.strip().lower()))
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def get_profile_by_id(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _commit(db: Session, user: User, failure: str) -> User:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s for user %s", failure, user.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure) from exc
    db.refresh(user)
    return user


def update_profile(db: Session, *, user_id: UUID, payload: ProfileUpdateRequest) -> User:
    """Apply the fields the client actually sent."""

    user = get_profile_by_id(db, user_id)
    update_data = payload.model_dump(exclude_unset=True)

    username = update_data.pop("username", None)
    if username is not None and username != user.username:
        taken = db.scalar(
            select(User.id).where(func.lower(User.username) == username.lower(), User.id != user.id).limit(1)
        )
        if taken is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken")
        user.username = username

    if "display_name" in update_data and update_data["display_name"] is not None:
        user.display_name = update_data["display_name"]

    if "bio" in update_data:
        bio = (update_data["bio"] or "").strip()
        user.bio = bio or None

    return _commit(db, user, "Failed to update profile")


async def upload_avatar(db: Session, *, user: User, file: UploadFile) -> User:
    if not spaces_service.is_image_upload(file):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please select an image file")

    if spaces_service.upload_size(file) > MAX_AVATAR_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image size must be less than 5MB")

    result = await spaces_service.store_upload(file, folder="avatars")
    previous_key = user.avatar_key
    user.avatar_url = result.url
    user.avatar_key = result.key
    _commit(db, user, "Failed to save avatar")

    if previous_key and previous_key != result.key:
        spaces_service.try_delete_file(previous_key)
    logger.info("Updated avatar for user %s", user.id)
    return user


def delete_avatar(db: Session, *, user: User) -> User:
    previous_key = user.avatar_key
    user.avatar_url = None
    user.avatar_key = None
    _commit(db, user, "Failed to remove avatar")
    spaces_service.try_delete_file(previous_key)
    return user


def search_users(db: Session, *, viewer_id: UUID, query: str) -> list[User]:
    term = (query or "").strip()
    if not term:
        return []
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    stmt = (
        select(User)
        .where(
            User.id != viewer_id,
            or_(
                func.lower(User.display_name).like(pattern, escape="\\"),
                func.lower(User.username).like(pattern, escape="\\"),
                func.lower(User.email).like(pattern, escape="\\"),
            ),
        )
        .order_by(User.display_name.asc(), User.username.asc())
        .limit(USER_SEARCH_LIMIT)
    )
    return list(db.scalars(stmt))


def list_users(db: Session, *, viewer_id: UUID) -> list[User]:
    stmt = select(User).where(User.id != viewer_id).order_by(User.display_name.asc(), User.username.asc())
    return list(db.scalars(stmt))


def user_analytics(db: Session, *, now: datetime | None = None) -> UserAnalyticsResponse:
    """Head counts for the admin dashboard; a missing role counts as client."""

    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=30)
    total = int(db.scalar(select(func.count(User.id))) or 0)
    recent = int(db.scalar(select(func.count(User.id)).where(User.created_at >= cutoff)) or 0)
    verified = int(db.scalar(select(func.count(User.id)).where(User.is_verified.is_(True))) or 0)

    per_role = {ROLE_CLIENT: 0, ROLE_PHOTOGRAPHER: 0, ROLE_ADMIN: 0}
    rows = db.execute(select(User.user_type, func.count(User.id)).group_by(User.user_type)).all()
    for role, count in rows:
        key = (role or ROLE_CLIENT).lower()
        if key not in per_role:
            key = ROLE_CLIENT
        per_role[key] += int(count)

    return UserAnalyticsResponse(
        total_users=total,
        new_users_last_30_days=recent,
        clients=per_role[ROLE_CLIENT],
        photographers=per_role[ROLE_PHOTOGRAPHER],
        admins=per_role[ROLE_ADMIN],
        verified_users=verified,
    )


def update_user_role(db: Session, *, user_id: UUID, role: str) -> User:
    normalized = (role or "").strip().lower()
    if normalized not in ROLE_DISPLAY_NAMES:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown role")
    user = get_profile_by_id(db, user_id)
    user.user_type = normalized
    updated = _commit(db, user, "Failed to update user role")
    logger.info("Changed role of user %s to %s", user.id, normalized)
    return updated


__all__ = [
    "to_user_summary",
    "to_profile_response",
    "get_profile",
    "get_profile_by_id",
    "update_profile",
    "upload_avatar",
    "delete_avatar",
    "search_users",
    "list_users",
    "user_analytics",
    "update_user_role",
]
