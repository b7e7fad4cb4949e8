"""Profile API routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import (
    AvatarResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    RoleUpdateRequest,
    UserAnalyticsResponse,
    UserListResponse,
)
from ..services import (
    delete_avatar,
    get_current_user,
    get_profile,
    get_profile_by_id,
    list_users,
    require_admin,
    search_users,
    update_profile,
    update_user_role,
    upload_avatar,
    user_analytics,
)
from ..services.profile_service import to_profile_response, to_user_summary

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileResponse)
async def my_profile(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    return to_profile_response(current_user)


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    payload: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> ProfileResponse:
    updated = update_profile(db, user_id=current_user.id, payload=payload)
    return to_profile_response(updated)


@router.post("/me/avatar", response_model=AvatarResponse)
async def upload_my_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> AvatarResponse:
    user = db.merge(current_user)
    updated = await upload_avatar(db, user=user, file=file)
    return AvatarResponse(avatar_url=updated.avatar_url, message="Profile image updated successfully")


@router.delete("/me/avatar", response_model=AvatarResponse)
async def delete_my_avatar(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> AvatarResponse:
    user = db.merge(current_user)
    delete_avatar(db, user=user)
    return AvatarResponse(avatar_url=None, message="Profile image removed")


@router.get("/search", response_model=UserListResponse)
async def search_profiles(
    q: str = Query("", max_length=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> UserListResponse:
    users = search_users(db, viewer_id=current_user.id, query=q)
    return UserListResponse(items=[to_user_summary(user) for user in users])


@router.get("/users", response_model=UserListResponse)
async def list_profiles(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> UserListResponse:
    users = list_users(db, viewer_id=current_user.id)
    return UserListResponse(items=[to_user_summary(user) for user in users])


@router.get("/analytics", response_model=UserAnalyticsResponse)
async def profile_analytics(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_session),
) -> UserAnalyticsResponse:
    return user_analytics(db)


@router.patch("/by-id/{user_id}/role", response_model=ProfileResponse)
async def change_user_role(
    user_id: UUID,
    payload: RoleUpdateRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_session),
) -> ProfileResponse:
    return to_profile_response(update_user_role(db, user_id=user_id, role=payload.role))


@router.get("/by-id/{user_id}", response_model=ProfileResponse)
async def retrieve_profile_by_id(
    user_id: UUID,
    db: Session = Depends(get_session),
) -> ProfileResponse:
    return to_profile_response(get_profile_by_id(db, user_id))


@router.get("/{username}", response_model=ProfileResponse)
async def retrieve_profile(
    username: str,
    db: Session = Depends(get_session),
) -> ProfileResponse:
    return to_profile_response(get_profile(db, username))
