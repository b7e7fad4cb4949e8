"""Explore grid, tag sections and the Image of the Day."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_session
from ..models import User
from ..schemas import (
    ExplorePageResponse,
    FeaturedItemCreate,
    FeaturedItemResponse,
    FeaturedItemUpdate,
    TagCategoryListResponse,
    TagPostsResponse,
)
from ..services import (
    delete_featured,
    get_active_featured,
    like_featured,
    list_explore_page,
    list_tag_categories,
    list_tag_posts,
    require_admin,
    set_featured,
    update_featured,
)

router = APIRouter(tags=["explore"])


@router.get("/explore", response_model=ExplorePageResponse)
async def explore_endpoint(
    page: int = Query(0, ge=0),
    db: Session = Depends(get_session),
) -> ExplorePageResponse:
    items, has_more = list_explore_page(db, page=page, page_size=get_settings().explore_page_size)
    return ExplorePageResponse(items=items, page=page, has_more=has_more)


@router.get("/explore/tags", response_model=TagCategoryListResponse)
async def tag_categories_endpoint(db: Session = Depends(get_session)) -> TagCategoryListResponse:
    return TagCategoryListResponse(items=list_tag_categories(db))


@router.get("/explore/tags/{tag}", response_model=TagPostsResponse)
async def tag_posts_endpoint(tag: str, db: Session = Depends(get_session)) -> TagPostsResponse:
    name, items = list_tag_posts(db, tag)
    return TagPostsResponse(tag=name, items=items)


@router.get("/featured", response_model=FeaturedItemResponse)
async def featured_endpoint(db: Session = Depends(get_session)) -> FeaturedItemResponse:
    return FeaturedItemResponse.model_validate(get_active_featured(db))


@router.post("/featured", response_model=FeaturedItemResponse, status_code=status.HTTP_201_CREATED)
async def create_featured_endpoint(
    payload: FeaturedItemCreate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_session),
) -> FeaturedItemResponse:
    return FeaturedItemResponse.model_validate(set_featured(db, payload))


@router.patch("/featured/{item_id}", response_model=FeaturedItemResponse)
async def update_featured_endpoint(
    item_id: UUID,
    payload: FeaturedItemUpdate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_session),
) -> FeaturedItemResponse:
    return FeaturedItemResponse.model_validate(update_featured(db, item_id, payload))


@router.delete("/featured/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_featured_endpoint(
    item_id: UUID,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_session),
) -> None:
    delete_featured(db, item_id)


@router.post("/featured/{item_id}/like", response_model=FeaturedItemResponse)
async def like_featured_endpoint(item_id: UUID, db: Session = Depends(get_session)) -> FeaturedItemResponse:
    return FeaturedItemResponse.model_validate(like_featured(db, item_id))
