"""Community feed API routes."""
from __future__ import annotations

from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import MAX_POST_TAGS, SUGGESTED_TAGS
from ..database import get_session
from ..models import User
from ..schemas import (
    PostCommentCreate,
    PostCommentListResponse,
    PostCommentResponse,
    PostEngagementResponse,
    PostPageResponse,
    PostResponse,
    TagListResponse,
)
from ..services import (
    create_post_comment,
    create_post_record,
    delete_post_record,
    get_current_user,
    get_optional_user,
    get_post_record,
    get_profile,
    list_bookmark_records,
    list_feed_records,
    list_post_comments,
    toggle_bookmark,
    toggle_like,
)
from ..services.streams import publish_feed_event

router = APIRouter(prefix="/posts", tags=["posts"])


def _page(records: list[dict[str, Any]], page: int, page_size: int) -> PostPageResponse:
    return PostPageResponse(
        items=[PostResponse.model_validate(item) for item in records],
        page=page,
        has_more=len(records) >= page_size,
    )


async def _broadcast_engagement(snapshot: dict[str, Any]) -> None:
    await publish_feed_event(
        {
            "type": "post_engagement_updated",
            "post_id": str(snapshot["post_id"]),
            "likes_count": snapshot["likes_count"],
            "comments_count": snapshot["comments_count"],
        }
    )


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post_endpoint(
    caption: str = Form(...),
    location: str | None = Form(None),
    tags: Optional[List[str]] = Form(None),
    image_urls: Optional[List[str]] = Form(None),
    allow_comments: bool = Form(True),
    allow_likes: bool = Form(True),
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    """Create a post from uploaded photos and/or already hosted image URLs.

    Expects ``multipart/form-data``; ``tags`` may repeat or hold a comma
    separated list.
    """

    post = await create_post_record(
        db,
        user_id=current_user.id,
        caption=caption,
        files=files or [],
        image_urls=image_urls or [],
        location=location,
        tags=tags or [],
        allow_comments=allow_comments,
        allow_likes=allow_likes,
    )
    await publish_feed_event(
        {
            "type": "post_created",
            "post_id": str(post.id),
            "user_id": str(current_user.id),
            "created_at": post.created_at.isoformat() if post.created_at else None,
        }
    )
    return PostResponse.model_validate(get_post_record(db, post_id=post.id, viewer_id=current_user.id))


@router.get("/tags/suggested", response_model=TagListResponse)
async def suggested_tags_endpoint() -> TagListResponse:
    return TagListResponse(tags=list(SUGGESTED_TAGS), max_tags=MAX_POST_TAGS)


@router.get("/feed", response_model=PostPageResponse)
async def feed_endpoint(
    page: int = Query(0, ge=0),
    db: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_user),
) -> PostPageResponse:
    page_size = get_settings().feed_page_size
    viewer_id = current_user.id if current_user else None
    records = list_feed_records(db, viewer_id=viewer_id, page=page, page_size=page_size)
    return _page(records, page, page_size)


@router.get("/mine", response_model=PostPageResponse)
async def my_posts_endpoint(
    page: int = Query(0, ge=0),
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostPageResponse:
    page_size = get_settings().feed_page_size
    records = list_feed_records(db, viewer_id=current_user.id, author_id=current_user.id, page=page, page_size=page_size)
    return _page(records, page, page_size)


@router.get("/bookmarks", response_model=PostPageResponse)
async def bookmarks_endpoint(
    page: int = Query(0, ge=0),
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostPageResponse:
    page_size = get_settings().feed_page_size
    records = list_bookmark_records(db, viewer_id=current_user.id, page=page, page_size=page_size)
    return _page(records, page, page_size)


@router.get("/by-user/{username}", response_model=PostPageResponse)
async def posts_by_user_endpoint(
    username: str,
    page: int = Query(0, ge=0),
    db: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_user),
) -> PostPageResponse:
    author = get_profile(db, username)
    page_size = get_settings().feed_page_size
    viewer_id = current_user.id if current_user else None
    records = list_feed_records(db, viewer_id=viewer_id, author_id=author.id, page=page, page_size=page_size)
    return _page(records, page, page_size)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_user),
) -> PostResponse:
    viewer_id = current_user.id if current_user else None
    return PostResponse.model_validate(get_post_record(db, post_id=post_id, viewer_id=viewer_id))


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> None:
    delete_post_record(db, post_id=post_id, requester=current_user)
    await publish_feed_event({"type": "post_deleted", "post_id": str(post_id)})


@router.post("/{post_id}/like", response_model=PostEngagementResponse)
async def toggle_like_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostEngagementResponse:
    snapshot = toggle_like(db, post_id=post_id, user_id=current_user.id)
    await _broadcast_engagement(snapshot)
    return PostEngagementResponse(**snapshot)


@router.post("/{post_id}/bookmark", response_model=PostEngagementResponse)
async def toggle_bookmark_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostEngagementResponse:
    snapshot = toggle_bookmark(db, post_id=post_id, user_id=current_user.id)
    return PostEngagementResponse(**snapshot)


@router.get("/{post_id}/comments", response_model=PostCommentListResponse)
async def list_comments_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
) -> PostCommentListResponse:
    comments = list_post_comments(db, post_id)
    return PostCommentListResponse(items=[PostCommentResponse.model_validate(item) for item in comments])


@router.post("/{post_id}/comments", response_model=PostCommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment_endpoint(
    post_id: UUID,
    payload: PostCommentCreate,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostCommentResponse:
    comment = create_post_comment(
        db,
        post_id=post_id,
        user_id=current_user.id,
        content=payload.content,
        parent_id=payload.parent_id,
    )
    await publish_feed_event(
        {
            "type": "post_comment_created",
            "post_id": str(post_id),
            "comment": PostCommentResponse.model_validate(comment).model_dump(mode="json"),
        }
    )
    return PostCommentResponse.model_validate(comment)
