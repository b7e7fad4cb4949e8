"""Business logic for community posts, likes, bookmarks and comments."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence
from uuid import UUID

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..constants import MAX_POST_IMAGES, MAX_POST_TAGS
from ..models import Bookmark, Post, PostComment, PostLike, PostTag, User
from . import spaces_service

logger = logging.getLogger(__name__)


def normalize_tag(raw: str) -> str:
    return (raw or "").strip().lstrip("#").strip().lower()


def normalize_tags(raw_tags: Iterable[str]) -> list[str]:
    """Trim, lowercase and de-duplicate tags, preserving the order they were given."""

    seen: dict[str, None] = {}
    for raw in raw_tags:
        # Form posts may send one comma separated field.
        for piece in (raw or "").split(","):
            tag = normalize_tag(piece)
            if tag:
                seen.setdefault(tag, None)
    tags = list(seen)
    if len(tags) > MAX_POST_TAGS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A post can have at most {MAX_POST_TAGS} tags",
        )
    return tags


def _get_post_or_404(db: Session, post_id: UUID) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def _commit(db: Session, failure: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(failure)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure) from exc


async def create_post_record(
    db: Session,
    *,
    user_id: UUID,
    caption: str,
    files: Sequence[UploadFile] = (),
    image_urls: Sequence[str] = (),
    location: str | None = None,
    tags: Iterable[str] = (),
    allow_comments: bool = True,
    allow_likes: bool = True,
) -> Post:
    """Create and persist a new post for the given user."""

    text = (caption or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Caption cannot be empty")

    urls = [url.strip() for url in image_urls if url and url.strip()]
    uploads = [item for item in files if item is not None and item.filename]
    if not urls and not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please add at least one image")
    if len(urls) + len(uploads) > MAX_POST_IMAGES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A post can have at most {MAX_POST_IMAGES} images",
        )
    for upload in uploads:
        if not spaces_service.is_image_upload(upload):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only image files can be posted")

    normalized_tags = normalize_tags(tags)

    for upload in uploads:
        result = await spaces_service.store_upload(upload, folder="posts")
        urls.append(result.url)

    post = Post(
        user_id=user_id,
        caption=text,
        images=urls,
        location=(location or "").strip() or None,
        allow_comments=allow_comments,
        allow_likes=allow_likes,
    )
    post.tag_rows = [PostTag(tag=tag, position=index) for index, tag in enumerate(normalized_tags)]
    db.add(post)
    _commit(db, "Failed to create post")
    db.refresh(post)
    logger.info("User %s created post %s", user_id, post.id)
    return post


def _viewer_flags(viewer_id: UUID | None):
    liked = (
        select(func.count(PostLike.id))
        .where(PostLike.post_id == Post.id, PostLike.user_id == viewer_id)
        .correlate(Post)
        .scalar_subquery()
    )
    bookmarked = (
        select(func.count(Bookmark.id))
        .where(Bookmark.post_id == Post.id, Bookmark.user_id == viewer_id)
        .correlate(Post)
        .scalar_subquery()
    )
    return liked, bookmarked


def _to_record(post: Post, author: User, liked: Any, bookmarked: Any) -> dict[str, Any]:
    return {
        "id": post.id,
        "user_id": post.user_id,
        "caption": post.caption,
        "images": list(post.images or []),
        "location": post.location,
        "tags": post.tags,
        "likes_count": int(post.likes_count or 0),
        "comments_count": int(post.comments_count or 0),
        "is_featured": bool(post.is_featured),
        "allow_comments": bool(post.allow_comments),
        "allow_likes": bool(post.allow_likes),
        "created_at": post.created_at,
        "username": author.username,
        "display_name": author.display_name,
        "avatar_url": author.avatar_url,
        "user_type": author.user_type,
        "is_verified": bool(author.is_verified),
        "is_liked": bool(liked),
        "is_bookmarked": bool(bookmarked),
    }


def list_feed_records(
    db: Session,
    *,
    viewer_id: UUID | None,
    page: int = 0,
    page_size: int = 10,
    author_id: UUID | None = None,
) -> list[dict[str, Any]]:
    """Return one page of posts, newest first, optionally filtered by author."""

    liked, bookmarked = _viewer_flags(viewer_id)
    stmt = (
        select(Post, User, liked, bookmarked)
        .join(User, Post.user_id == User.id)
        .options(selectinload(Post.tag_rows))
        .order_by(Post.created_at.desc())
        .offset(max(page, 0) * page_size)
        .limit(page_size)
    )
    if author_id is not None:
        stmt = stmt.where(Post.user_id == author_id)
    return [_to_record(*row) for row in db.execute(stmt).all()]


def list_bookmark_records(db: Session, *, viewer_id: UUID, page: int = 0, page_size: int = 10) -> list[dict[str, Any]]:
    """Posts the viewer bookmarked, most recently bookmarked first."""

    liked, bookmarked = _viewer_flags(viewer_id)
    stmt = (
        select(Post, User, liked, bookmarked)
        .join(Bookmark, Bookmark.post_id == Post.id)
        .join(User, Post.user_id == User.id)
        .where(Bookmark.user_id == viewer_id)
        .options(selectinload(Post.tag_rows))
        .order_by(Bookmark.created_at.desc())
        .offset(max(page, 0) * page_size)
        .limit(page_size)
    )
    return [_to_record(*row) for row in db.execute(stmt).all()]


def get_post_record(db: Session, *, post_id: UUID, viewer_id: UUID | None) -> dict[str, Any]:
    liked, bookmarked = _viewer_flags(viewer_id)
    row = db.execute(
        select(Post, User, liked, bookmarked).join(User, Post.user_id == User.id).where(Post.id == post_id)
    ).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return _to_record(*row)


def get_post_engagement_snapshot(db: Session, post_id: UUID, viewer_id: UUID | None) -> dict[str, Any]:
    post = _get_post_or_404(db, post_id)
    is_liked = False
    is_bookmarked = False
    if viewer_id is not None:
        is_liked = (
            db.scalar(select(PostLike.id).where(PostLike.post_id == post_id, PostLike.user_id == viewer_id).limit(1))
            is not None
        )
        is_bookmarked = (
            db.scalar(select(Bookmark.id).where(Bookmark.post_id == post_id, Bookmark.user_id == viewer_id).limit(1))
            is not None
        )
    return {
        "post_id": post.id,
        "likes_count": int(post.likes_count or 0),
        "comments_count": int(post.comments_count or 0),
        "is_liked": is_liked,
        "is_bookmarked": is_bookmarked,
    }


def toggle_like(db: Session, *, post_id: UUID, user_id: UUID) -> dict[str, Any]:
    post = _get_post_or_404(db, post_id)
    if not post.allow_likes:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Likes are disabled for this post")

    existing = db.scalar(select(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id))
    if existing is not None:
        db.delete(existing)
        post.likes_count = max(int(post.likes_count or 0) - 1, 0)
    else:
        db.add(PostLike(post_id=post_id, user_id=user_id))
        post.likes_count = int(post.likes_count or 0) + 1

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Like already recorded") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update like") from exc

    return get_post_engagement_snapshot(db, post_id, user_id)


def toggle_bookmark(db: Session, *, post_id: UUID, user_id: UUID) -> dict[str, Any]:
    _get_post_or_404(db, post_id)
    existing = db.scalar(select(Bookmark).where(Bookmark.post_id == post_id, Bookmark.user_id == user_id))
    if existing is not None:
        db.delete(existing)
    else:
        db.add(Bookmark(post_id=post_id, user_id=user_id))

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Bookmark already recorded") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update bookmark") from exc

    return get_post_engagement_snapshot(db, post_id, user_id)


def _comment_record(comment: PostComment) -> dict[str, Any]:
    author = comment.user
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "username": author.username if author else None,
        "avatar_url": author.avatar_url if author else None,
        "content": comment.content,
        "parent_id": comment.parent_id,
        "created_at": comment.created_at,
        "replies": [],
    }


def list_post_comments(db: Session, post_id: UUID) -> list[dict[str, Any]]:
    """Comments oldest first, with replies nested under their parent."""

    _get_post_or_404(db, post_id)
    stmt = (
        select(PostComment)
        .where(PostComment.post_id == post_id)
        .options(selectinload(PostComment.user))
        .order_by(PostComment.created_at.asc())
    )
    records: dict[UUID, dict[str, Any]] = {}
    roots: list[dict[str, Any]] = []
    for comment in db.scalars(stmt):
        record = _comment_record(comment)
        records[comment.id] = record
        parent = records.get(comment.parent_id) if comment.parent_id else None
        if parent is None:
            roots.append(record)
        else:
            parent["replies"].append(record)
    return roots


def create_post_comment(
    db: Session,
    *,
    post_id: UUID,
    user_id: UUID,
    content: str,
    parent_id: UUID | None = None,
) -> dict[str, Any]:
    post = _get_post_or_404(db, post_id)
    if not post.allow_comments:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Comments are disabled for this post")

    text = (content or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Comment cannot be empty")

    if parent_id is not None:
        parent = db.get(PostComment, parent_id)
        if parent is None or parent.post_id != post_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent comment not found")

    comment = PostComment(post_id=post_id, user_id=user_id, content=text, parent_id=parent_id)
    db.add(comment)
    post.comments_count = int(post.comments_count or 0) + 1
    _commit(db, "Failed to add comment")
    db.refresh(comment)
    return _comment_record(comment)


def delete_post_record(db: Session, *, post_id: UUID, requester: User) -> None:
    post = _get_post_or_404(db, post_id)
    if post.user_id != requester.id and not requester.is_admin_user:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this post")
    stored_keys = [spaces_service.key_from_url(url) for url in (post.images or [])]
    db.delete(post)
    _commit(db, "Failed to delete post")
    for key in stored_keys:
        spaces_service.try_delete_file(key)
    logger.info("Post %s deleted by %s", post_id, requester.id)


__all__ = [
    "normalize_tag",
    "normalize_tags",
    "create_post_record",
    "list_feed_records",
    "list_bookmark_records",
    "get_post_record",
    "get_post_engagement_snapshot",
    "toggle_like",
    "toggle_bookmark",
    "list_post_comments",
    "create_post_comment",
    "delete_post_record",
]
