"""Explore grid and tag sections built from community posts."""
from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..constants import TAG_SCAN_LIMIT, TOP_TAG_CATEGORIES
from ..models import Post, PostTag, User
from ..schemas import ExplorePost, TagCategory
from .formatting import format_count
from .post_service import normalize_tag


def to_explore_post(post: Post, author: User | None) -> ExplorePost | None:
    image = post.first_image
    if not image:
        return None
    likes = int(post.likes_count or 0)
    return ExplorePost(
        id=post.id,
        user_id=post.user_id,
        image_url=image,
        caption=post.caption or "",
        user_name=(author.display_name or author.username) if author else "Anonymous",
        avatar_url=author.avatar_url if author else None,
        location=post.location,
        likes=likes,
        likes_label=format_count(likes),
        comment_count=int(post.comments_count or 0),
        is_verified=bool(author.is_verified) if author else False,
        tags=[f"#{tag}" for tag in post.tags],
    )


def _explore_posts(rows: Iterable[tuple[Post, User]]) -> list[ExplorePost]:
    items: list[ExplorePost] = []
    for post, author in rows:
        item = to_explore_post(post, author)
        if item is not None:
            items.append(item)
    return items


def list_explore_page(db: Session, *, page: int = 0, page_size: int = 20) -> tuple[list[ExplorePost], bool]:
    """Return one page of image posts and whether another page may follow."""

    stmt = (
        select(Post, User)
        .outerjoin(User, Post.user_id == User.id)
        .options(selectinload(Post.tag_rows))
        .order_by(Post.created_at.desc())
        .offset(max(page, 0) * page_size)
        .limit(page_size)
    )
    rows = db.execute(stmt).all()
    return _explore_posts(rows), len(rows) >= page_size


def list_tag_categories(db: Session) -> list[TagCategory]:
    """Group the most recent tagged posts by tag, largest groups first."""

    tagged = select(PostTag.post_id).distinct()
    stmt = (
        select(Post, User)
        .outerjoin(User, Post.user_id == User.id)
        .where(Post.id.in_(tagged))
        .options(selectinload(Post.tag_rows))
        .order_by(Post.created_at.desc())
        .limit(TAG_SCAN_LIMIT)
    )

    groups: dict[str, list[ExplorePost]] = {}
    seen: dict[str, set[UUID]] = {}
    for post, author in db.execute(stmt).all():
        item = to_explore_post(post, author)
        if item is None:
            continue
        for tag in post.tags:
            name = f"#{normalize_tag(tag)}"
            if name == "#":
                continue
            members = seen.setdefault(name, set())
            if post.id in members:
                continue
            members.add(post.id)
            groups.setdefault(name, []).append(item)

    ranked = sorted(groups.items(), key=lambda entry: len(entry[1]), reverse=True)[:TOP_TAG_CATEGORIES]
    return [
        TagCategory(name=name, post_count=len(posts), post_count_label=format_count(len(posts)), posts=posts)
        for name, posts in ranked
    ]


def list_tag_posts(db: Session, tag: str) -> tuple[str, list[ExplorePost]]:
    normalized = normalize_tag(tag)
    if not normalized:
        return "#", []
    stmt = (
        select(Post, User)
        .join(PostTag, PostTag.post_id == Post.id)
        .outerjoin(User, Post.user_id == User.id)
        .where(PostTag.tag == normalized)
        .options(selectinload(Post.tag_rows))
        .order_by(Post.created_at.desc())
    )
    return f"#{normalized}", _explore_posts(db.execute(stmt).all())


__all__ = ["to_explore_post", "list_explore_page", "list_tag_categories", "list_tag_posts"]
