"""Integration tests for the explore grid, tag sections and the Image of the Day."""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_lenscape.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from lenscape.database import Base, SessionLocal, engine  # noqa: E402
from lenscape.main import app  # noqa: E402
from lenscape.models import FeaturedItem, Post, PostTag, User  # noqa: E402
from lenscape.services import get_current_user  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    yield


@pytest.fixture
def user_factory() -> Callable[..., User]:
    def _factory(username: str, **fields) -> User:
        with SessionLocal() as session:
            user = User(username=username, hashed_password="test-hash", **fields)
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
    return _factory


@pytest.fixture
def post_factory() -> Callable[..., Post]:
    def _factory(author: User, caption: str, *, tags=(), images=None, minutes_ago: int = 0, likes: int = 0) -> Post:
        with SessionLocal() as session:
            post = Post(
                user_id=author.id,
                caption=caption,
                images=[f"https://cdn.example.test/{caption}.jpg"] if images is None else images,
                likes_count=likes,
                created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
            )
            post.tag_rows = [PostTag(tag=tag, position=index) for index, tag in enumerate(tags)]
            session.add(post)
            session.commit()
            session.refresh(post)
            return post
    return _factory


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _act_as(user: User) -> None:
    app.dependency_overrides[get_current_user] = lambda: user


def test_explore_grid_uses_first_image_and_skips_imageless_posts(client, user_factory, post_factory):
    author = user_factory("grid_author", display_name="Grid Author", is_verified=True)
    post_factory(author, "older", images=["https://cdn.example.test/first.jpg", "https://cdn.example.test/second.jpg"], minutes_ago=10, likes=1500)
    post_factory(author, "empty", images=[], minutes_ago=5)
    post_factory(author, "newest", tags=["street"])

    response = client.get("/explore")
    assert response.status_code == 200
    body = response.json()
    assert body["page"] == 0
    assert body["has_more"] is False
    assert [item["caption"] for item in body["items"]] == ["newest", "older"]
    older = body["items"][1]
    assert older["image_url"] == "https://cdn.example.test/first.jpg"
    assert older["user_name"] == "Grid Author"
    assert older["likes_label"] == "1.5k"
    assert older["is_verified"] is True
    assert body["items"][0]["tags"] == ["#street"]


def test_tag_categories_ranked_by_post_count(client, user_factory, post_factory):
    author = user_factory("tagger")
    post_factory(author, "one", tags=["nature", "sunset"])
    post_factory(author, "two", tags=["nature"])
    post_factory(author, "three", tags=["nature", "urban"])
    post_factory(author, "four", tags=["urban"])
    post_factory(author, "untagged")
    post_factory(author, "imageless", tags=["nature"], images=[])

    response = client.get("/explore/tags")
    assert response.status_code == 200
    categories = response.json()["items"]
    assert [category["name"] for category in categories][:2] == ["#nature", "#urban"]
    nature = categories[0]
    assert nature["post_count"] == 3
    assert nature["post_count_label"] == "3"
    assert {post["caption"] for post in nature["posts"]} == {"one", "two", "three"}
    assert {category["name"] for category in categories} == {"#nature", "#urban", "#sunset"}


def test_tag_posts_accepts_hash_prefix(client, user_factory, post_factory):
    author = user_factory("tag_page_author")
    post_factory(author, "older_macro", tags=["macro"], minutes_ago=3)
    post_factory(author, "newer_macro", tags=["macro"])
    post_factory(author, "portrait_only", tags=["portrait"])

    response = client.get("/explore/tags/%23Macro")
    assert response.status_code == 200
    body = response.json()
    assert body["tag"] == "#macro"
    assert [item["caption"] for item in body["items"]] == ["newer_macro", "older_macro"]


def test_featured_lifecycle(client, user_factory):
    assert client.get("/featured").status_code == 404

    admin = user_factory("curator", user_type="admin")
    _act_as(admin)

    first = client.post(
        "/featured",
        json={"image_url": "https://cdn.example.test/f1.jpg", "title": "Dawn", "author": "Kamau", "category": "Landscape"},
    )
    assert first.status_code == 201
    second = client.post(
        "/featured",
        json={"image_url": "https://cdn.example.test/f2.jpg", "title": "Dusk", "author": "Achieng"},
    )
    assert second.status_code == 201

    active = client.get("/featured").json()
    assert active["title"] == "Dusk"
    with SessionLocal() as session:
        assert session.query(FeaturedItem).filter(FeaturedItem.is_active.is_(True)).count() == 1

    liked = client.post(f"/featured/{active['id']}/like")
    assert liked.json()["likes"] == 1

    reactivated = client.patch(f"/featured/{first.json()['id']}", json={"is_active": True, "title": "Dawn II"})
    assert reactivated.status_code == 200
    assert client.get("/featured").json()["title"] == "Dawn II"

    assert client.delete(f"/featured/{first.json()['id']}").status_code == 204
    assert client.get("/featured").status_code == 404


def test_featured_writes_require_admin(client, user_factory):
    _act_as(user_factory("visitor"))
    response = client.post(
        "/featured",
        json={"image_url": "https://cdn.example.test/f.jpg", "title": "Nope", "author": "Someone"},
    )
    assert response.status_code == 403
