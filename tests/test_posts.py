"""Integration tests for the community feed, engagement toggles and comments."""
from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_lenscape.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from lenscape.database import Base, SessionLocal, engine  # noqa: E402
from lenscape.main import app  # noqa: E402
from lenscape.models import Post, PostLike, PostTag, User  # noqa: E402
from lenscape.services import create_access_token, get_current_user, get_optional_user, spaces_service  # noqa: E402
from lenscape.services.post_service import normalize_tags  # noqa: E402


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
    def _factory(
        author: User,
        caption: str = "Golden hour",
        *,
        tags=(),
        images=("https://cdn.example.test/posts/a.jpg",),
        minutes_ago: int = 0,
        **fields,
    ) -> Post:
        with SessionLocal() as session:
            post = Post(
                user_id=author.id,
                caption=caption,
                images=list(images),
                created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
                **fields,
            )
            post.tag_rows = [PostTag(tag=tag, position=index) for index, tag in enumerate(tags)]
            session.add(post)
            session.commit()
            session.refresh(post)
            return post
    return _factory


@pytest.fixture
def authed_client() -> Iterator[Callable[[User], TestClient]]:
    with TestClient(app) as client:
        def _with_user(user: User) -> TestClient:
            def _override() -> User:
                return user
            app.dependency_overrides[get_current_user] = _override
            app.dependency_overrides[get_optional_user] = _override
            return client
        yield _with_user
    app.dependency_overrides.clear()


def test_normalize_tags_trims_dedupes_and_caps():
    assert normalize_tags(["#Nature", " nature ", "street,#URBAN", ""]) == ["nature", "street", "urban"]
    with pytest.raises(HTTPException) as excinfo:
        normalize_tags([f"tag{i}" for i in range(11)])
    assert excinfo.value.status_code == 400


def test_create_post_with_upload_and_urls(authed_client, user_factory, monkeypatch):
    uploaded_folders: list[str] = []

    async def _fake_upload(file, *, folder: str = "uploads", client=None):
        uploaded_folders.append(folder)
        return spaces_service.SpacesUploadResult(
            url=f"https://cdn.example.test/{folder}/{file.filename}",
            key=f"{folder}/{file.filename}",
            bucket="lenscape-test",
            content_type=file.content_type,
        )

    monkeypatch.setattr(spaces_service, "upload_file_to_spaces", _fake_upload)
    author = user_factory("lens_author", display_name="Lens Author", is_verified=True)
    client = authed_client(author)

    response = client.post(
        "/posts/",
        data={
            "caption": "  Rift Valley sunrise ",
            "location": "Naivasha",
            "tags": ["#Landscape", "sunrise, landscape"],
            "image_urls": ["https://cdn.example.test/hosted/first.jpg"],
            "allow_comments": "false",
        },
        files=[("files", ("valley.jpg", b"jpeg-bytes", "image/jpeg"))],
    )
    assert response.status_code == 201
    body = response.json()
    assert body["caption"] == "Rift Valley sunrise"
    assert body["images"] == [
        "https://cdn.example.test/hosted/first.jpg",
        "https://cdn.example.test/posts/valley.jpg",
    ]
    assert body["tags"] == ["landscape", "sunrise"]
    assert body["allow_comments"] is False
    assert body["allow_likes"] is True
    assert body["username"] == "lens_author"
    assert body["is_verified"] is True
    assert uploaded_folders == ["posts"]


def test_create_post_validation(authed_client, user_factory):
    client = authed_client(user_factory("validator"))

    no_image = client.post("/posts/", data={"caption": "Words only"})
    assert no_image.status_code == 400

    blank_caption = client.post(
        "/posts/",
        data={"caption": "   ", "image_urls": ["https://cdn.example.test/x.jpg"]},
    )
    assert blank_caption.status_code == 422

    too_many_tags = client.post(
        "/posts/",
        data={
            "caption": "Tagged",
            "image_urls": ["https://cdn.example.test/x.jpg"],
            "tags": ",".join(f"t{i}" for i in range(11)),
        },
    )
    assert too_many_tags.status_code == 400


def test_suggested_tags():
    with TestClient(app) as client:
        response = client.get("/posts/tags/suggested")
    assert response.status_code == 200
    body = response.json()
    assert body["max_tags"] == 10
    assert body["tags"][0] == "nature"
    assert len(body["tags"]) == 15


def test_feed_pages_newest_first_with_viewer_flags(authed_client, user_factory, post_factory):
    author = user_factory("feed_author")
    viewer = user_factory("feed_viewer")
    posts = [post_factory(author, f"Post {index}", minutes_ago=index) for index in range(12)]

    with SessionLocal() as session:
        session.add(PostLike(post_id=posts[0].id, user_id=viewer.id))
        session.commit()

    client = authed_client(viewer)
    first = client.get("/posts/feed")
    assert first.status_code == 200
    first_body = first.json()
    assert [item["caption"] for item in first_body["items"]] == [f"Post {index}" for index in range(10)]
    assert first_body["has_more"] is True
    assert first_body["items"][0]["is_liked"] is True
    assert first_body["items"][1]["is_liked"] is False

    second = client.get("/posts/feed", params={"page": 1}).json()
    assert [item["caption"] for item in second["items"]] == ["Post 10", "Post 11"]
    assert second["has_more"] is False


def test_feed_is_public(user_factory, post_factory):
    post_factory(user_factory("public_author"), "Open to all")
    with TestClient(app) as client:
        response = client.get("/posts/feed")
    assert response.status_code == 200
    assert response.json()["items"][0]["is_liked"] is False


def test_toggle_like_keeps_count_in_step(authed_client, user_factory, post_factory):
    post = post_factory(user_factory("liked_author"))
    client = authed_client(user_factory("fan"))

    liked = client.post(f"/posts/{post.id}/like")
    assert liked.status_code == 200
    assert liked.json()["likes_count"] == 1
    assert liked.json()["is_liked"] is True

    unliked = client.post(f"/posts/{post.id}/like").json()
    assert unliked["likes_count"] == 0
    assert unliked["is_liked"] is False

    with SessionLocal() as session:
        assert session.query(PostLike).count() == 0


def test_like_refused_when_disabled(authed_client, user_factory, post_factory):
    post = post_factory(user_factory("quiet_author"), allow_likes=False)
    client = authed_client(user_factory("eager_fan"))
    assert client.post(f"/posts/{post.id}/like").status_code == 403


def test_bookmarks_listed_by_bookmark_time(authed_client, user_factory, post_factory):
    author = user_factory("bookmarked_author")
    older = post_factory(author, "Older", minutes_ago=30)
    newer = post_factory(author, "Newer", minutes_ago=5)
    client = authed_client(user_factory("collector"))

    assert client.post(f"/posts/{newer.id}/bookmark").json()["is_bookmarked"] is True
    assert client.post(f"/posts/{older.id}/bookmark").json()["is_bookmarked"] is True

    saved = client.get("/posts/bookmarks").json()["items"]
    assert [item["caption"] for item in saved] == ["Older", "Newer"]
    assert all(item["is_bookmarked"] for item in saved)

    assert client.post(f"/posts/{older.id}/bookmark").json()["is_bookmarked"] is False
    assert [item["caption"] for item in client.get("/posts/bookmarks").json()["items"]] == ["Newer"]


def test_bookmarks_and_feed_flags_with_bearer_token(user_factory, post_factory):
    post = post_factory(user_factory("token_author"), "Saved with a token")
    reader = user_factory("token_reader")
    headers = {"Authorization": f"Bearer {create_access_token(reader.id)}"}

    with TestClient(app) as client:
        assert client.post(f"/posts/{post.id}/bookmark", headers=headers).status_code == 200
        assert client.post(f"/posts/{post.id}/like", headers=headers).status_code == 200

        saved = client.get("/posts/bookmarks", headers=headers)
        assert saved.status_code == 200
        assert [item["caption"] for item in saved.json()["items"]] == ["Saved with a token"]
        assert saved.json()["items"][0]["is_liked"] is True

        feed = client.get("/posts/feed", headers=headers).json()["items"]
        assert feed[0]["is_liked"] is True
        assert feed[0]["is_bookmarked"] is True


def test_threaded_comments(authed_client, user_factory, post_factory):
    post = post_factory(user_factory("commented_author"))
    client = authed_client(user_factory("commenter"))

    root = client.post(f"/posts/{post.id}/comments", json={"content": "Stunning light"})
    assert root.status_code == 201
    reply = client.post(
        f"/posts/{post.id}/comments",
        json={"content": "Agreed", "parent_id": root.json()["id"]},
    )
    assert reply.status_code == 201

    listing = client.get(f"/posts/{post.id}/comments").json()["items"]
    assert len(listing) == 1
    assert listing[0]["content"] == "Stunning light"
    assert listing[0]["username"] == "commenter"
    assert [item["content"] for item in listing[0]["replies"]] == ["Agreed"]

    assert client.get(f"/posts/{post.id}").json()["comments_count"] == 2


def test_comments_refused_when_disabled(authed_client, user_factory, post_factory):
    post = post_factory(user_factory("closed_author"), allow_comments=False)
    client = authed_client(user_factory("chatty"))
    assert client.post(f"/posts/{post.id}/comments", json={"content": "Hello"}).status_code == 403


def test_my_posts_and_posts_by_user(authed_client, user_factory, post_factory):
    me = user_factory("mine_owner")
    other = user_factory("someone_else")
    post_factory(me, "Mine")
    post_factory(other, "Theirs")
    client = authed_client(me)

    assert [item["caption"] for item in client.get("/posts/mine").json()["items"]] == ["Mine"]
    assert [item["caption"] for item in client.get("/posts/by-user/SOMEONE_ELSE").json()["items"]] == ["Theirs"]
    assert client.get("/posts/by-user/ghost").status_code == 404


def test_delete_post_author_or_admin_only(authed_client, user_factory, post_factory):
    author = user_factory("deleting_author")
    stranger = user_factory("stranger")
    admin = user_factory("moderator", is_admin=True)
    first = post_factory(author, "First")
    second = post_factory(author, "Second")

    assert authed_client(stranger).delete(f"/posts/{first.id}").status_code == 403
    assert authed_client(author).delete(f"/posts/{first.id}").status_code == 204
    assert authed_client(admin).delete(f"/posts/{second.id}").status_code == 204

    with SessionLocal() as session:
        assert session.query(Post).count() == 0

    assert authed_client(author).get(f"/posts/{first.id}").status_code == 404


def test_delete_post_removes_bucket_photos(authed_client, user_factory, post_factory, monkeypatch):
    config = spaces_service.SpacesConfig(
        key="k",
        secret="s",
        region="fra1",
        bucket="lenscape-media",
        public_endpoint="https://media.example.test",
    )
    deleted: list[str] = []
    monkeypatch.setattr(spaces_service, "load_spaces_config", lambda: config)
    monkeypatch.setattr(spaces_service, "try_delete_file", lambda key: deleted.append(key) if key else None)

    author = user_factory("tidy_author")
    post = post_factory(
        author,
        images=("https://media.example.test/posts/abc.jpg", "https://elsewhere.example.test/posts/x.jpg"),
    )

    assert authed_client(author).delete(f"/posts/{post.id}").status_code == 204
    assert deleted == ["posts/abc.jpg"]


def test_feed_socket_announces_new_posts(authed_client, user_factory):
    author = user_factory("live_author")
    client = authed_client(author)

    with client.websocket_connect("/ws/feed") as websocket:
        websocket.send_text(json.dumps({"type": "hello"}))
        assert websocket.receive_json() == {"type": "ready"}
        websocket.send_text("ping")
        assert websocket.receive_json() == {"type": "pong"}

        created = client.post(
            "/posts/",
            data={"caption": "Live from Lamu", "image_urls": ["https://cdn.example.test/lamu.jpg"]},
        )
        assert created.status_code == 201
        event = websocket.receive_json()
        assert event["type"] == "post_created"
        assert event["post_id"] == created.json()["id"]
        assert event["user_id"] == str(author.id)
