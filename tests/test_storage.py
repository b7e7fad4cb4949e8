"""Unit tests for object key handling in the storage service."""
from __future__ import annotations

import asyncio
import io
import os
from typing import Iterator

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_lenscape.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from lenscape.services import spaces_service  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_config() -> Iterator[None]:
    spaces_service.load_spaces_config.cache_clear()
    yield
    spaces_service.load_spaces_config.cache_clear()


@pytest.fixture
def configured(monkeypatch) -> None:
    monkeypatch.setenv("DO_SPACES_KEY", "spaces-access-key")
    monkeypatch.setenv("DO_SPACES_SECRET", "spaces-secret-value")
    monkeypatch.setenv("DO_SPACES_REGION", "fra1")
    monkeypatch.setenv("DO_SPACES_NAME", "lenscape-media")
    monkeypatch.setenv("DO_SPACES_ENDPOINT", "lenscape-media.fra1.digitaloceanspaces.com/")


@pytest.fixture
def unconfigured(monkeypatch) -> None:
    for name in ("DO_SPACES_KEY", "DO_SPACES_SECRET", "DO_SPACES_REGION", "DO_SPACES_NAME", "DO_SPACES_ENDPOINT"):
        monkeypatch.delenv(name, raising=False)


def _upload(name: str, data: bytes, content_type: str) -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=name, headers=Headers({"content-type": content_type}))


def test_object_keys_stay_in_known_folders():
    key = spaces_service.object_key("Holiday Pic.JPG", "posts")
    assert key.startswith("posts/")
    assert key.endswith(".jpg")

    assert spaces_service.object_key("archive.tar.verylongext", "avatars").count(".") == 0
    assert "." not in spaces_service.object_key(None, "messages")

    with pytest.raises(ValueError):
        spaces_service.object_key("x.jpg", "../secrets")


def test_config_normalizes_endpoint(configured):
    config = spaces_service.load_spaces_config()
    assert config.public_endpoint == "https://lenscape-media.fra1.digitaloceanspaces.com"
    assert config.api_endpoint == "https://fra1.digitaloceanspaces.com"
    assert spaces_service.build_public_url("/posts/a.jpg") == "https://lenscape-media.fra1.digitaloceanspaces.com/posts/a.jpg"


def test_key_from_url_only_matches_our_bucket(configured):
    base = "https://lenscape-media.fra1.digitaloceanspaces.com"
    assert spaces_service.key_from_url(f"{base}/posts/abc.jpg") == "posts/abc.jpg"
    assert spaces_service.key_from_url(f"{base}/marketplace/abc.jpg?v=2") == "marketplace/abc.jpg"
    assert spaces_service.key_from_url(f"{base}/elsewhere/abc.jpg") is None
    assert spaces_service.key_from_url("https://images.example.test/posts/abc.jpg") is None
    assert spaces_service.key_from_url(None) is None


def test_key_from_url_without_configuration(unconfigured):
    assert spaces_service.key_from_url("https://lenscape-media.fra1.digitaloceanspaces.com/posts/a.jpg") is None


def test_placeholder_credentials_are_rejected(configured, monkeypatch):
    monkeypatch.setenv("DO_SPACES_SECRET", "changeme")
    with pytest.raises(spaces_service.SpacesConfigurationError):
        spaces_service.load_spaces_config()


def test_store_upload_reports_missing_storage(unconfigured):
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(spaces_service.store_upload(_upload("a.jpg", b"a", "image/jpeg"), folder="posts"))
    assert excinfo.value.status_code == 503


def test_try_delete_file_never_raises(unconfigured):
    spaces_service.try_delete_file("posts/a.jpg")
    spaces_service.try_delete_file(None)


def test_upload_helpers():
    upload = _upload("a.png", b"12345", "image/png")
    assert spaces_service.is_image_upload(upload)
    assert spaces_service.upload_size(upload) == 5
    assert upload.file.tell() == 0
    assert not spaces_service.is_image_upload(_upload("a.txt", b"x", "text/plain"))
