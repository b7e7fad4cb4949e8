"""Object storage for avatars, post photos, chat attachments and marketplace deliveries.

Files live in a DigitalOcean Spaces bucket (S3 API via boto3) under one of a
fixed set of folders. Public URLs are built from ``DO_SPACES_ENDPOINT`` so a
stored URL can be mapped back to its object key when the owning row goes away.
"""
from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import PurePosixPath
from urllib.parse import urlparse

from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from ..security.secrets import MissingSecretError, is_placeholder, require_secret

logger = logging.getLogger(__name__)

STORAGE_FOLDERS = frozenset({"avatars", "posts", "messages", "marketplace"})
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class SpacesConfig:
    key: str
    secret: str
    region: str
    bucket: str
    public_endpoint: str

    @property
    def api_endpoint(self) -> str:
        return f"https://{self.region}.digitaloceanspaces.com"


@dataclass(frozen=True)
class SpacesUploadResult:
    url: str
    key: str
    bucket: str
    content_type: str


class SpacesConfigurationError(RuntimeError):
    """Storage credentials or bucket settings are missing."""


class SpacesUploadError(RuntimeError):
    pass


class SpacesDeletionError(RuntimeError):
    pass


def _plain_setting(name: str) -> str:
    value = (os.getenv(name) or "").strip()
    if is_placeholder(value):
        raise SpacesConfigurationError(f"{name} is not configured")
    return value


def _normalize_endpoint(raw: str) -> str:
    endpoint = raw.rstrip("/")
    if not urlparse(endpoint).scheme:
        endpoint = f"https://{endpoint.lstrip(':/')}"
    if not urlparse(endpoint).netloc:
        raise SpacesConfigurationError("DO_SPACES_ENDPOINT must include a hostname")
    return endpoint


@lru_cache(maxsize=1)
def load_spaces_config() -> SpacesConfig:
    """Read bucket settings from the environment, raising :class:`SpacesConfigurationError` when incomplete."""

    try:
        key = require_secret("DO_SPACES_KEY")
        secret = require_secret("DO_SPACES_SECRET")
    except MissingSecretError as exc:
        raise SpacesConfigurationError(str(exc)) from exc

    return SpacesConfig(
        key=key,
        secret=secret,
        region=_plain_setting("DO_SPACES_REGION"),
        bucket=_plain_setting("DO_SPACES_NAME"),
        public_endpoint=_normalize_endpoint(_plain_setting("DO_SPACES_ENDPOINT")),
    )


@lru_cache(maxsize=1)
def get_spaces_client() -> BaseClient:
    config = load_spaces_config()
    return Session().client(
        "s3",
        region_name=config.region,
        endpoint_url=config.api_endpoint,
        aws_access_key_id=config.key,
        aws_secret_access_key=config.secret,
    )


def object_key(filename: str | None, folder: str) -> str:
    """Random key inside ``folder`` that keeps a short alphanumeric extension of ``filename``."""

    if folder not in STORAGE_FOLDERS:
        raise ValueError(f"Unknown storage folder: {folder}")
    suffix = PurePosixPath(filename or "").suffix.lower()
    if not (1 < len(suffix) <= 6 and suffix[1:].isalnum()):
        suffix = ""
    return f"{folder}/{uuid.uuid4().hex}{suffix}"


def build_public_url(key: str) -> str:
    return f"{load_spaces_config().public_endpoint}/{key.lstrip('/')}"


def key_from_url(url: str | None) -> str | None:
    """Object key for a URL served from our bucket, or ``None`` for anything else."""

    if not url:
        return None
    try:
        prefix = load_spaces_config().public_endpoint + "/"
    except SpacesConfigurationError:
        return None
    if not url.startswith(prefix):
        return None
    key = url[len(prefix):].split("?", 1)[0]
    return key if key.split("/", 1)[0] in STORAGE_FOLDERS else None


def is_image_upload(file: UploadFile) -> bool:
    return (file.content_type or "").lower().startswith("image/")


def upload_size(file: UploadFile) -> int:
    """Byte length of the spooled upload; leaves the cursor at the start."""

    buffer = file.file
    buffer.seek(0, os.SEEK_END)
    size = buffer.tell()
    buffer.seek(0)
    return size


async def upload_file_to_spaces(
    file: UploadFile,
    *,
    folder: str,
    client: BaseClient | None = None,
) -> SpacesUploadResult:
    config = load_spaces_config()
    s3_client = client or get_spaces_client()
    key = object_key(file.filename, folder)
    content_type = (file.content_type or "").strip() or DEFAULT_CONTENT_TYPE
    buffer = file.file

    def _put() -> None:
        buffer.seek(0)
        try:
            s3_client.upload_fileobj(
                buffer,
                config.bucket,
                key,
                ExtraArgs={"ACL": "public-read", "ContentType": content_type},
            )
        except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network bound
            logger.exception("Upload of %s to bucket %s failed", key, config.bucket)
            raise SpacesUploadError("Could not upload the file to storage") from exc

    await run_in_threadpool(_put)
    logger.info("Stored %s (%s)", key, content_type)
    return SpacesUploadResult(url=build_public_url(key), key=key, bucket=config.bucket, content_type=content_type)


async def store_upload(file: UploadFile, *, folder: str) -> SpacesUploadResult:
    """Upload ``file``; storage misconfiguration becomes 503 and upstream failure 502."""

    try:
        return await upload_file_to_spaces(file, folder=folder)
    except SpacesConfigurationError as exc:
        logger.error("File storage unavailable: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="File storage is not configured") from exc
    except SpacesUploadError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


def delete_file_from_spaces(key: str, *, client: BaseClient | None = None) -> None:
    config = load_spaces_config()
    s3_client = client or get_spaces_client()
    try:
        s3_client.delete_object(Bucket=config.bucket, Key=key.lstrip("/"))
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network bound
        raise SpacesDeletionError(f"Could not delete {key}") from exc


def try_delete_file(key: str | None) -> None:
    """Delete ``key`` if set; failures are logged, never raised."""

    if not key:
        return
    try:
        delete_file_from_spaces(key)
    except (SpacesConfigurationError, SpacesDeletionError) as exc:
        logger.warning("Stored object %s left behind: %s", key, exc)


__all__ = [
    "STORAGE_FOLDERS",
    "SpacesConfig",
    "SpacesConfigurationError",
    "SpacesUploadError",
    "SpacesDeletionError",
    "SpacesUploadResult",
    "build_public_url",
    "key_from_url",
    "object_key",
    "is_image_upload",
    "upload_size",
    "load_spaces_config",
    "get_spaces_client",
    "upload_file_to_spaces",
    "store_upload",
    "delete_file_from_spaces",
    "try_delete_file",
]
