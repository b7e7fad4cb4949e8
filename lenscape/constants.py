"""Project-wide constant values."""
from __future__ import annotations

ROLE_CLIENT = "client"
ROLE_PHOTOGRAPHER = "photographer"
ROLE_ADMIN = "admin"

ROLE_DISPLAY_NAMES = {
    ROLE_CLIENT: "Client",
    ROLE_PHOTOGRAPHER: "Photographer",
    ROLE_ADMIN: "Admin",
}

SUGGESTED_TAGS: tuple[str, ...] = (
    "nature",
    "landscape",
    "portrait",
    "street",
    "architecture",
    "sunset",
    "photography",
    "art",
    "travel",
    "urban",
    "macro",
    "wildlife",
    "blackandwhite",
    "colors",
    "abstract",
)

MAX_POST_TAGS = 10
MAX_IMAGES_PER_SEND = 10
MAX_POST_IMAGES = 10
MAX_AVATAR_BYTES = 5 * 1024 * 1024
PHOTO_PLACEHOLDER = "📷 Photo"
LAST_MESSAGE_PREVIEW_CHARS = 100
USER_SEARCH_LIMIT = 20
TAG_SCAN_LIMIT = 300
TOP_TAG_CATEGORIES = 15

__all__ = [
    "ROLE_CLIENT",
    "ROLE_PHOTOGRAPHER",
    "ROLE_ADMIN",
    "ROLE_DISPLAY_NAMES",
    "SUGGESTED_TAGS",
    "MAX_POST_TAGS",
    "MAX_IMAGES_PER_SEND",
    "MAX_POST_IMAGES",
    "MAX_AVATAR_BYTES",
    "PHOTO_PLACEHOLDER",
    "LAST_MESSAGE_PREVIEW_CHARS",
    "USER_SEARCH_LIMIT",
    "TAG_SCAN_LIMIT",
    "TOP_TAG_CATEGORIES",
]
