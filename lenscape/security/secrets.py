"""Helpers for reading credentials from the environment without echoing them."""
from __future__ import annotations

import os
from typing import Final

__all__ = ["MissingSecretError", "require_secret", "optional_secret", "is_placeholder"]


class MissingSecretError(RuntimeError):
    """Raised when a credential variable is unset or still holds a template value."""


_PLACEHOLDER_VALUES: Final[frozenset[str]] = frozenset(
    {
        "changeme",
        "change-me",
        "placeholder",
        "example",
        "sample",
        "your-key-here",
        "your-consumer-key",
        "your-passkey",
        "xxx",
    }
)


def is_placeholder(value: str | None) -> bool:
    if not value:
        return True
    normalized = value.strip().lower()
    return not normalized or normalized in _PLACEHOLDER_VALUES


def require_secret(name: str) -> str:
    """Return the trimmed value of ``name`` or raise :class:`MissingSecretError`."""

    value = os.getenv(name)
    if is_placeholder(value):
        raise MissingSecretError(f"{name} must be set to a real value (placeholders are rejected)")
    return value.strip()


def optional_secret(name: str) -> str | None:
    """Like :func:`require_secret` but returns ``None`` for unset values."""

    value = os.getenv(name)
    if is_placeholder(value):
        return None
    return value.strip()
