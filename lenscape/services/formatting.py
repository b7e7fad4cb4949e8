"""Display helpers shared by the conversation, notification and explore views."""
from __future__ import annotations

from datetime import datetime, timezone

from ..constants import ROLE_DISPLAY_NAMES


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now(now: datetime | None) -> datetime:
    return _as_utc(now) if now is not None else datetime.now(timezone.utc)


def _clock(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def conversation_time_label(value: datetime | None, *, now: datetime | None = None) -> str:
    """Label used in the conversation list and beside chat bubbles."""

    if value is None:
        return ""
    moment = _as_utc(value)
    current = _now(now)
    delta = current - moment
    minutes = int(delta.total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    day_gap = (current.date() - moment.date()).days
    if day_gap <= 0:
        return _clock(moment)
    if day_gap == 1:
        return "Yesterday"
    return moment.strftime("%m/%d/%y")


def time_ago(value: datetime | None, *, now: datetime | None = None) -> str:
    """Relative age used by the notification list."""

    if value is None:
        return ""
    seconds = int((_now(now) - _as_utc(value)).total_seconds())
    minutes = seconds // 60
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    if days < 30:
        return f"{days // 7}w ago"
    return f"{days // 30}mo ago"


def needs_date_divider(current: datetime, previous: datetime | None) -> bool:
    """True when ``current`` starts a new calendar day relative to ``previous``."""

    if previous is None:
        return True
    return _as_utc(current).date() != _as_utc(previous).date()


def initials(name: str | None) -> str:
    words = [word for word in (name or "").split() if word]
    if not words:
        return "U"
    return "".join(word[0] for word in words[:2]).upper()


def format_count(value: int | None) -> str:
    count = int(value or 0)
    if count >= 1000:
        return f"{count / 1000:.1f}k"
    return str(count)


def role_display_name(role: str | None) -> str:
    key = (role or "").lower()
    return ROLE_DISPLAY_NAMES.get(key, key.capitalize() or "Client")


__all__ = [
    "conversation_time_label",
    "time_ago",
    "needs_date_divider",
    "initials",
    "format_count",
    "role_display_name",
]
