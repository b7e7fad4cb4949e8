"""Unit tests for the display helpers shared by several views."""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from uuid import UUID

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_lenscape.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from lenscape.services.formatting import (  # noqa: E402
    conversation_time_label,
    format_count,
    initials,
    needs_date_divider,
    role_display_name,
    time_ago,
)
from lenscape.services.message_service import canonical_pair, preview_text  # noqa: E402

NOW = datetime(2024, 3, 15, 18, 30, tzinfo=timezone.utc)


def test_conversation_time_label_buckets():
    assert conversation_time_label(None, now=NOW) == ""
    assert conversation_time_label(NOW - timedelta(seconds=20), now=NOW) == "Just now"
    assert conversation_time_label(NOW - timedelta(minutes=45), now=NOW) == "45m ago"
    assert conversation_time_label(datetime(2024, 3, 15, 9, 5, tzinfo=timezone.utc), now=NOW) == "9:05 AM"
    assert conversation_time_label(datetime(2024, 3, 15, 0, 15, tzinfo=timezone.utc), now=NOW) == "12:15 AM"
    assert conversation_time_label(datetime(2024, 3, 14, 23, 0, tzinfo=timezone.utc), now=NOW) == "Yesterday"
    assert conversation_time_label(datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc), now=NOW) == "02/01/24"


def test_conversation_time_label_accepts_naive_values():
    naive = datetime(2024, 3, 15, 13, 45)
    assert conversation_time_label(naive, now=NOW) == "1:45 PM"


def test_time_ago_buckets():
    assert time_ago(NOW - timedelta(seconds=30), now=NOW) == "Just now"
    assert time_ago(NOW - timedelta(minutes=5), now=NOW) == "5m ago"
    assert time_ago(NOW - timedelta(hours=3), now=NOW) == "3h ago"
    assert time_ago(NOW - timedelta(days=2), now=NOW) == "2d ago"
    assert time_ago(NOW - timedelta(days=15), now=NOW) == "2w ago"
    assert time_ago(NOW - timedelta(days=65), now=NOW) == "2mo ago"


def test_date_divider_on_day_change():
    morning = datetime(2024, 3, 15, 8, 0, tzinfo=timezone.utc)
    assert needs_date_divider(morning, None)
    assert not needs_date_divider(morning + timedelta(hours=2), morning)
    assert needs_date_divider(morning, morning - timedelta(hours=9))


def test_initials_and_counts():
    assert initials("Grace Wambui Njeri") == "GW"
    assert initials("  otieno ") == "O"
    assert initials("") == "U"
    assert initials(None) == "U"
    assert format_count(999) == "999"
    assert format_count(1000) == "1.0k"
    assert format_count(1500) == "1.5k"
    assert format_count(None) == "0"


def test_role_display_names():
    assert role_display_name("photographer") == "Photographer"
    assert role_display_name("ADMIN") == "Admin"
    assert role_display_name(None) == "Client"


def test_message_preview_and_pair_ordering():
    assert preview_text("Hello", []) == "Hello"
    assert preview_text("", ["https://cdn.example.test/a.jpg"]) == "📷 Photo"
    assert preview_text("Look", ["https://cdn.example.test/a.jpg"]) == "Look 📷"
    assert len(preview_text("y" * 300, None)) == 100

    low = UUID("00000000-0000-0000-0000-000000000001")
    high = UUID("ffffffff-0000-0000-0000-000000000000")
    assert canonical_pair(high, low) == (low, high)
    assert canonical_pair(low, high) == (low, high)
