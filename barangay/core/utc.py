"""
UTC DateTime Utilities for the Barangay Portal.

All datetimes are stored and handled in UTC with timezone awareness.
MongoDB drivers may hand back naive datetimes (UTC by convention), so
anything read from the database goes through to_utc() before arithmetic.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    MongoDB keeps millisecond precision only, so the value is truncated
    to milliseconds to make what we write equal to what we read back.
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC timezone-aware datetime.

    - If naive: assumes UTC and adds timezone
    - If aware: converts to UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to timezone-aware UTC datetime.

    Handles:
    - "2025-12-08T03:00:00Z"
    - "2025-12-08T03:00:00+08:00"
    - "2025-12-08T03:00" (assumes UTC)
    - "2025-12-08" (midnight UTC)

    Raises:
        ValueError: if the string is empty or not ISO 8601
    """
    cleaned = (iso_string or "").strip()
    if not cleaned:
        raise ValueError("empty datetime string")
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(cleaned))


def to_iso_z(dt: Optional[datetime]) -> str:
    """
    Format as ISO 8601 with millisecond precision and Z suffix.

    Returns format: "2025-12-08T03:00:00.123Z", or "" for None.
    """
    if dt is None:
        return ""
    return to_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_long(dt: Optional[datetime], default: str = "-") -> str:
    """'December 08, 2025 03:00 AM' style, used by printable documents."""
    if dt is None:
        return default
    return to_utc(dt).strftime("%B %d, %Y %I:%M %p")


def format_date(dt: Optional[datetime], default: str = "-") -> str:
    """'December 08, 2025' style."""
    if dt is None:
        return default
    return to_utc(dt).strftime("%B %d, %Y")


def format_short(dt: Optional[datetime], default: str = "-") -> str:
    """'Dec 08, 2025' style."""
    if dt is None:
        return default
    return to_utc(dt).strftime("%b %d, %Y")
