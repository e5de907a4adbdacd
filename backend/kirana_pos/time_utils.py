# Overview: UTC clock and ISO-8601 parsing/formatting; all stored datetimes are UTC-naive.

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 text -> UTC-naive datetime, or None for blank input.

    Naive input is taken as UTC; offsets (including a trailing Z) are
    converted to UTC. Raises ValueError on malformed text.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """YYYY-MM-DD (or a full datetime, whose UTC date is used); None for blank."""
    text = (value or "").strip()
    if not text:
        return None
    if "T" in text:
        return parse_iso_datetime(text).date()
    return date.fromisoformat(text)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Inclusive [start, end] datetimes covering one calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize as ISO-8601 with a trailing 'Z'; naive values are taken as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat() + "Z"
