# Overview: UTC clock and ISO-8601 helpers; every stored timestamp is UTC-naive.

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time in UTC, tzinfo stripped."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse client-supplied dates such as an order's estimated delivery.

    Accepts a bare date ("2026-11-01", read as midnight UTC), a naive
    datetime (read as UTC), or an offset/"Z" datetime (converted to UTC).
    Blank input gives None; anything else raises ValueError.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    if len(text) == 10:
        return datetime.combine(date.fromisoformat(text), time.min)

    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render a stored timestamp for JSON, second precision with a trailing 'Z'."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
