"""Shared timestamp helpers."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


def parse_iso_timestamp(value: Any) -> datetime | None:
    """Parse ISO-8601 transcript timestamps, with or without fractional seconds.

    Naive values are treated as UTC so they compare against aware datetimes.
    """
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    try:
        parsed = datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def start_of_local_day(now: datetime | None = None) -> datetime:
    current = (now or datetime.now()).astimezone()
    return current.replace(hour=0, minute=0, second=0, microsecond=0)


def file_modified_datetime(st_mtime: float) -> datetime:
    return datetime.fromtimestamp(float(st_mtime), timezone.utc)
