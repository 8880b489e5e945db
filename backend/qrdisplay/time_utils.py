from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


SECONDS_PER_DAY = 60 * 60 * 24


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime | date) -> datetime:
    """
    Normalize a date or datetime to a UTC-naive datetime.

    - date -> midnight UTC
    - aware datetime -> converted to UTC, tzinfo stripped
    - naive datetime -> treated as UTC already
    """
    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    return to_utc_naive(datetime.fromisoformat(s))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def whole_days_between(start: datetime | date, end: datetime | date) -> int:
    """Floor of elapsed days from start to end (negative when end precedes start)."""
    delta = to_utc_naive(end) - to_utc_naive(start)
    return int(delta.total_seconds() // SECONDS_PER_DAY)


def quarter_label(value: datetime) -> str:
    """Calendar quarter label, e.g. '2025-Q1'."""
    return f"{value.year}-Q{(value.month - 1) // 3 + 1}"
