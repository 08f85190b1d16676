from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC, naive (the storage convention for every column)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_in(seconds: int) -> datetime:
    """Naive UTC timestamp `seconds` from now."""
    return utcnow() + timedelta(seconds=seconds)


def as_aware(dt: datetime) -> datetime:
    """Attach UTC to a naive timestamp (used when handing datetimes to PyJWT)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into a naive UTC datetime.

    - None / "" -> None
    - "YYYY-MM-DD" and naive "YYYY-MM-DDTHH:MM" are taken as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is dropped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with trailing 'Z'; naive values are treated as UTC."""
    if dt is None:
        return None
    dt_utc = as_aware(dt).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
