from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from flask import current_app, has_app_context


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_today() -> date:
    """
    Current date at the warehouse.

    Reference codes and booking lists are scoped by this date, not by the UTC
    date, so a booking made at 06:30 local time is not filed under yesterday.
    """
    offset_hours = 7
    if has_app_context():
        offset_hours = current_app.config.get("BUSINESS_UTC_OFFSET_HOURS", offset_hours)
    return (utcnow() + timedelta(hours=offset_hours)).date()


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD string.

    - None / "" -> None
    - anything else malformed raises ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.isoformat().replace("+00:00", "Z")
