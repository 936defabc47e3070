from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

# Matches SQLite's CURRENT_TIMESTAMP rendering so every backend reads back the same text.
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_timestamp_text(dt: Optional[datetime]) -> Optional[str]:
    """
    Render a datetime as 'YYYY-MM-DD HH:MM:SS' in UTC.

    Aware datetimes are converted to UTC first; naive ones are taken as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.strftime(TIMESTAMP_FORMAT)


def to_date_text(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime(DATE_FORMAT)
