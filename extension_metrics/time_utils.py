"""
Shared datetime helpers.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp and normalize it to UTC."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def published_before(timestamp: Optional[str], at_date: datetime) -> bool:
    """True when ``timestamp`` is strictly earlier than ``at_date``."""
    published = parse_timestamp(timestamp)
    if published is None:
        return False
    return published < ensure_utc(at_date)


def build_sample_dates(start: datetime, stop: datetime, sample_rate_days: int) -> List[datetime]:
    """Sample dates from ``start`` to ``stop`` (inclusive) every ``sample_rate_days``."""
    if sample_rate_days <= 0:
        raise ValueError("sample_rate_days must be positive")
    start = ensure_utc(start)
    stop = ensure_utc(stop)
    dates = []
    current = start
    while current <= stop:
        dates.append(current)
        current = current + timedelta(days=sample_rate_days)
    return dates


def date_string(dt: datetime) -> str:
    """Return the ``YYYY-MM-DD`` label used for snapshot file names."""
    return ensure_utc(dt).date().isoformat()
