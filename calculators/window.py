"""Trailing time window shared by all four calculators.

Every calculator looks back WINDOW_DAYS from the moment it is called. A record
qualifies when its creation time is strictly after the window start.
"""

from datetime import datetime, timedelta, timezone

WINDOW_DAYS = 30


def window_start(now: datetime | None = None) -> datetime:
    """Return the start of the trailing window anchored at now (default: utcnow)."""
    return (now or datetime.now(timezone.utc)) - timedelta(days=WINDOW_DAYS)


def in_window(created_at: datetime | None, start: datetime) -> bool:
    return created_at is not None and created_at > start


def mean(values: list[float]) -> float:
    """Arithmetic mean, 0.0 for an empty list."""
    if not values:
        return 0.0
    return sum(values) / len(values)
