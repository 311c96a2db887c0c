"""Calendar-month period resolution.

Periods are aligned to calendar months in the configured time zone:
start is the first instant of the month, end the last (inclusive).
"""

from __future__ import annotations

import calendar
from datetime import UTC, datetime, timedelta, tzinfo


def utcnow() -> datetime:
    return datetime.now(UTC)


def month_bounds(now: datetime, zone: tzinfo) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` of the calendar month containing *now* in *zone*."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    local = now.astimezone(zone)
    last_day = calendar.monthrange(local.year, local.month)[1]
    start = datetime(local.year, local.month, 1, tzinfo=zone)
    end = datetime(local.year, local.month, last_day, 23, 59, 59, 999999, tzinfo=zone)
    return start, end


def month_tick(now: datetime, zone: tzinfo) -> str:
    """Scheduling tick for the month containing *now*, e.g. ``"2026-10"``."""
    start, _ = month_bounds(now, zone)
    return f"{start:%Y-%m}"


def month_label(now: datetime, zone: tzinfo) -> str:
    start, _ = month_bounds(now, zone)
    return f"{start:%B %Y}"


def is_expiring_soon(period_end: datetime, now: datetime, window: timedelta) -> bool:
    return (period_end - now) <= window
