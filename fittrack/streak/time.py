from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from datetime import time as dt_time


def week_start(day: date) -> date:
    """Returns Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def next_week_start(day: date) -> date:
    return week_start(day) + timedelta(days=7)


def calendar_day_diff(earlier: date, later: date) -> int:
    return (later - earlier).days


def local_day_bounds_utc(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Returns the UTC instants where local ``day`` starts and the next day starts."""
    start = datetime.combine(day, dt_time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), dt_time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
