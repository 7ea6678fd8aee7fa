from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo

from fittrack.core.config import get_settings


class Clock(Protocol):
    def now(self) -> datetime: ...

    def local_date(self, moment: datetime) -> date: ...


def _resolve_zone(tz: tzinfo | str | None) -> tzinfo:
    if tz is None:
        return timezone.utc
    if isinstance(tz, str):
        return timezone.utc if tz.upper() == "UTC" else ZoneInfo(tz)
    return tz


class SystemClock:
    """Wall clock; calendar days are evaluated in the configured zone."""

    def __init__(self, tz: tzinfo | str | None = None) -> None:
        self.tz = _resolve_zone(tz)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def local_date(self, moment: datetime) -> date:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz).date()


class FrozenClock(SystemClock):
    def __init__(self, moment: datetime, tz: tzinfo | str | None = None) -> None:
        super().__init__(tz)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        self._moment = moment

    def advance(self, **delta: float) -> datetime:
        self._moment = self._moment + timedelta(**delta)
        return self._moment


def get_clock() -> SystemClock:
    return SystemClock(get_settings().app_timezone)
