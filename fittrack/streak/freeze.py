from __future__ import annotations

from dataclasses import replace
from datetime import date

from fittrack.streak.constants import WEEKLY_FREEZE_ALLOWANCE
from fittrack.streak.time import next_week_start, week_start
from fittrack.streak.types import StreakRecord


def freeze_refresh_due(record: StreakRecord, *, today: date) -> bool:
    return record.freeze_week_start != week_start(today)


def refresh_freeze_allowance(record: StreakRecord, *, today: date) -> StreakRecord:
    """Grants the weekly freeze once the ISO week of ``today`` differs from the stored one.

    This is the only place a freeze is ever granted.
    """
    if not freeze_refresh_due(record, today=today):
        return record

    return replace(
        record,
        freezes_available=WEEKLY_FREEZE_ALLOWANCE,
        freeze_week_start=week_start(today),
        grace_used_this_week=False,
    )


def consume_freeze(record: StreakRecord) -> StreakRecord:
    return replace(
        record,
        freezes_available=max(0, record.freezes_available - 1),
        grace_used_this_week=True,
    )


def next_refresh_date(today: date) -> date:
    return next_week_start(today)
