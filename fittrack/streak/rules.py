from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from fittrack.core.clock import Clock, SystemClock
from fittrack.streak.constants import FREEZE_BRIDGE_DAY_DIFF
from fittrack.streak.freeze import consume_freeze, next_refresh_date, refresh_freeze_allowance
from fittrack.streak.time import calendar_day_diff
from fittrack.streak.types import (
    StreakOutcome,
    StreakRecord,
    StreakStatus,
    StreakStatusLabel,
    StreakTransition,
)

_UTC_CLOCK = SystemClock()


def transition(
    record: StreakRecord | None,
    now: datetime,
    *,
    clock: Clock | None = None,
) -> StreakTransition:
    """Applies one qualifying event at ``now`` and returns the new record with its outcome.

    Pure: no I/O, no reads of the wall clock. The caller persists the result
    and serializes concurrent calls for the same user.
    """
    resolved_clock = clock or _UTC_CLOCK
    today = resolved_clock.local_date(now)
    updated = refresh_freeze_allowance(record or StreakRecord.empty(), today=today)

    if updated.last_active_at is None:
        updated = replace(
            updated,
            current_streak=1,
            longest_streak=max(1, updated.longest_streak),
            last_active_at=now,
        )
        return StreakTransition(record=updated, outcome=StreakOutcome.BOOTSTRAPPED)

    day_diff = calendar_day_diff(resolved_clock.local_date(updated.last_active_at), today)

    if day_diff == 0:
        return StreakTransition(record=updated, outcome=StreakOutcome.ALREADY_COUNTED)

    if day_diff == 1:
        outcome = StreakOutcome.EXTENDED
        updated = replace(updated, current_streak=updated.current_streak + 1)
    elif day_diff == FREEZE_BRIDGE_DAY_DIFF and updated.freezes_available > 0:
        outcome = StreakOutcome.FREEZE_USED
        updated = replace(consume_freeze(updated), current_streak=updated.current_streak + 1)
    else:
        # Longer gaps and negative diffs (clock skew, backdated events) both land here.
        outcome = StreakOutcome.BROKEN
        updated = replace(updated, current_streak=1)

    updated = replace(
        updated,
        longest_streak=max(updated.longest_streak, updated.current_streak),
        last_active_at=now,
    )
    return StreakTransition(record=updated, outcome=outcome)


def describe_streak(
    record: StreakRecord | None,
    now: datetime,
    *,
    clock: Clock | None = None,
) -> StreakStatus:
    """Read-side view of a record at ``now``; never mutates or persists anything."""
    resolved_clock = clock or _UTC_CLOCK
    today = resolved_clock.local_date(now)
    refreshed = refresh_freeze_allowance(record or StreakRecord.empty(), today=today)

    if refreshed.last_active_at is None:
        label = StreakStatusLabel.NONE
        effective = 0
        last_active_date = None
    else:
        last_active_date = resolved_clock.local_date(refreshed.last_active_at)
        day_diff = calendar_day_diff(last_active_date, today)
        effective = refreshed.current_streak
        if day_diff <= 0:
            label = StreakStatusLabel.ACTIVE_TODAY
        elif day_diff == 1:
            label = StreakStatusLabel.AT_RISK
        elif day_diff == FREEZE_BRIDGE_DAY_DIFF and refreshed.freezes_available > 0:
            label = StreakStatusLabel.FREEZE_AVAILABLE
        else:
            label = StreakStatusLabel.LAPSED
            effective = 0

    return StreakStatus(
        label=label,
        current_streak=refreshed.current_streak,
        effective_streak=effective,
        longest_streak=refreshed.longest_streak,
        freezes_available=refreshed.freezes_available,
        next_freeze_refresh=next_refresh_date(today),
        last_active_date=last_active_date,
    )
