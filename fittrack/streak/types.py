from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Mapping

from fittrack.streak.constants import WEEKLY_FREEZE_ALLOWANCE
from fittrack.streak.time import week_start


class StreakOutcome(str, Enum):
    BOOTSTRAPPED = "bootstrapped"
    ALREADY_COUNTED = "alreadyCounted"
    EXTENDED = "extended"
    FREEZE_USED = "freezeUsed"
    BROKEN = "broken"


class StreakStatusLabel(str, Enum):
    NONE = "none"
    ACTIVE_TODAY = "activeToday"
    AT_RISK = "atRisk"
    FREEZE_AVAILABLE = "freezeAvailable"
    LAPSED = "lapsed"


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


@dataclass(frozen=True, slots=True)
class StreakRecord:
    current_streak: int = 0
    longest_streak: int = 0
    last_active_at: datetime | None = None
    freezes_available: int = WEEKLY_FREEZE_ALLOWANCE
    freeze_week_start: date | None = None
    grace_used_this_week: bool = False

    @classmethod
    def empty(cls) -> StreakRecord:
        return cls()

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> StreakRecord:
        """Builds a record from its persisted form.

        Missing or malformed documents are treated as a new user, and
        out-of-range values are repaired instead of rejected.
        """
        if not isinstance(document, Mapping):
            return cls.empty()

        current = max(0, _as_int(document.get("currentStreak"), 0))
        longest = max(current, _as_int(document.get("longestStreak"), 0))
        freezes = _as_int(document.get("freezesAvailable"), WEEKLY_FREEZE_ALLOWANCE)
        freezes = min(WEEKLY_FREEZE_ALLOWANCE, max(0, freezes))

        freeze_week = _as_date(document.get("freezeWeekStart"))
        if freeze_week is not None:
            freeze_week = week_start(freeze_week)

        return cls(
            current_streak=current,
            longest_streak=longest,
            last_active_at=_as_datetime(document.get("lastActiveDate")),
            freezes_available=freezes,
            freeze_week_start=freeze_week,
            grace_used_this_week=document.get("graceUsedThisWeek") is True,
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "lastActiveDate": self.last_active_at.isoformat() if self.last_active_at else None,
            "freezesAvailable": self.freezes_available,
            "freezeWeekStart": self.freeze_week_start.isoformat() if self.freeze_week_start else None,
            "graceUsedThisWeek": self.grace_used_this_week,
        }


@dataclass(frozen=True, slots=True)
class StreakTransition:
    record: StreakRecord
    outcome: StreakOutcome

    @property
    def current_streak(self) -> int:
        return self.record.current_streak

    @property
    def longest_streak(self) -> int:
        return self.record.longest_streak

    @property
    def freeze_used(self) -> bool:
        return self.outcome == StreakOutcome.FREEZE_USED

    def to_payload(self) -> dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "outcome": self.outcome.value,
            "freezeUsed": self.freeze_used,
        }


@dataclass(frozen=True, slots=True)
class StreakStatus:
    label: StreakStatusLabel
    current_streak: int
    effective_streak: int
    longest_streak: int
    freezes_available: int
    next_freeze_refresh: date
    last_active_date: date | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": self.label.value,
            "currentStreak": self.current_streak,
            "effectiveStreak": self.effective_streak,
            "longestStreak": self.longest_streak,
            "freezesAvailable": self.freezes_available,
            "nextFreezeRefresh": self.next_freeze_refresh.isoformat(),
            "lastActiveDate": self.last_active_date.isoformat() if self.last_active_date else None,
        }


@dataclass(frozen=True, slots=True)
class StreakActivityResult:
    current_streak: int
    longest_streak: int
    outcome: StreakOutcome
    freeze_used: bool
    replayed: bool = False

    @classmethod
    def from_transition(cls, result: StreakTransition) -> StreakActivityResult:
        return cls(
            current_streak=result.current_streak,
            longest_streak=result.longest_streak,
            outcome=result.outcome,
            freeze_used=result.freeze_used,
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, replayed: bool) -> StreakActivityResult:
        return cls(
            current_streak=_as_int(payload.get("currentStreak"), 0),
            longest_streak=_as_int(payload.get("longestStreak"), 0),
            outcome=StreakOutcome(payload.get("outcome", StreakOutcome.ALREADY_COUNTED.value)),
            freeze_used=payload.get("freezeUsed") is True,
            replayed=replayed,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "outcome": self.outcome.value,
            "freezeUsed": self.freeze_used,
            "replayed": self.replayed,
        }
