from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from fittrack.core.clock import FrozenClock
from fittrack.workers.tasks import streak_reminders

NOW = datetime(2026, 3, 3, 18, 0, tzinfo=timezone.utc)


class _Session:
    async def __aenter__(self) -> "_Session":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        return None


@pytest.mark.asyncio
async def test_reminders_target_users_active_yesterday(monkeypatch) -> None:
    windows: list[dict[str, Any]] = []
    sent: list[list[dict[str, Any]]] = []

    async def _list_active_between(session, *, active_from_utc, active_until_utc, limit: int, after_user_id: int = 0):
        del session
        windows.append({"from": active_from_utc, "until": active_until_utc, "limit": limit, "after": after_user_id})
        return [
            SimpleNamespace(user_id=1, current_streak=4, longest_streak=4),
            SimpleNamespace(user_id=2, current_streak=10, longest_streak=21),
        ]

    async def _send(bodies: list[dict[str, Any]]) -> int:
        sent.append(bodies)
        return len(bodies) - 1

    monkeypatch.setattr(
        streak_reminders,
        "get_settings",
        lambda: SimpleNamespace(streak_reminder_batch_size=500),
    )
    monkeypatch.setattr(streak_reminders, "get_clock", lambda: FrozenClock(NOW))
    monkeypatch.setattr(streak_reminders, "SessionLocal", lambda: _Session())
    monkeypatch.setattr(streak_reminders.StreakRepo, "list_active_between", _list_active_between)
    monkeypatch.setattr(streak_reminders, "send_streak_notifications", _send)

    result = await streak_reminders.send_streak_reminders_async(batch_size=50)

    assert result == {"candidates": 2, "delivered": 1}
    assert windows == [
        {
            "from": datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc),
            "until": datetime(2026, 3, 3, 0, 0, tzinfo=timezone.utc),
            "limit": 50,
            "after": 0,
        }
    ]
    [bodies] = sent
    assert [body["event"] for body in bodies] == ["streak_at_risk", "streak_at_risk"]
    assert bodies[1]["userId"] == 2
    assert bodies[1]["longestStreak"] == 21


@pytest.mark.asyncio
async def test_reminders_page_through_all_candidates(monkeypatch) -> None:
    active = [SimpleNamespace(user_id=user_id, current_streak=2, longest_streak=5) for user_id in (3, 7, 9)]
    cursors: list[int] = []
    sent: list[list[int]] = []

    async def _list_active_between(session, *, active_from_utc, active_until_utc, limit: int, after_user_id: int = 0):
        del session, active_from_utc, active_until_utc
        cursors.append(after_user_id)
        return [state for state in active if state.user_id > after_user_id][:limit]

    async def _send(bodies: list[dict[str, Any]]) -> int:
        sent.append([body["userId"] for body in bodies])
        return len(bodies)

    monkeypatch.setattr(
        streak_reminders,
        "get_settings",
        lambda: SimpleNamespace(streak_reminder_batch_size=500),
    )
    monkeypatch.setattr(streak_reminders, "get_clock", lambda: FrozenClock(NOW))
    monkeypatch.setattr(streak_reminders, "SessionLocal", lambda: _Session())
    monkeypatch.setattr(streak_reminders.StreakRepo, "list_active_between", _list_active_between)
    monkeypatch.setattr(streak_reminders, "send_streak_notifications", _send)

    result = await streak_reminders.send_streak_reminders_async(batch_size=2)

    assert result == {"candidates": 3, "delivered": 3}
    assert cursors == [0, 7]
    assert sent == [[3, 7], [9]]


def test_send_streak_reminders_task_wrapper(monkeypatch) -> None:
    async def fake_async(*, batch_size: int | None = None) -> dict[str, int]:
        assert batch_size == 25
        return {"candidates": 3, "delivered": 3}

    monkeypatch.setattr(streak_reminders, "send_streak_reminders_async", fake_async)

    result = streak_reminders.send_streak_reminders(batch_size=25)
    assert result["delivered"] == 3
