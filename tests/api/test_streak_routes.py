from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

from fastapi.testclient import TestClient

from fittrack.api.routes import internal_streaks, streaks
from fittrack.core.clock import FrozenClock
from fittrack.main import app
from fittrack.services import internal_auth
from fittrack.streak.errors import StreakIdempotencyConflictError
from fittrack.streak.rules import describe_streak
from fittrack.streak.service import StreakService
from fittrack.streak.types import StreakActivityResult, StreakOutcome, StreakRecord

NOW = datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc)


class _Session:
    async def __aenter__(self) -> "_Session":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        return None


class _SessionFactory:
    def __call__(self) -> _Session:
        return _Session()

    def begin(self) -> _Session:
        return _Session()


def _patch_common(monkeypatch, notified: list[dict[str, Any]]) -> None:
    async def _notify(*, user_id: int, result: StreakActivityResult) -> bool:
        notified.append({"user_id": user_id, "outcome": result.outcome.value})
        return True

    monkeypatch.setattr(streaks, "SessionLocal", _SessionFactory())
    monkeypatch.setattr(streaks, "get_clock", lambda: FrozenClock(NOW))
    monkeypatch.setattr(streaks, "notify_streak_outcome", _notify)


def test_record_activity_returns_streak_result(monkeypatch) -> None:
    notified: list[dict[str, Any]] = []
    calls: list[dict[str, Any]] = []
    _patch_common(monkeypatch, notified)

    async def _record(session, *, user_id: int, now_utc: datetime, clock, idempotency_key: str | None = None):
        del session, clock
        calls.append({"user_id": user_id, "now_utc": now_utc, "idempotency_key": idempotency_key})
        return StreakActivityResult(
            current_streak=6,
            longest_streak=6,
            outcome=StreakOutcome.FREEZE_USED,
            freeze_used=True,
        )

    monkeypatch.setattr(StreakService, "record_activity", _record)

    client = TestClient(app)
    response = client.post(
        "/users/7/activities",
        json={"kind": "run", "durationMinutes": 30},
        headers={"Idempotency-Key": "1772528400000-a1b2c3d4e5f6"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "currentStreak": 6,
        "longestStreak": 6,
        "outcome": "freezeUsed",
        "freezeUsed": True,
        "replayed": False,
    }
    assert calls == [
        {"user_id": 7, "now_utc": NOW, "idempotency_key": "1772528400000-a1b2c3d4e5f6"},
    ]
    assert notified == [{"user_id": 7, "outcome": "freezeUsed"}]


def test_record_activity_maps_idempotency_conflict_to_409(monkeypatch) -> None:
    notified: list[dict[str, Any]] = []
    _patch_common(monkeypatch, notified)

    async def _record(session, *, user_id: int, now_utc: datetime, clock, idempotency_key: str | None = None):
        del session, user_id, now_utc, clock, idempotency_key
        raise StreakIdempotencyConflictError

    monkeypatch.setattr(StreakService, "record_activity", _record)

    client = TestClient(app)
    response = client.post(
        "/users/7/activities",
        json={"kind": "run", "durationMinutes": 30},
        headers={"Idempotency-Key": "key-owned-by-user-99"},
    )

    assert response.status_code == 409
    assert response.json() == {"detail": {"code": "E_IDEMPOTENCY_KEY_CONFLICT"}}
    assert notified == []


def test_record_activity_rejects_invalid_duration(monkeypatch) -> None:
    notified: list[dict[str, Any]] = []
    _patch_common(monkeypatch, notified)

    async def _record(*args, **kwargs):
        raise AssertionError("service must not run for invalid payload")

    monkeypatch.setattr(StreakService, "record_activity", _record)

    client = TestClient(app)
    response = client.post("/users/7/activities", json={"kind": "run", "durationMinutes": 0})

    assert response.status_code == 422
    assert notified == []


def test_get_streak_returns_status(monkeypatch) -> None:
    _patch_common(monkeypatch, [])

    async def _get_status(session, *, user_id: int, now_utc: datetime, clock):
        del session, now_utc
        assert user_id == 7
        record = StreakRecord(
            current_streak=4,
            longest_streak=9,
            last_active_at=datetime(2026, 3, 2, 19, 0, tzinfo=timezone.utc),
        )
        return describe_streak(record, NOW, clock=clock)

    monkeypatch.setattr(StreakService, "get_status", _get_status)

    client = TestClient(app)
    response = client.get("/users/7/streak")

    assert response.status_code == 200
    assert response.json() == {
        "status": "atRisk",
        "currentStreak": 4,
        "effectiveStreak": 4,
        "longestStreak": 9,
        "freezesAvailable": 1,
        "nextFreezeRefresh": "2026-03-09",
        "lastActiveDate": "2026-03-02",
    }


def test_internal_summary_rejects_missing_token(monkeypatch) -> None:
    monkeypatch.setattr(
        internal_auth,
        "get_settings",
        lambda: SimpleNamespace(internal_api_token="internal-secret"),
    )

    client = TestClient(app)
    response = client.get("/internal/streaks/summary")

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_internal_summary_returns_aggregates(monkeypatch) -> None:
    monkeypatch.setattr(
        internal_auth,
        "get_settings",
        lambda: SimpleNamespace(internal_api_token="internal-secret"),
    )
    monkeypatch.setattr(internal_streaks, "SessionLocal", _SessionFactory())

    async def _summary(session, *, now_utc: datetime) -> dict[str, float | int]:
        del session, now_utc
        return {
            "total_users": 10,
            "active_day": 4,
            "active_week": 7,
            "active_month": 9,
            "avg_streak": 3.5,
            "max_streak": 12,
            "max_longest_streak": 40,
        }

    monkeypatch.setattr(internal_streaks.StreakRepo, "activity_summary", _summary)

    client = TestClient(app)
    response = client.get("/internal/streaks/summary", headers={"X-Internal-Token": "internal-secret"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["total_users"] == 10
    assert payload["avg_streak"] == 3.5
    assert payload["max_longest_streak"] == 40
