from __future__ import annotations

from datetime import date

import structlog
from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from fittrack.core.clock import get_clock
from fittrack.db.session import SessionLocal
from fittrack.services.streak_notifications import notify_streak_outcome
from fittrack.streak.errors import StreakIdempotencyConflictError
from fittrack.streak.service import StreakService

router = APIRouter(tags=["streaks"])
logger = structlog.get_logger(__name__)


class ActivityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(min_length=1, max_length=32)
    duration_minutes: int = Field(ge=1, le=1440, alias="durationMinutes")


class StreakActivityResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_streak: int = Field(ge=0, alias="currentStreak")
    longest_streak: int = Field(ge=0, alias="longestStreak")
    outcome: str
    freeze_used: bool = Field(alias="freezeUsed")
    replayed: bool


class StreakStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    current_streak: int = Field(ge=0, alias="currentStreak")
    effective_streak: int = Field(ge=0, alias="effectiveStreak")
    longest_streak: int = Field(ge=0, alias="longestStreak")
    freezes_available: int = Field(ge=0, le=1, alias="freezesAvailable")
    next_freeze_refresh: date = Field(alias="nextFreezeRefresh")
    last_active_date: date | None = Field(default=None, alias="lastActiveDate")


@router.post("/users/{user_id}/activities", response_model=StreakActivityResponse)
async def record_activity(
    user_id: int,
    body: ActivityRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=64),
) -> StreakActivityResponse:
    clock = get_clock()
    now_utc = clock.now()

    try:
        async with SessionLocal.begin() as session:
            result = await StreakService.record_activity(
                session,
                user_id=user_id,
                now_utc=now_utc,
                clock=clock,
                idempotency_key=idempotency_key,
            )
    except StreakIdempotencyConflictError as exc:
        raise HTTPException(status_code=409, detail={"code": "E_IDEMPOTENCY_KEY_CONFLICT"}) from exc

    logger.info(
        "activity_logged",
        user_id=user_id,
        kind=body.kind,
        duration_minutes=body.duration_minutes,
        outcome=result.outcome.value,
        replayed=result.replayed,
    )
    await notify_streak_outcome(user_id=user_id, result=result)
    return StreakActivityResponse.model_validate(result.to_payload())


@router.get("/users/{user_id}/streak", response_model=StreakStatusResponse)
async def get_streak(user_id: int) -> StreakStatusResponse:
    clock = get_clock()
    async with SessionLocal() as session:
        status = await StreakService.get_status(
            session,
            user_id=user_id,
            now_utc=clock.now(),
            clock=clock,
        )
    return StreakStatusResponse.model_validate(status.to_payload())
