from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from fittrack.db.repo.streak_repo import StreakRepo
from fittrack.db.session import SessionLocal
from fittrack.services.internal_auth import require_internal_token

router = APIRouter(tags=["internal", "streaks"], dependencies=[Depends(require_internal_token)])


class StreakSummaryResponse(BaseModel):
    generated_at: datetime
    total_users: int = Field(ge=0)
    active_day: int = Field(ge=0)
    active_week: int = Field(ge=0)
    active_month: int = Field(ge=0)
    avg_streak: float = Field(ge=0.0)
    max_streak: int = Field(ge=0)
    max_longest_streak: int = Field(ge=0)


@router.get("/internal/streaks/summary", response_model=StreakSummaryResponse)
async def get_streak_summary() -> StreakSummaryResponse:
    now_utc = datetime.now(timezone.utc)

    async with SessionLocal() as session:
        summary = await StreakRepo.activity_summary(session, now_utc=now_utc)

    return StreakSummaryResponse(generated_at=now_utc, **summary)
