from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.db.models.streak_state import StreakState
from fittrack.streak.types import StreakRecord


class StreakRepo:
    @staticmethod
    def to_record(state: StreakState) -> StreakRecord:
        return StreakRecord(
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            last_active_at=state.last_active_at,
            freezes_available=state.freezes_available,
            freeze_week_start=state.freeze_week_start,
            grace_used_this_week=state.grace_used_this_week,
        )

    @staticmethod
    def apply_record(state: StreakState, record: StreakRecord, *, now_utc: datetime) -> None:
        state.current_streak = record.current_streak
        state.longest_streak = record.longest_streak
        state.last_active_at = record.last_active_at
        state.freezes_available = record.freezes_available
        state.freeze_week_start = record.freeze_week_start
        state.grace_used_this_week = record.grace_used_this_week
        state.updated_at = now_utc
        state.version += 1

    @staticmethod
    async def get_by_user_id(session: AsyncSession, user_id: int) -> StreakState | None:
        return await session.get(StreakState, user_id)

    @staticmethod
    async def get_by_user_id_for_update(session: AsyncSession, user_id: int) -> StreakState | None:
        stmt = select(StreakState).where(StreakState.user_id == user_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create_for_update(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> StreakState:
        empty = StreakRecord.empty()
        stmt = (
            postgresql_insert(StreakState)
            .values(
                user_id=user_id,
                current_streak=empty.current_streak,
                longest_streak=empty.longest_streak,
                freezes_available=empty.freezes_available,
                grace_used_this_week=empty.grace_used_this_week,
                version=0,
                updated_at=now_utc,
            )
            .on_conflict_do_nothing(index_elements=[StreakState.user_id])
        )
        await session.execute(stmt)

        state = await StreakRepo.get_by_user_id_for_update(session, user_id)
        if state is None:
            raise RuntimeError(f"streak_state row missing after upsert for user_id={user_id}")
        return state

    @staticmethod
    async def list_active_between(
        session: AsyncSession,
        *,
        active_from_utc: datetime,
        active_until_utc: datetime,
        limit: int,
        after_user_id: int = 0,
    ) -> list[StreakState]:
        stmt = (
            select(StreakState)
            .where(
                StreakState.user_id > after_user_id,
                StreakState.current_streak > 0,
                StreakState.last_active_at >= active_from_utc,
                StreakState.last_active_at < active_until_utc,
            )
            .order_by(StreakState.user_id.asc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_active_since(session: AsyncSession, *, since_utc: datetime) -> int:
        stmt = select(func.count(StreakState.user_id)).where(StreakState.last_active_at >= since_utc)
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def activity_summary(session: AsyncSession, *, now_utc: datetime) -> dict[str, float | int]:
        active_day = await StreakRepo.count_active_since(session, since_utc=now_utc - timedelta(days=1))
        active_week = await StreakRepo.count_active_since(session, since_utc=now_utc - timedelta(days=7))
        active_month = await StreakRepo.count_active_since(session, since_utc=now_utc - timedelta(days=30))

        stmt = select(
            func.count(StreakState.user_id),
            func.avg(StreakState.current_streak),
            func.max(StreakState.current_streak),
            func.max(StreakState.longest_streak),
        )
        result = await session.execute(stmt)
        total_users, avg_streak, max_streak, max_longest = result.one()
        return {
            "total_users": int(total_users or 0),
            "active_day": active_day,
            "active_week": active_week,
            "active_month": active_month,
            "avg_streak": round(float(avg_streak or 0), 1),
            "max_streak": int(max_streak or 0),
            "max_longest_streak": int(max_longest or 0),
        }
