from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.db.models.processed_actions import ProcessedAction


class ProcessedActionsRepo:
    @staticmethod
    async def try_claim(
        session: AsyncSession,
        *,
        idempotency_key: str,
        user_id: int,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            postgresql_insert(ProcessedAction)
            .values(
                idempotency_key=idempotency_key,
                user_id=user_id,
                processed_at=now_utc,
            )
            .on_conflict_do_nothing(index_elements=[ProcessedAction.idempotency_key])
            .returning(ProcessedAction.idempotency_key)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_for_update(session: AsyncSession, *, idempotency_key: str) -> ProcessedAction | None:
        stmt = (
            select(ProcessedAction)
            .where(ProcessedAction.idempotency_key == idempotency_key)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def store_result(
        session: AsyncSession,
        *,
        idempotency_key: str,
        outcome: str,
        response: dict[str, object],
    ) -> None:
        stmt = (
            update(ProcessedAction)
            .where(ProcessedAction.idempotency_key == idempotency_key)
            .values(outcome=outcome, response=response)
        )
        await session.execute(stmt)

    @staticmethod
    async def delete_processed_before(
        session: AsyncSession,
        *,
        cutoff_utc: datetime,
        limit: int,
    ) -> int:
        resolved_limit = max(1, int(limit))
        candidate_keys = (
            select(ProcessedAction.idempotency_key)
            .where(ProcessedAction.processed_at < cutoff_utc)
            .order_by(ProcessedAction.processed_at.asc())
            .limit(resolved_limit)
            .scalar_subquery()
        )
        stmt = (
            delete(ProcessedAction)
            .where(ProcessedAction.idempotency_key.in_(candidate_keys))
            .returning(ProcessedAction.idempotency_key)
        )
        result = await session.execute(stmt)
        return len(list(result.scalars()))
