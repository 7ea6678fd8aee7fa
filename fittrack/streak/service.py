from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.core.clock import Clock
from fittrack.db.repo.processed_actions_repo import ProcessedActionsRepo
from fittrack.db.repo.streak_repo import StreakRepo
from fittrack.streak.errors import StreakIdempotencyConflictError
from fittrack.streak.rules import describe_streak, transition
from fittrack.streak.types import StreakActivityResult, StreakRecord, StreakStatus

logger = structlog.get_logger(__name__)

CLAIM_ATTEMPTS = 3


class StreakService:
    @staticmethod
    async def _replayed_result(
        session: AsyncSession,
        *,
        user_id: int,
        idempotency_key: str,
    ) -> StreakActivityResult | None:
        # Blocks until a concurrent holder of the same key commits or rolls back.
        processed = await ProcessedActionsRepo.get_for_update(session, idempotency_key=idempotency_key)
        if processed is None:
            return None
        if processed.user_id != user_id:
            logger.warning(
                "streak_idempotency_key_user_mismatch",
                user_id=user_id,
                owner_user_id=processed.user_id,
            )
            raise StreakIdempotencyConflictError
        if processed.response is None:
            return None
        return StreakActivityResult.from_payload(processed.response, replayed=True)

    @staticmethod
    async def _claim_or_replay(
        session: AsyncSession,
        *,
        user_id: int,
        idempotency_key: str,
        now_utc: datetime,
    ) -> StreakActivityResult | None:
        """Returns ``None`` once the key is claimed, or the result stored under it."""
        for _ in range(CLAIM_ATTEMPTS):
            claimed = await ProcessedActionsRepo.try_claim(
                session,
                idempotency_key=idempotency_key,
                user_id=user_id,
                now_utc=now_utc,
            )
            if claimed:
                return None
            replayed = await StreakService._replayed_result(
                session,
                user_id=user_id,
                idempotency_key=idempotency_key,
            )
            if replayed is not None:
                return replayed

        logger.warning("streak_idempotency_claim_failed", user_id=user_id, attempts=CLAIM_ATTEMPTS)
        raise StreakIdempotencyConflictError

    @staticmethod
    async def record_activity(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
        clock: Clock,
        idempotency_key: str | None = None,
    ) -> StreakActivityResult:
        """Applies one qualifying event for ``user_id`` inside the caller's transaction.

        The user's row is locked for the whole read-modify-write, so concurrent
        events for the same user are applied one after the other. A repeated
        ``idempotency_key`` returns the stored result without touching the streak;
        a key held by another user, or one that cannot be claimed, raises
        ``StreakIdempotencyConflictError``.
        """
        if idempotency_key:
            replayed = await StreakService._claim_or_replay(
                session,
                user_id=user_id,
                idempotency_key=idempotency_key,
                now_utc=now_utc,
            )
            if replayed is not None:
                logger.info(
                    "streak_activity_replayed",
                    user_id=user_id,
                    outcome=replayed.outcome.value,
                )
                return replayed

        state = await StreakRepo.get_or_create_for_update(session, user_id=user_id, now_utc=now_utc)
        result = transition(StreakRepo.to_record(state), now_utc, clock=clock)

        StreakRepo.apply_record(state, result.record, now_utc=now_utc)
        await session.flush()

        activity = StreakActivityResult.from_transition(result)
        if idempotency_key:
            await ProcessedActionsRepo.store_result(
                session,
                idempotency_key=idempotency_key,
                outcome=activity.outcome.value,
                response=activity.to_payload(),
            )

        logger.info(
            "streak_activity_recorded",
            user_id=user_id,
            outcome=activity.outcome.value,
            current_streak=activity.current_streak,
            longest_streak=activity.longest_streak,
        )
        return activity

    @staticmethod
    async def get_status(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
        clock: Clock,
    ) -> StreakStatus:
        state = await StreakRepo.get_by_user_id(session, user_id)
        record = StreakRepo.to_record(state) if state is not None else StreakRecord.empty()
        return describe_streak(record, now_utc, clock=clock)
