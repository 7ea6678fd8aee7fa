from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from celery.schedules import crontab

from fittrack.core.clock import get_clock
from fittrack.core.config import get_settings
from fittrack.db.repo.streak_repo import StreakRepo
from fittrack.db.session import SessionLocal
from fittrack.services.streak_notifications import build_at_risk_body, send_streak_notifications
from fittrack.streak.time import local_day_bounds_utc
from fittrack.workers.asyncio_runner import run_async_job
from fittrack.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


async def send_streak_reminders_async(
    *,
    now_utc: datetime | None = None,
    batch_size: int | None = None,
) -> dict[str, int]:
    """Notifies users who were active yesterday but not yet today."""
    settings = get_settings()
    clock = get_clock()
    resolved_now = now_utc or clock.now()
    resolved_batch_size = max(1, int(batch_size or settings.streak_reminder_batch_size))

    yesterday = clock.local_date(resolved_now) - timedelta(days=1)
    active_from_utc, active_until_utc = local_day_bounds_utc(yesterday, clock.tz)

    candidates = 0
    delivered = 0
    last_user_id = 0
    while True:
        async with SessionLocal() as session:
            states = await StreakRepo.list_active_between(
                session,
                active_from_utc=active_from_utc,
                active_until_utc=active_until_utc,
                limit=resolved_batch_size,
                after_user_id=last_user_id,
            )
        if not states:
            break

        bodies = [
            build_at_risk_body(
                user_id=state.user_id,
                current_streak=state.current_streak,
                longest_streak=state.longest_streak,
                sent_at=resolved_now,
            )
            for state in states
        ]
        candidates += len(bodies)
        delivered += await send_streak_notifications(bodies)
        last_user_id = states[-1].user_id
        if len(states) < resolved_batch_size:
            break

    result = {"candidates": candidates, "delivered": delivered}
    logger.info("streak_reminders_finished", local_day=yesterday.isoformat(), **result)
    return result


@celery_app.task(name="fittrack.workers.tasks.streak_reminders.send_streak_reminders")
def send_streak_reminders(batch_size: int | None = None) -> dict[str, int]:
    return run_async_job(
        send_streak_reminders_async(batch_size=batch_size),
        job_name="send_streak_reminders",
    )


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "streak-reminders-daily": {
            "task": "fittrack.workers.tasks.streak_reminders.send_streak_reminders",
            "schedule": crontab(hour=max(0, min(23, get_settings().streak_reminder_hour)), minute=0),
            "options": {"queue": "q_normal"},
        },
    }
)
