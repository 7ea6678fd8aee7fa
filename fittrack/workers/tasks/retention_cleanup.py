from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog
from celery.schedules import crontab

from fittrack.core.config import get_settings
from fittrack.db.repo.processed_actions_repo import ProcessedActionsRepo
from fittrack.db.session import SessionLocal
from fittrack.workers.asyncio_runner import run_async_job
from fittrack.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


def _clamp_retention_days(value: int) -> int:
    return max(1, min(3650, int(value)))


def _clamp_batch_size(value: int) -> int:
    return max(1, min(50000, int(value)))


async def purge_processed_actions_async(
    *,
    now_utc: datetime | None = None,
    batch_size: int = 5000,
    max_batches: int = 20,
) -> dict[str, int]:
    settings = get_settings()
    retention_days = _clamp_retention_days(settings.processed_actions_retention_days)
    cutoff_utc = (now_utc or datetime.now(timezone.utc)) - timedelta(days=retention_days)
    resolved_batch_size = _clamp_batch_size(batch_size)

    rows_deleted = 0
    batches_executed = 0
    for _ in range(max(1, int(max_batches))):
        async with SessionLocal.begin() as session:
            deleted = await ProcessedActionsRepo.delete_processed_before(
                session,
                cutoff_utc=cutoff_utc,
                limit=resolved_batch_size,
            )
        batches_executed += 1
        rows_deleted += deleted
        if deleted < resolved_batch_size:
            break

    result = {
        "retention_days": retention_days,
        "rows_deleted": rows_deleted,
        "batches_executed": batches_executed,
    }
    logger.info("processed_actions_purge_finished", **result)
    return result


@celery_app.task(name="fittrack.workers.tasks.retention_cleanup.purge_processed_actions")
def purge_processed_actions(batch_size: int = 5000, max_batches: int = 20) -> dict[str, int]:
    return run_async_job(
        purge_processed_actions_async(batch_size=batch_size, max_batches=max_batches),
        job_name="purge_processed_actions",
    )


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "purge-processed-actions-daily-0400": {
            "task": "fittrack.workers.tasks.retention_cleanup.purge_processed_actions",
            "schedule": crontab(hour=4, minute=0),
            "options": {"queue": "q_normal"},
        },
    }
)
