from celery import Celery
from celery.signals import setup_logging

from fittrack.core.config import get_settings
from fittrack.core.logging import configure_logging

settings = get_settings()

celery_app = Celery(
    "fittrack",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "fittrack.workers.tasks.streak_reminders",
        "fittrack.workers.tasks.retention_cleanup",
    ],
)

celery_app.conf.update(
    task_default_queue="q_normal",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.app_timezone,
    enable_utc=True,
    broker_connection_retry_on_startup=True,
)


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    configure_logging(get_settings().log_level, service="fittrack-worker")


@celery_app.task(name="fittrack.workers.celery_app.ping")
def ping() -> str:
    return "pong"
