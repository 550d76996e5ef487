"""Celery application configuration."""

from celery import Celery

from memobot.config import get_settings
from memobot.infra.logging_config import LoggingConfig

settings = get_settings()

broker_url = settings.celery_broker_url or settings.redis_url

LoggingConfig.configure(settings.log_level)

celery_app = Celery(
    "memobot",
    broker=broker_url,
    backend=broker_url,
    include=[
        "memobot.tasks.reminder_task",
        "memobot.tasks.tag_merge_task",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "process-due-reminders": {
            "task": "memobot.tasks.reminder_task.process_due_reminders_task",
            "schedule": float(settings.reminder_scan_interval_seconds),
        },
    },
)
