"""Celery tasks for dispatching due reminders."""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import UUID

from memobot.collaborators.notifications import NotificationDispatcher, ResendEmailSender
from memobot.config import get_settings
from memobot.core.errors import MemobotError
from memobot.core.registry import build_adapter_registry
from memobot.infra.celery_app import celery_app
from memobot.infra.logging_config import get_logger
from memobot.services.reminder_scheduler import ReminderScheduler
from memobot.services.reminder_service import ReminderService
from memobot.utils.db.db_session_helper import db_session

logger = get_logger("reminders")


def build_notification_dispatcher() -> NotificationDispatcher:
    settings = get_settings()
    email_sender = None
    if settings.resend_api_key:
        email_sender = ResendEmailSender(
            settings.resend_api_key,
            settings.email_from,
            timeout=settings.provider_call_timeout_seconds,
        )
    else:
        logger.warning("RESEND_API_KEY is not set; email reminders will fail")
    return NotificationDispatcher(build_adapter_registry(settings), email_sender)


async def _process_due_reminders() -> dict[str, Any]:
    dispatcher = build_notification_dispatcher()
    with db_session() as db:
        summary = await ReminderScheduler(db, dispatcher).process_due_reminders()
    return summary.as_dict()


@celery_app.task(name="memobot.tasks.reminder_task.process_due_reminders_task")
def process_due_reminders_task() -> dict[str, Any]:
    """Dispatch every pending reminder whose time has come."""
    return asyncio.run(_process_due_reminders())


@celery_app.task(name="memobot.tasks.reminder_task.requeue_failed_reminder_task")
def requeue_failed_reminder_task(reminder_id_str: str) -> str | None:
    """Move a failed reminder back to pending so the next scan retries it."""
    try:
        reminder_id = UUID(reminder_id_str)
    except ValueError:
        logger.warning("Invalid reminder_id for requeue: %s", reminder_id_str)
        return None
    with db_session() as db:
        try:
            reminder = ReminderService(db).requeue_failed(reminder_id)
        except MemobotError as e:
            logger.warning("Cannot requeue reminder %s: %s", reminder_id, e)
            return None
    return str(reminder.id)
