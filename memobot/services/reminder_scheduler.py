"""
Time-driven reminder dispatch.

Each due reminder is dispatched on every configured channel. Full success marks
it sent; any failed channel marks it failed with the errors recorded. One
reminder's failure never stops the rest of the scan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from memobot.collaborators.notifications import (
    EMAIL_CHANNEL,
    NotificationDispatcher,
    NotificationResult,
    ReminderNotice,
)
from memobot.config import Settings, get_settings
from memobot.core.linker import Linker
from memobot.models.reminder import (
    REMINDER_CANCELLED,
    REMINDER_FAILED,
    REMINDER_SENT,
    Reminder,
)
from memobot.models.user import User
from memobot.schemas.messages import Channel
from memobot.services.reminder_service import ReminderService
from memobot.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ReminderDispatchResult:
    reminder_id: UUID
    status: str
    notifications: List[NotificationResult] = field(default_factory=list)
    error: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "reminder_id": str(self.reminder_id),
            "status": self.status,
            "notifications": [n.as_dict() for n in self.notifications],
            "error": self.error,
        }


@dataclass
class ReminderScanSummary:
    processed: int = 0
    sent: int = 0
    failed: int = 0
    results: List[ReminderDispatchResult] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "results": [r.as_dict() for r in self.results],
        }


class ReminderScheduler:
    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self._clock = clock
        self._linker = Linker(db)

    async def process_due_reminders(self, limit: int = 100) -> ReminderScanSummary:
        now = self._clock()
        summary = ReminderScanSummary()
        for reminder in ReminderService(self.db, clock=self._clock).get_due_reminders(
            now, limit=limit
        ):
            try:
                result = await self._dispatch(reminder, now)
            except Exception as e:
                logger.exception("Reminder %s dispatch crashed", reminder.id)
                self.db.rollback()
                result = ReminderDispatchResult(reminder.id, REMINDER_FAILED, error=str(e))
                self._mark(reminder, REMINDER_FAILED, now, str(e))
            summary.processed += 1
            if result.status == REMINDER_SENT:
                summary.sent += 1
            elif result.status == REMINDER_FAILED:
                summary.failed += 1
            summary.results.append(result)
        if summary.processed:
            logger.info(
                "Reminder scan: processed=%d sent=%d failed=%d",
                summary.processed,
                summary.sent,
                summary.failed,
            )
        return summary

    def _mark(
        self, reminder: Reminder, status: str, now: datetime, error: Optional[str] = None
    ) -> None:
        reminder.status = status
        reminder.last_error = error
        if status == REMINDER_SENT:
            reminder.sent_at = now
        self.db.commit()

    def _recipient(self, reminder: Reminder, channel: str) -> Optional[str]:
        if channel == EMAIL_CHANNEL:
            user = self.db.get(User, reminder.user_id)
            return user.email if user else None
        try:
            return self._linker.delivery_address(reminder.user_id, Channel(channel))
        except ValueError:
            return None

    def _notice(self, reminder: Reminder) -> ReminderNotice:
        memory = reminder.memory
        return ReminderNotice(
            reminder_title=reminder.title,
            reminder_summary=reminder.summary,
            remind_at=as_utc(reminder.remind_at),
            memory_title=(memory.title if memory and memory.title else "Untitled memory"),
            memory_summary=memory.summary if memory else None,
            memory_url=f"{self.settings.app_url.rstrip('/')}/memories/{reminder.memory_id}",
        )

    async def _dispatch(self, reminder: Reminder, now: datetime) -> ReminderDispatchResult:
        if reminder.memory is None or reminder.memory.deleted_at is not None:
            self._mark(reminder, REMINDER_CANCELLED, now, "Memory was deleted")
            return ReminderDispatchResult(
                reminder.id, REMINDER_CANCELLED, error="Memory was deleted"
            )
        notice = self._notice(reminder)
        notifications = []
        for channel in reminder.channels or [EMAIL_CHANNEL]:
            outcome = await self.dispatcher.send(
                channel, self._recipient(reminder, channel), notice
            )
            notifications.append(outcome)
        failures = [n for n in notifications if not n.success]
        if notifications and not failures:
            self._mark(reminder, REMINDER_SENT, now)
            return ReminderDispatchResult(reminder.id, REMINDER_SENT, notifications)
        error = "; ".join(f"{n.channel}: {n.error}" for n in failures)
        logger.warning("Reminder %s failed: %s", reminder.id, error)
        self._mark(reminder, REMINDER_FAILED, now, error)
        return ReminderDispatchResult(reminder.id, REMINDER_FAILED, notifications, error)
