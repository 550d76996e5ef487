"""
Reminder CRUD and state machine.

pending -> sent | failed | cancelled. Users may edit, cancel or delete a
reminder only while it is pending and its remind_at is still in the future.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Query, Session

from memobot.core.errors import NotFound, StateConflict, ValidationFailure
from memobot.models.memory import Memory
from memobot.models.reminder import (
    REMINDER_CANCELLED,
    REMINDER_FAILED,
    REMINDER_PENDING,
    Reminder,
)
from memobot.schemas.messages import DIRECT_REPLY_CHANNELS, Channel
from memobot.utils.time import as_utc, utcnow

EMAIL_CHANNEL = "email"
REMINDER_CHANNELS = frozenset({EMAIL_CHANNEL} | {c.value for c in DIRECT_REPLY_CHANNELS})


def default_channels(source_platform: Optional[str]) -> List[str]:
    """Email, plus the originating platform when it can message the user directly."""
    channels = [EMAIL_CHANNEL]
    if source_platform in {c.value for c in DIRECT_REPLY_CHANNELS}:
        channels.append(source_platform)
    return channels


def _validate_channels(channels: Iterable[str]) -> List[str]:
    cleaned: List[str] = []
    for channel in channels:
        if channel not in REMINDER_CHANNELS:
            raise ValidationFailure(
                f"Unsupported reminder channel {channel}",
                user_message=f"Reminders can't be sent via {channel}.",
            )
        if channel not in cleaned:
            cleaned.append(channel)
    if not cleaned:
        raise ValidationFailure(
            "Reminder needs at least one channel",
            user_message="Pick at least one way to be reminded.",
        )
    return cleaned


class ReminderService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self._clock = clock

    def _require_future(self, remind_at: datetime) -> datetime:
        remind_at = as_utc(remind_at)
        if remind_at <= self._clock():
            raise StateConflict(
                "Reminder time is in the past",
                user_message="The reminder time must be in the future.",
            )
        return remind_at

    def _assert_editable(self, reminder: Reminder) -> None:
        if reminder.status != REMINDER_PENDING:
            raise StateConflict(
                f"Reminder is {reminder.status}",
                user_message=f"This reminder is already {reminder.status} and can't be changed.",
            )
        if as_utc(reminder.remind_at) <= self._clock():
            raise StateConflict(
                "Reminder time has passed",
                user_message="This reminder is already due and can't be changed.",
            )

    def create_reminder(
        self,
        user_id: UUID,
        memory_id: UUID,
        title: str,
        remind_at: datetime,
        summary: Optional[str] = None,
        channels: Optional[Iterable[str]] = None,
    ) -> Reminder:
        memory = (
            self.db.query(Memory)
            .filter(
                Memory.id == memory_id,
                Memory.user_id == user_id,
                Memory.deleted_at.is_(None),
            )
            .first()
        )
        if memory is None:
            raise NotFound(f"Memory {memory_id} not found")
        reminder = Reminder(
            user_id=user_id,
            memory_id=memory_id,
            title=title.strip() or (memory.title or "Reminder"),
            summary=summary,
            remind_at=self._require_future(remind_at),
            channels=_validate_channels(
                channels if channels is not None else default_channels(memory.source_platform)
            ),
            status=REMINDER_PENDING,
        )
        self.db.add(reminder)
        self.db.commit()
        self.db.refresh(reminder)
        return reminder

    def get_reminder(self, user_id: UUID, reminder_id: UUID) -> Reminder:
        reminder = (
            self.db.query(Reminder)
            .filter(Reminder.id == reminder_id, Reminder.user_id == user_id)
            .first()
        )
        if reminder is None:
            raise NotFound(f"Reminder {reminder_id} not found")
        return reminder

    def get_reminders_query(
        self, user_id: UUID, status: Optional[str] = None
    ) -> Query[Reminder]:
        """Query for a user's reminders (for pagination)."""
        q = self.db.query(Reminder).filter(Reminder.user_id == user_id)
        if status is not None:
            q = q.filter(Reminder.status == status)
        return q.order_by(Reminder.remind_at.asc())

    def update_reminder(
        self,
        user_id: UUID,
        reminder_id: UUID,
        title: Optional[str] = None,
        summary: Optional[str] = None,
        remind_at: Optional[datetime] = None,
        channels: Optional[Iterable[str]] = None,
    ) -> Reminder:
        reminder = self.get_reminder(user_id, reminder_id)
        self._assert_editable(reminder)
        if title is not None:
            reminder.title = title
        if summary is not None:
            reminder.summary = summary
        if remind_at is not None:
            reminder.remind_at = self._require_future(remind_at)
        if channels is not None:
            reminder.channels = _validate_channels(channels)
        self.db.commit()
        self.db.refresh(reminder)
        return reminder

    def cancel_reminder(self, user_id: UUID, reminder_id: UUID) -> Reminder:
        reminder = self.get_reminder(user_id, reminder_id)
        self._assert_editable(reminder)
        reminder.status = REMINDER_CANCELLED
        self.db.commit()
        self.db.refresh(reminder)
        return reminder

    def delete_reminder(self, user_id: UUID, reminder_id: UUID) -> None:
        reminder = self.get_reminder(user_id, reminder_id)
        self._assert_editable(reminder)
        self.db.delete(reminder)
        self.db.commit()

    def requeue_failed(
        self, reminder_id: UUID, remind_at: Optional[datetime] = None
    ) -> Reminder:
        """Operator retry: move a failed reminder back to pending."""
        reminder = self.db.get(Reminder, reminder_id)
        if reminder is None:
            raise NotFound(f"Reminder {reminder_id} not found")
        if reminder.status != REMINDER_FAILED:
            raise StateConflict(f"Only failed reminders can be requeued, got {reminder.status}")
        reminder.status = REMINDER_PENDING
        reminder.remind_at = as_utc(remind_at) if remind_at else self._clock()
        reminder.last_error = None
        self.db.commit()
        self.db.refresh(reminder)
        return reminder

    def get_due_reminders(self, now: datetime, limit: int = 100) -> List[Reminder]:
        return (
            self.db.query(Reminder)
            .filter(Reminder.status == REMINDER_PENDING, Reminder.remind_at <= now)
            .order_by(Reminder.remind_at.asc())
            .limit(limit)
            .all()
        )
