"""Fixtures for reminders."""

from datetime import timedelta

import pytest

from memobot.models.reminder import REMINDER_PENDING, Reminder
from memobot.utils.time import utcnow


@pytest.fixture(scope="function")
def make_reminder(db, setup_user, setup_memory):
    """Factory inserting a reminder row directly, so past times are allowed."""

    def _make(
        remind_at=None,
        status=REMINDER_PENDING,
        channels=None,
        memory=None,
        title="Renew passport",
    ):
        reminder = Reminder(
            user_id=setup_user.id,
            memory_id=(memory or setup_memory).id,
            title=title,
            remind_at=remind_at or utcnow() + timedelta(hours=1),
            channels=channels or ["email"],
            status=status,
        )
        db.add(reminder)
        db.commit()
        db.refresh(reminder)
        return reminder

    return _make


@pytest.fixture(scope="function")
def setup_due_reminder(make_reminder):
    return make_reminder(remind_at=utcnow() - timedelta(minutes=5))
