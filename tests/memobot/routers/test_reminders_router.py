"""Tests for the reminders API."""

from datetime import timedelta

from fastapi.testclient import TestClient

from memobot.models.reminder import REMINDER_SENT
from memobot.utils.time import utcnow


def test_create_reminder(client: TestClient, setup_memory):
    remind_at = utcnow() + timedelta(days=1)
    resp = client.post(
        "/reminders",
        json={
            "memory_id": str(setup_memory.id),
            "title": "Bring two photos",
            "remind_at": remind_at.isoformat(),
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["channels"] == ["email"]


def test_create_reminder_in_the_past(client: TestClient, setup_memory):
    resp = client.post(
        "/reminders",
        json={
            "memory_id": str(setup_memory.id),
            "title": "Too late",
            "remind_at": (utcnow() - timedelta(hours=1)).isoformat(),
        },
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]


def test_create_reminder_with_unknown_channel(client: TestClient, setup_memory):
    resp = client.post(
        "/reminders",
        json={
            "memory_id": str(setup_memory.id),
            "title": "Pigeon post",
            "remind_at": (utcnow() + timedelta(hours=1)).isoformat(),
            "channels": ["pigeon"],
        },
    )
    assert resp.status_code == 422


def test_list_reminders_is_paginated(client: TestClient, make_reminder):
    for days in (3, 1, 2):
        make_reminder(remind_at=utcnow() + timedelta(days=days))
    make_reminder(status=REMINDER_SENT)

    page = client.get("/reminders", params={"status": "pending", "size": 2}).json()

    assert page["total"] == 3
    assert len(page["items"]) == 2
    first, second = (item["remind_at"] for item in page["items"])
    assert first < second


def test_update_cancel_and_delete(client: TestClient, make_reminder):
    reminder = make_reminder()

    patched = client.patch(f"/reminders/{reminder.id}", json={"title": "Renew passport online"})
    assert patched.json()["title"] == "Renew passport online"

    cancelled = client.post(f"/reminders/{reminder.id}/cancel")
    assert cancelled.json()["status"] == "cancelled"

    again = client.patch(f"/reminders/{reminder.id}", json={"title": "x"})
    assert again.status_code == 409

    doomed = make_reminder()
    assert client.delete(f"/reminders/{doomed.id}").status_code == 204
    assert client.get(f"/reminders/{doomed.id}").status_code == 404


def test_overdue_reminder_is_locked(client: TestClient, setup_due_reminder):
    resp = client.delete(f"/reminders/{setup_due_reminder.id}")
    assert resp.status_code == 409
