"""Reminders API: list, create, update, cancel, delete."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from memobot.db import get_db
from memobot.models.user import User
from memobot.routers.utils.dependencies import get_current_user
from memobot.schemas.reminder import ReminderCreate, ReminderRead, ReminderUpdate
from memobot.services.reminder_service import ReminderService

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.get("", response_model=Page[ReminderRead])
def list_reminders(
    params: Params = Depends(),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[ReminderRead]:
    """List the caller's reminders, soonest first."""
    query = ReminderService(db).get_reminders_query(current_user.id, status=status)
    return paginate(query, params=params)


@router.post("", response_model=ReminderRead, status_code=201)
def create_reminder(
    body: ReminderCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReminderRead:
    reminder = ReminderService(db).create_reminder(
        current_user.id,
        body.memory_id,
        title=body.title,
        remind_at=body.remind_at,
        summary=body.summary,
        channels=body.channels,
    )
    return ReminderRead.model_validate(reminder)


@router.get("/{reminder_id}", response_model=ReminderRead)
def get_reminder(
    reminder_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReminderRead:
    return ReminderRead.model_validate(
        ReminderService(db).get_reminder(current_user.id, reminder_id)
    )


@router.patch("/{reminder_id}", response_model=ReminderRead)
def update_reminder(
    reminder_id: UUID,
    body: ReminderUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReminderRead:
    """Only pending reminders whose time has not passed can be edited."""
    reminder = ReminderService(db).update_reminder(
        current_user.id, reminder_id, **body.model_dump(exclude_unset=True)
    )
    return ReminderRead.model_validate(reminder)


@router.post("/{reminder_id}/cancel", response_model=ReminderRead)
def cancel_reminder(
    reminder_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReminderRead:
    return ReminderRead.model_validate(
        ReminderService(db).cancel_reminder(current_user.id, reminder_id)
    )


@router.delete("/{reminder_id}", status_code=204)
def delete_reminder(
    reminder_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    ReminderService(db).delete_reminder(current_user.id, reminder_id)
    return Response(status_code=204)
