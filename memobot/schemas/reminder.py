"""Pydantic schemas for reminders."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReminderCreate(BaseModel):
    memory_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    remind_at: datetime
    summary: Optional[str] = None
    channels: Optional[List[str]] = None


class ReminderUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    remind_at: Optional[datetime] = None
    summary: Optional[str] = None
    channels: Optional[List[str]] = None


class ReminderRead(BaseModel):
    id: UUID
    memory_id: UUID
    title: str
    summary: Optional[str] = None
    remind_at: datetime
    channels: List[str]
    status: str
    sent_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
