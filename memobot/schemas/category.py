from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class CategoryRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    memory_count: int

    model_config = ConfigDict(from_attributes=True)


class CategoryRecalculateResponse(BaseModel):
    updated: int
