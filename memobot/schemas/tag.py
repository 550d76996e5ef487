from __future__ import annotations

from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class TagRead(BaseModel):
    id: UUID
    name: str
    usage_count: int

    model_config = ConfigDict(from_attributes=True)


class TagMergeGroupRead(BaseModel):
    canonical: str
    merged: List[str]


class TagMergeResponse(BaseModel):
    merged: int
    groups: int
    message: str
    details: List[TagMergeGroupRead]
