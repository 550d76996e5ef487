"""Pydantic schemas for memories, search results and relationships."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MemoryRead(BaseModel):
    """Public view of a memory. The embedding is never exposed."""

    id: UUID
    title: Optional[str] = None
    content: str
    summary: Optional[str] = None
    source_platform: Optional[str] = None
    is_forwarded: bool = False
    occurred_at: Optional[datetime] = None
    created_at: datetime
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("tags", mode="before")
    @classmethod
    def tag_names(cls, value):
        return [getattr(t, "name", t) for t in value or []]

    @field_validator("category", mode="before")
    @classmethod
    def category_name(cls, value):
        return getattr(value, "name", value)


class RetrievedMemoryRead(BaseModel):
    memory: MemoryRead
    score: float
    source: str
    via: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)


class RelatedMemoryRead(BaseModel):
    memory: MemoryRead
    similarity: float
    relationship_type: str

    model_config = ConfigDict(from_attributes=True)


class RelationshipCreate(BaseModel):
    other_memory_id: UUID


class RelationshipRead(BaseModel):
    id: UUID
    memory_a_id: UUID
    memory_b_id: UUID
    relationship_type: str
    similarity_score: float

    model_config = ConfigDict(from_attributes=True)
