"""Memories API: list, search, relationships, delete."""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from memobot.collaborators.embedding import Embedder
from memobot.core.errors import TransientDependencyFailure
from memobot.db import get_db
from memobot.models.user import User
from memobot.routers.utils.dependencies import get_current_user, get_embedder
from memobot.schemas.memory import (
    MemoryRead,
    RelatedMemoryRead,
    RelationshipCreate,
    RelationshipRead,
    RetrievedMemoryRead,
)
from memobot.services.memory_service import MemoryService
from memobot.services.relationship_service import RelationshipService
from memobot.services.retrieval_service import RetrievalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/memories", tags=["memories"])


@router.get("", response_model=List[MemoryRead])
def list_memories(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    embedder: Embedder = Depends(get_embedder),
) -> List[MemoryRead]:
    memories = MemoryService(db, embedder).list_memories(current_user.id, limit=limit)
    return [MemoryRead.model_validate(m) for m in memories]


@router.get("/search", response_model=List[RetrievedMemoryRead])
async def search_memories(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    embedder: Embedder = Depends(get_embedder),
) -> List[RetrievedMemoryRead]:
    """Hybrid search; degrades to full-text only if the embedding call fails."""
    retrieval = RetrievalService(db, embedder)
    try:
        items = await retrieval.hybrid_search(current_user.id, q, limit=limit)
    except TransientDependencyFailure as e:
        logger.warning("Hybrid search unavailable, using full-text: %s", e)
        items = retrieval.lexical_search(current_user.id, q, limit=limit)
    return [RetrievedMemoryRead.model_validate(i) for i in items]


@router.get("/{memory_id}", response_model=MemoryRead)
def get_memory(
    memory_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    embedder: Embedder = Depends(get_embedder),
) -> MemoryRead:
    return MemoryRead.model_validate(
        MemoryService(db, embedder).get_memory(current_user.id, memory_id)
    )


@router.get("/{memory_id}/related", response_model=List[RelatedMemoryRead])
def get_related_memories(
    memory_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[RelatedMemoryRead]:
    """Related memories in either direction of the stored edge, strongest first."""
    related = RelationshipService(db).related_for_display(current_user.id, memory_id)
    return [RelatedMemoryRead.model_validate(r) for r in related]


@router.post(
    "/{memory_id}/relationships", response_model=RelationshipRead, status_code=201
)
def link_memories(
    memory_id: UUID,
    body: RelationshipCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RelationshipRead:
    edge = RelationshipService(db).link_manual(
        current_user.id, memory_id, body.other_memory_id
    )
    return RelationshipRead.model_validate(edge)


@router.delete("/{memory_id}/relationships/{other_id}", status_code=204)
def unlink_memories(
    memory_id: UUID,
    other_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    if not RelationshipService(db).unlink(current_user.id, memory_id, other_id):
        raise HTTPException(status_code=404, detail="Relationship not found")
    return Response(status_code=204)


@router.post(
    "/{memory_id}/relationships/recompute", response_model=List[RelationshipRead]
)
def recompute_relationships(
    memory_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[RelationshipRead]:
    edges = RelationshipService(db).recompute(current_user.id, memory_id)
    return [RelationshipRead.model_validate(e) for e in edges]


@router.delete("/{memory_id}", status_code=204)
def delete_memory(
    memory_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    embedder: Embedder = Depends(get_embedder),
) -> Response:
    MemoryService(db, embedder).soft_delete(current_user.id, memory_id)
    return Response(status_code=204)
