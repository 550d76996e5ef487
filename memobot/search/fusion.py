"""Weighted Reciprocal Rank Fusion over independently ranked result lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Sequence
from uuid import UUID

from memobot.search.base import SearchHit
from memobot.utils.time import as_utc

DEFAULT_RRF_K = 50

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class FusedHit:
    memory_id: UUID
    score: float
    created_at: datetime
    ranks: dict[str, int] = field(default_factory=dict)


def rrf_score(rank: int, k: int = DEFAULT_RRF_K) -> float:
    """1 / (k + rank) for a 1-indexed rank; 0 for absent documents."""
    if rank < 1:
        return 0.0
    return 1.0 / (k + rank)


def reciprocal_rank_fusion(
    ranked_lists: Mapping[str, Sequence[SearchHit]],
    weights: Mapping[str, float],
    k: int = DEFAULT_RRF_K,
    limit: int | None = None,
) -> list[FusedHit]:
    """
    Fuse ranked lists: score(doc) = sum(weight[source] / (k + rank[source](doc))).

    A document contributes only for sources it appears in. Ties are broken by
    most recent created_at. Duplicate ids within one list keep their best rank.
    """
    fused: dict[UUID, FusedHit] = {}
    for source, hits in ranked_lists.items():
        weight = weights.get(source, 1.0)
        for rank, hit in enumerate(hits, start=1):
            entry = fused.get(hit.memory_id)
            if entry is None:
                entry = FusedHit(
                    memory_id=hit.memory_id,
                    score=0.0,
                    created_at=as_utc(hit.created_at) or _EPOCH,
                )
                fused[hit.memory_id] = entry
            if source in entry.ranks:
                continue
            entry.ranks[source] = rank
            entry.score += weight * rrf_score(rank, k)
    ordered = sorted(
        fused.values(), key=lambda h: (h.score, h.created_at), reverse=True
    )
    return ordered[:limit] if limit is not None else ordered
