"""Tests for hybrid search and network recall."""

import math

import pytest
from fixtures.memory_fixtures import FakeEmbedder, axis, blend

from memobot.core.errors import TransientDependencyFailure
from memobot.services.relationship_service import RelatedCandidate, RelationshipService
from memobot.services.retrieval_service import (
    SOURCE_DIRECT,
    SOURCE_HYBRID,
    SOURCE_LEXICAL,
    SOURCE_RELATED,
    RetrievalService,
)
from memobot.utils.time import utcnow

# Cosine 0.4 with axis 0, orthogonal to everything else in these tests.
QUERY = blend((0, 0.4), (5, math.sqrt(1 - 0.16)))


@pytest.fixture
def graph(db, setup_user, make_memory, test_settings):
    """seed ~ query at 0.4; neighbor is only reachable through the seed's edge."""
    seed = make_memory("Dentist appointment", embedding=axis(0))
    neighbor = make_memory("Insurance card number", embedding=axis(1))
    unrelated = make_memory("Gym locker code", embedding=axis(2))
    RelationshipService(db, settings=test_settings).upsert_relationships(
        setup_user.id, seed.id, [RelatedCandidate(neighbor.id, 0.7)]
    )
    return seed, neighbor, unrelated


def test_network_recall_surfaces_graph_neighbors(db, setup_user, graph, test_settings):
    seed, neighbor, unrelated = graph
    results = RetrievalService(db, settings=test_settings).network_recall(setup_user.id, QUERY)

    assert [r.memory.id for r in results] == [seed.id, neighbor.id]
    assert results[0].source == SOURCE_DIRECT
    assert results[0].score == pytest.approx(0.4)
    assert results[1].source == SOURCE_RELATED
    assert results[1].via == seed.id


def test_network_recall_respects_threshold(db, setup_user, graph, test_settings):
    results = RetrievalService(db, settings=test_settings).network_recall(
        setup_user.id, QUERY, similarity_threshold=0.5
    )
    assert results == []


def test_network_recall_without_expansion(db, setup_user, graph, test_settings):
    seed, _, _ = graph
    results = RetrievalService(db, settings=test_settings).network_recall(
        setup_user.id, QUERY, related_count=0
    )
    assert [r.memory.id for r in results] == [seed.id]


def test_network_recall_with_zero_seeds_returns_nothing(db, setup_user, graph, test_settings):
    results = RetrievalService(db, settings=test_settings).network_recall(
        setup_user.id, QUERY, initial_count=0
    )
    assert results == []


def test_network_recall_does_not_repeat_memories(db, setup_user, make_memory, test_settings):
    first = make_memory("first", embedding=axis(0))
    second = make_memory("second", embedding=blend((0, 0.8), (1, 0.6)))
    RelationshipService(db, settings=test_settings).upsert_relationships(
        setup_user.id, first.id, [RelatedCandidate(second.id, 0.8)]
    )
    results = RetrievalService(db, settings=test_settings).network_recall(setup_user.id, axis(0))
    ids = [r.memory.id for r in results]
    assert ids == [first.id, second.id]
    assert {r.source for r in results} == {SOURCE_DIRECT}


@pytest.mark.asyncio
async def test_hybrid_search_finds_lexical_and_semantic_matches(
    db, setup_user, make_memory, test_settings
):
    passport = make_memory(
        "Passport renewal appointment at the city office", title="Passport renewal"
    )
    make_memory("Buy oat milk and coffee beans", title="Groceries")
    service = RetrievalService(db, FakeEmbedder(), settings=test_settings)

    results = await service.hybrid_search(setup_user.id, "when is my passport renewal")

    assert results[0].memory.id == passport.id
    assert results[0].source == SOURCE_HYBRID


@pytest.mark.asyncio
async def test_hybrid_search_excludes_deleted_memories(db, setup_user, make_memory, test_settings):
    memory = make_memory("Spare key is under the blue pot", title="Spare key")
    memory.deleted_at = utcnow()
    db.commit()
    service = RetrievalService(db, FakeEmbedder(), settings=test_settings)
    assert await service.hybrid_search(setup_user.id, "spare key") == []


@pytest.mark.asyncio
async def test_hybrid_search_propagates_embedding_failure(db, setup_user, test_settings):
    service = RetrievalService(db, FakeEmbedder(fail=True), settings=test_settings)
    with pytest.raises(TransientDependencyFailure):
        await service.hybrid_search(setup_user.id, "anything")


@pytest.mark.asyncio
async def test_hybrid_search_with_zero_limit(db, setup_user, make_memory, test_settings):
    make_memory("Spare key is under the blue pot", title="Spare key")
    embedder = FakeEmbedder()
    service = RetrievalService(db, embedder, settings=test_settings)

    assert await service.hybrid_search(setup_user.id, "spare key", limit=0) == []
    assert embedder.calls == []


def test_lexical_search(db, setup_user, make_memory, test_settings):
    memory = make_memory("Wifi password is hunter2", title="Wifi")
    results = RetrievalService(db, settings=test_settings).lexical_search(setup_user.id, "wifi")
    assert [r.memory.id for r in results] == [memory.id]
    assert results[0].source == SOURCE_LEXICAL


@pytest.mark.asyncio
async def test_recall_appends_network_neighbors(db, setup_user, graph, test_settings):
    seed, neighbor, _ = graph
    embedder = FakeEmbedder(vectors={"teeth": QUERY})
    results = await RetrievalService(db, embedder, settings=test_settings).recall(
        setup_user.id, "teeth"
    )
    ids = [r.memory.id for r in results]
    assert seed.id in ids
    assert neighbor.id in ids
    assert len(ids) == len(set(ids))
