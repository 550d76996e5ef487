"""Tests for the memory relationship graph."""

import uuid

import pytest
from fixtures.memory_fixtures import axis, blend

from memobot.core.errors import NotFound, StateConflict
from memobot.models.memory import RELATIONSHIP_AUTO, RELATIONSHIP_MANUAL, MemoryRelationship
from memobot.services.relationship_service import (
    RelatedCandidate,
    RelationshipService,
    canonical_pair,
)
from memobot.utils.time import utcnow


@pytest.fixture
def service(db, test_settings):
    return RelationshipService(db, settings=test_settings)


def test_canonical_pair_orders_ids():
    a, b = sorted([uuid.uuid4(), uuid.uuid4()])
    assert canonical_pair(a, b) == (a, b)
    assert canonical_pair(b, a) == (a, b)


def test_edges_are_stored_once_per_pair(db, setup_user, make_memory, service):
    first = make_memory("first")
    second = make_memory("second")

    service.upsert_relationships(setup_user.id, first.id, [RelatedCandidate(second.id, 0.7)])
    service.upsert_relationships(setup_user.id, second.id, [RelatedCandidate(first.id, 0.8)])

    [edge] = db.query(MemoryRelationship).all()
    assert edge.memory_a_id < edge.memory_b_id
    assert {edge.memory_a_id, edge.memory_b_id} == {first.id, second.id}
    assert edge.similarity_score == pytest.approx(0.8)


def test_self_candidates_are_ignored(db, setup_user, make_memory, service):
    memory = make_memory("alone")
    service.upsert_relationships(setup_user.id, memory.id, [RelatedCandidate(memory.id, 1.0)])
    assert db.query(MemoryRelationship).count() == 0


def test_manual_edges_take_precedence(db, setup_user, make_memory, service):
    first = make_memory("first")
    second = make_memory("second")
    service.upsert_relationships(setup_user.id, first.id, [RelatedCandidate(second.id, 0.65)])

    edge = service.link_manual(setup_user.id, second.id, first.id)
    assert (edge.relationship_type, edge.similarity_score) == (RELATIONSHIP_MANUAL, 1.0)

    service.upsert_relationships(setup_user.id, first.id, [RelatedCandidate(second.id, 0.61)])
    [edge] = db.query(MemoryRelationship).all()
    assert (edge.relationship_type, edge.similarity_score) == (RELATIONSHIP_MANUAL, 1.0)


def test_cannot_link_memory_to_itself(setup_user, setup_memory, service):
    with pytest.raises(StateConflict):
        service.link_manual(setup_user.id, setup_memory.id, setup_memory.id)


def test_cannot_link_someone_elses_memory(setup_user, setup_another_user, make_memory, service):
    mine = make_memory("mine")
    theirs = make_memory("theirs", user=setup_another_user)
    with pytest.raises(NotFound):
        service.link_manual(setup_user.id, mine.id, theirs.id)


def test_neighbors_found_from_either_end(setup_user, make_memory, service):
    hub = make_memory("hub")
    low = make_memory("low")
    high = make_memory("high")
    service.upsert_relationships(setup_user.id, hub.id, [RelatedCandidate(low.id, 0.62)])
    service.upsert_relationships(setup_user.id, high.id, [RelatedCandidate(hub.id, 0.9)])

    neighbors = service.neighbors(setup_user.id, hub.id)

    assert [n.memory.id for n in neighbors] == [high.id, low.id]
    assert neighbors[0].relationship_type == RELATIONSHIP_AUTO
    assert service.neighbors(setup_user.id, hub.id, exclude_ids=[high.id], limit=1)[0].memory.id == low.id


def test_neighbors_skip_deleted_memories(db, setup_user, make_memory, service):
    hub = make_memory("hub")
    gone = make_memory("gone")
    service.upsert_relationships(setup_user.id, hub.id, [RelatedCandidate(gone.id, 0.7)])
    gone.deleted_at = utcnow()
    db.commit()
    assert service.neighbors(setup_user.id, hub.id) == []


def test_unlink(setup_user, make_memory, service):
    first = make_memory("first")
    second = make_memory("second")
    service.link_manual(setup_user.id, first.id, second.id)
    assert service.unlink(setup_user.id, second.id, first.id) is True
    assert service.unlink(setup_user.id, second.id, first.id) is False


def test_recompute_links_similar_memories(setup_user, make_memory, service):
    target = make_memory("target", embedding=axis(0))
    similar = make_memory("similar", embedding=blend((0, 0.9), (1, 0.2)))
    make_memory("different", embedding=axis(1))

    edges = service.recompute(setup_user.id, target.id)

    assert len(edges) == 1
    assert {edges[0].memory_a_id, edges[0].memory_b_id} == {target.id, similar.id}
    assert edges[0].similarity_score > 0.6
