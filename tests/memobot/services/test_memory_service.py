"""Tests for MemoryService."""

import pytest
from fixtures.memory_fixtures import FakeEmbedder, axis, blend

from memobot.core.errors import NotFound, TransientDependencyFailure, ValidationFailure
from memobot.models.memory import Memory, MemoryRelationship, MemoryTag, Tag
from memobot.services.memory_service import MemoryService, embedding_text
from memobot.services.relationship_service import RelationshipService


def test_embedding_text_joins_present_parts():
    assert embedding_text("body", "Title", None) == "Title\nbody"


@pytest.mark.asyncio
async def test_create_memory_with_tags(db, setup_user, test_settings):
    service = MemoryService(db, FakeEmbedder(), settings=test_settings)
    memory = await service.create_memory(
        setup_user.id,
        "  Locker 42 at the climbing gym  ",
        title="Gym locker",
        tags=["Fitness", "#fitness", "gym"],
        source_platform="telegram",
    )

    assert memory.content == "Locker 42 at the climbing gym"
    assert memory.embedding is not None
    assert memory.source_platform == "telegram"
    assert sorted(t.name for t in memory.tags) == ["fitness", "gym"]
    fitness = db.query(Tag).filter(Tag.name == "fitness").one()
    assert fitness.usage_count == 1


@pytest.mark.asyncio
async def test_create_memory_links_related_memories(db, setup_user, make_memory, test_settings):
    existing = make_memory("Flight to Lisbon on May 3", embedding=axis(0))
    make_memory("Dentist on Tuesday", embedding=axis(1))
    embedder = FakeEmbedder(default=blend((0, 0.95), (2, 0.3)))

    memory = await MemoryService(db, embedder, settings=test_settings).create_memory(
        setup_user.id, "Hotel in Lisbon booked for May 3-7"
    )

    neighbors = RelationshipService(db, settings=test_settings).neighbors(
        setup_user.id, memory.id
    )
    assert [n.memory.id for n in neighbors] == [existing.id]


@pytest.mark.asyncio
async def test_failed_embedding_leaves_nothing_behind(db, setup_user, test_settings):
    service = MemoryService(db, FakeEmbedder(fail=True), settings=test_settings)
    with pytest.raises(TransientDependencyFailure):
        await service.create_memory(setup_user.id, "Anything", tags=["misc"])

    assert db.query(Memory).count() == 0
    assert db.query(Tag).count() == 0
    assert db.query(MemoryTag).count() == 0
    assert db.query(MemoryRelationship).count() == 0


@pytest.mark.asyncio
async def test_empty_content_is_rejected(db, setup_user, fake_embedder, test_settings):
    with pytest.raises(ValidationFailure):
        await MemoryService(db, fake_embedder, settings=test_settings).create_memory(
            setup_user.id, "   "
        )
    assert fake_embedder.calls == []


@pytest.mark.asyncio
async def test_update_memory_reembeds_on_change(db, setup_user, setup_memory, test_settings):
    embedder = FakeEmbedder()
    service = MemoryService(db, embedder, settings=test_settings)

    unchanged = await service.update_memory(setup_user.id, setup_memory.id, title=setup_memory.title)
    assert embedder.calls == []

    updated = await service.update_memory(setup_user.id, setup_memory.id, summary="Moved to Monday")
    assert updated.summary == "Moved to Monday"
    assert len(embedder.calls) == 1
    assert unchanged.id == updated.id


def test_soft_delete_hides_memory_and_releases_tags(db, setup_user, setup_memory, fake_embedder, test_settings):
    service = MemoryService(db, fake_embedder, settings=test_settings)
    service.tags.attach_tags(setup_memory, ["documents"])

    service.soft_delete(setup_user.id, setup_memory.id)

    assert setup_memory.deleted_at is not None
    assert db.query(Tag).filter(Tag.name == "documents").one().usage_count == 0
    with pytest.raises(NotFound):
        service.get_memory(setup_user.id, setup_memory.id)


def test_memories_are_private(setup_another_user, setup_memory, fake_embedder, db, test_settings):
    with pytest.raises(NotFound):
        MemoryService(db, fake_embedder, settings=test_settings).get_memory(
            setup_another_user.id, setup_memory.id
        )
