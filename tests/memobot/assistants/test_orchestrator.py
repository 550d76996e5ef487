"""Tests for the conversation orchestrator (keyword mode and model fallbacks)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fixtures.memory_fixtures import FakeEmbedder

from memobot.adapters.buttons import NEW_MEMORY, button_text
from memobot.assistants.orchestrator import (
    GREETING_REPLY,
    PENDING_REMINDER_TIME,
    THANKS_REPLY,
    Orchestrator,
    canned_reply,
)
from memobot.core.errors import TransientDependencyFailure
from memobot.models.conversation_state import MODE_CREATE, MODE_RECALL
from memobot.models.memory import Memory
from memobot.models.reminder import Reminder
from memobot.schemas.messages import Channel, InboundMessage, MessageKind
from memobot.services.conversation_state_service import ConversationStateService
from memobot.workers.llm import IntentDecision


@pytest.fixture
def state(db, setup_user, test_settings):
    return ConversationStateService(db, test_settings).get_or_create(setup_user.id, "chat")


@pytest.fixture
def say(db, setup_user, state, orchestrator):
    """Send one chat message through the orchestrator."""

    async def _say(text, orchestrator_override=None, **fields):
        msg = InboundMessage(
            channel=Channel.CHAT, external_user_id=str(setup_user.id), text=text, **fields
        )
        return await (orchestrator_override or orchestrator).process(
            db, setup_user.id, state, msg
        )

    return _say


@pytest.mark.parametrize(
    "text,expected",
    [("hello", GREETING_REPLY), ("Thanks!", THANKS_REPLY), ("hello there friend", None)],
)
def test_canned_reply(text, expected):
    assert canned_reply(text) == expected


@pytest.mark.asyncio
async def test_greeting_gets_canned_reply(say):
    result = await say("hi")
    assert result.reply == GREETING_REPLY
    assert result.suggested_buttons


@pytest.mark.asyncio
async def test_create_then_save(db, setup_user, state, say):
    first = await say("remember that my locker code is 4512")
    assert state.mode == MODE_CREATE
    assert "Save it" in first.reply

    second = await say("save it")

    memory = second.created_memory
    assert memory is not None
    assert memory.content == "my locker code is 4512"
    assert memory.category.name == "Personal"
    assert second.reply == 'Saved "my locker code is 4512".'
    assert state.mode == MODE_RECALL
    assert state.draft is None
    assert state.last_memory_id == memory.id


@pytest.mark.asyncio
async def test_draft_collects_several_messages(db, state, say):
    await say("note: passport number")
    await say("it expires in 2031")
    result = await say("done")
    assert result.created_memory.content == "passport number\n\nit expires in 2031"


@pytest.mark.asyncio
async def test_new_memory_button_starts_an_empty_draft(state, say):
    result = await say(button_text(NEW_MEMORY), button_id=NEW_MEMORY, kind=MessageKind.BUTTON)
    assert result.reply == "Great! Tell me what you'd like to remember."
    assert state.mode == MODE_CREATE
    assert state.draft["parts"] == []


@pytest.mark.asyncio
async def test_cancel_discards_the_draft(db, state, say):
    await say("remember the gate code is 1234")
    result = await say("cancel")
    assert result.reply == "Okay, cancelled."
    assert state.draft is None
    assert db.query(Memory).count() == 0


@pytest.mark.asyncio
async def test_save_without_draft(say):
    result = await say("save it")
    assert result.created_memory is None
    assert "nothing to save" in result.reply


@pytest.mark.asyncio
async def test_recall_lists_matches(setup_user, make_memory, say, state):
    memory = make_memory("My locker code is 4512", title="Locker code")
    result = await say("what is my locker code?")
    assert [r.memory.id for r in result.retrieved_memories][0] == memory.id
    assert result.reply.startswith("Here's what I found:")
    assert "Locker code" in result.reply
    assert state.last_memory_id == memory.id


@pytest.mark.asyncio
async def test_recall_with_no_memories(say):
    result = await say("where did I park?")
    assert result.reply == "I couldn't find any memories about that yet."


@pytest.mark.asyncio
async def test_recall_falls_back_to_lexical_when_embedding_fails(
    make_memory, say, test_settings
):
    memory = make_memory("Spare key is under the blue pot", title="Spare key")
    broken = Orchestrator(None, FakeEmbedder(fail=True), settings=test_settings)
    result = await say("where is the spare key?", orchestrator_override=broken)
    assert [r.memory.id for r in result.retrieved_memories] == [memory.id]


@pytest.mark.asyncio
async def test_forwarded_message_is_saved_immediately(say):
    result = await say(
        "Flight LH123 departs 09:40 from gate B22",
        kind=MessageKind.FORWARDED,
        is_forwarded=True,
    )
    assert result.created_memory.is_forwarded is True
    assert result.reply.startswith("Saved the forwarded message as")


@pytest.mark.asyncio
async def test_reminder_for_last_memory(db, say):
    await say("remember that the car inspection is due")
    saved = await say("save it")

    result = await say("remind me in 2 hours")

    reminder = result.created_reminder
    assert reminder is not None
    assert reminder.memory_id == saved.created_memory.id
    assert reminder.channels == ["email"]
    assert result.reply.startswith("Reminder set for")


@pytest.mark.asyncio
async def test_reminder_asks_for_a_time(db, state, say):
    await say("remember to water the plants")
    await say("save it")

    question = await say("remind me about this")
    assert question.reply.startswith("When should I remind you?")
    assert state.pending_questions == [PENDING_REMINDER_TIME]

    answer = await say("in 3 days")
    assert answer.created_reminder is not None
    assert state.pending_questions == []
    assert db.query(Reminder).count() == 1


@pytest.mark.asyncio
async def test_other_messages_drop_the_pending_reminder_question(make_memory, state, say):
    make_memory("Wifi password is tulip42", title="Wifi password")
    await say("remember that the bike lock code is 1234")
    await say("save it")
    await say("remind me about this")
    assert state.pending_questions == [PENDING_REMINDER_TIME]

    found = await say("what is the wifi password?")

    assert found.reply.startswith("Here's what I found:")
    assert state.pending_questions == []
    assert (await say("hello")).reply == GREETING_REPLY


@pytest.mark.asyncio
async def test_new_memory_while_waiting_for_a_reminder_time(db, state, say):
    await say("remember to water the plants")
    await say("save it")
    await say("remind me about this")

    result = await say("remember my passport number is X1234567")

    assert state.mode == MODE_CREATE
    assert "Save it" in result.reply
    assert state.pending_questions == []
    assert db.query(Reminder).count() == 0


@pytest.mark.asyncio
async def test_reminder_needs_a_memory_first(say):
    result = await say("remind me tomorrow")
    assert result.reply.startswith("Save a memory first")


@pytest.mark.asyncio
async def test_attachments_start_a_draft_and_are_linked_on_save(
    db, setup_user, fake_embedder, say, test_settings
):
    attachments = MagicMock()
    attachments.link_to_memory = AsyncMock()
    orchestrator = Orchestrator(None, fake_embedder, attachments=attachments, settings=test_settings)

    await say(
        "Where I parked\n[image content: Level 3, spot B12]",
        orchestrator_override=orchestrator,
        attachment_ids=["att-1"],
        kind=MessageKind.IMAGE,
    )
    result = await say("save it", orchestrator_override=orchestrator)

    attachments.link_to_memory.assert_awaited_once_with(
        setup_user.id, ["att-1"], result.created_memory.id
    )


@pytest.mark.asyncio
async def test_model_failures_degrade_to_keywords(make_memory, fake_embedder, say, test_settings):
    make_memory("My locker code is 4512", title="Locker code")
    llm = MagicMock()
    llm.classify_intent = AsyncMock(side_effect=TransientDependencyFailure("down"))
    llm.answer = AsyncMock(return_value="Your locker code is 4512.")
    orchestrator = Orchestrator(llm, fake_embedder, settings=test_settings)

    result = await say("what is my locker code?", orchestrator_override=orchestrator)

    assert result.reply == "Your locker code is 4512."
    question, context, _history = llm.answer.await_args.args
    assert question == "what is my locker code?"
    assert context[0]["title"] == "Locker code"


@pytest.mark.asyncio
async def test_model_intent_is_used_when_available(make_memory, fake_embedder, say, test_settings):
    make_memory("Anna's birthday is March 4", title="Anna's birthday")
    llm = MagicMock()
    llm.classify_intent = AsyncMock(
        return_value=IntentDecision(intent="recall", query="Anna birthday")
    )
    llm.answer = AsyncMock(return_value="")
    orchestrator = Orchestrator(llm, fake_embedder, settings=test_settings)

    result = await say("tell me about Anna", orchestrator_override=orchestrator)

    assert result.retrieved_memories
    assert result.reply.startswith("Here's what I found:")
