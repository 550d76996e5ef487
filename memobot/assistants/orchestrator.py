"""
Conversation orchestrator.

Decides what a resolved inbound message means (recall, create, save, remind,
cancel, chat) and drives the memory, retrieval and reminder services. The
language model is optional: without it, keyword intents and heuristic titles
are used, and a failed model call degrades to the same fallbacks.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from memobot.adapters.buttons import (
    CANCEL,
    CREATE_REMINDER,
    DEFAULT_BUTTONS,
    NEW_MEMORY,
    RECALL_MEMORIES,
    SAVE_MEMORY,
    button,
)
from memobot.collaborators.attachments import AttachmentStore
from memobot.collaborators.embedding import Embedder
from memobot.config import Settings, get_settings
from memobot.core.errors import TransientDependencyFailure
from memobot.models.conversation_state import MODE_CREATE, ConversationState
from memobot.models.memory import Memory
from memobot.models.reminder import Reminder
from memobot.schemas.messages import InboundMessage, MessageKind, QuickReplyButton
from memobot.services.category_service import CategoryService
from memobot.services.conversation_state_service import ConversationStateService
from memobot.services.memory_service import MemoryService
from memobot.services.relationship_service import RelationshipService
from memobot.services.reminder_service import ReminderService
from memobot.services.retrieval_service import RetrievalService, RetrievedMemory
from memobot.utils.time import utcnow
from memobot.workers.llm import (
    IntentDecision,
    LLMRunner,
    MemoryDraft,
    classify_intent_heuristic,
    heuristic_category,
    heuristic_draft,
    heuristic_remind_at,
    strip_create_prefix,
)

logger = logging.getLogger(__name__)

PENDING_REMINDER_TIME = "reminder_time"

_BUTTON_INTENTS = {
    SAVE_MEMORY: "save",
    CREATE_REMINDER: "remind",
    NEW_MEMORY: "create",
    RECALL_MEMORIES: "recall",
    CANCEL: "cancel",
}

_GREETINGS = re.compile(
    r"^(hi|hello|hey|hiya|good (morning|afternoon|evening)|start|/start)[!. ]*$",
    re.IGNORECASE,
)
_THANKS = re.compile(r"^(thanks|thank you|thx|ty|cheers)( so much)?[!. ]*$", re.IGNORECASE)

GREETING_REPLY = (
    "Hi! I'm MemoBot. Tell me something to remember, or ask me about "
    "anything you've saved."
)
THANKS_REPLY = "You're welcome! Anything else you'd like to remember?"


@dataclass
class OrchestratorResult:
    reply: str
    retrieved_memories: List[RetrievedMemory] = field(default_factory=list)
    created_memory: Optional[Memory] = None
    created_reminder: Optional[Reminder] = None
    suggested_buttons: List[QuickReplyButton] = field(default_factory=list)


def canned_reply(text: str) -> Optional[str]:
    stripped = (text or "").strip()
    if _GREETINGS.match(stripped):
        return GREETING_REPLY
    if _THANKS.match(stripped):
        return THANKS_REPLY
    return None


def memory_as_context(memory: Memory) -> dict[str, Any]:
    return {
        "title": memory.title,
        "summary": memory.summary,
        "content": memory.content,
        "created_at": memory.created_at.date().isoformat() if memory.created_at else "",
    }


class Orchestrator:
    def __init__(
        self,
        llm: Optional[LLMRunner],
        embedder: Embedder,
        attachments: Optional[AttachmentStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.llm = llm
        self.embedder = embedder
        self.attachments = attachments
        self.settings = settings or get_settings()

    async def process(
        self,
        db: Session,
        user_id: UUID,
        state: ConversationState,
        msg: InboundMessage,
    ) -> OrchestratorResult:
        states = ConversationStateService(db, self.settings)
        text = (msg.text or "").strip()

        if msg.is_forwarded or msg.kind == MessageKind.FORWARDED:
            return await self._quick_save(db, user_id, state, msg)

        if PENDING_REMINDER_TIME in (state.pending_questions or []):
            answered = await self._answer_reminder_time(db, user_id, state, msg)
            if answered is not None:
                return answered

        in_create_mode = state.mode == MODE_CREATE
        if not msg.button_id and not in_create_mode:
            canned = canned_reply(text)
            if canned:
                return OrchestratorResult(canned, suggested_buttons=list(DEFAULT_BUTTONS))

        decision = await self._classify(msg, state)

        if decision.intent == "cancel":
            states.clear_draft(state)
            states.save(state)
            return OrchestratorResult(
                "Okay, cancelled.", suggested_buttons=list(DEFAULT_BUTTONS)
            )

        if decision.intent == "remind":
            return await self._start_reminder(db, user_id, state, text)

        if in_create_mode:
            if decision.intent == "save":
                return await self._save_draft(db, user_id, state, msg)
            states.add_to_draft(state, text, msg.attachment_ids)
            states.save(state)
            return OrchestratorResult(
                "Got it. Add more details, or tap Save it when you're done.",
                suggested_buttons=[button(SAVE_MEMORY), button(CANCEL)],
            )

        if decision.intent == "create" or msg.attachment_ids:
            content = strip_create_prefix(text) if decision.intent == "create" else text
            if msg.button_id == NEW_MEMORY:
                content = ""
            states.start_draft(state)
            if content or msg.attachment_ids:
                states.add_to_draft(state, content, msg.attachment_ids)
            states.save(state)
            if content or msg.attachment_ids:
                reply = "Got it. Add more details, or tap Save it when you're done."
            else:
                reply = "Great! Tell me what you'd like to remember."
            return OrchestratorResult(
                reply, suggested_buttons=[button(SAVE_MEMORY), button(CANCEL)]
            )

        if decision.intent == "save":
            return OrchestratorResult(
                "There's nothing to save yet. Tell me what you'd like to remember.",
                suggested_buttons=list(DEFAULT_BUTTONS),
            )

        if msg.button_id == RECALL_MEMORIES:
            return OrchestratorResult("What would you like me to look up?")

        return await self._recall(db, user_id, state, decision.query or text)

    async def _classify(
        self, msg: InboundMessage, state: ConversationState
    ) -> IntentDecision:
        if msg.button_id in _BUTTON_INTENTS:
            return IntentDecision(intent=_BUTTON_INTENTS[msg.button_id])
        in_create_mode = state.mode == MODE_CREATE
        heuristic = classify_intent_heuristic(msg.text, in_create_mode)
        # Control words are unambiguous; don't spend a model call on them.
        if self.llm is None or heuristic.intent in ("cancel", "save"):
            return heuristic
        try:
            return await self.llm.classify_intent(
                msg.text, state.mode, (state.message_history or [])[-4:]
            )
        except TransientDependencyFailure as e:
            logger.warning("Intent classification failed, using keywords: %s", e)
            return heuristic

    async def _enrich(self, db: Session, user_id: UUID, content: str) -> MemoryDraft:
        if self.llm is None:
            return heuristic_draft(content)
        try:
            categories = CategoryService(db, settings=self.settings).category_names(user_id)
            return await self.llm.enrich(content, categories)
        except TransientDependencyFailure as e:
            logger.warning("Enrichment failed, using heuristic title: %s", e)
            return heuristic_draft(content)

    async def _store(
        self,
        db: Session,
        user_id: UUID,
        content: str,
        source_platform: str,
        is_forwarded: bool,
        attachment_ids: List[str],
    ) -> Memory:
        """Create the memory and link its attachments in one transaction."""
        draft = await self._enrich(db, user_id, content)
        memory = await MemoryService(db, self.embedder, settings=self.settings).create_memory(
            user_id,
            content,
            title=draft.title,
            summary=draft.summary,
            tags=draft.tags,
            source_platform=source_platform,
            is_forwarded=is_forwarded,
            occurred_at=draft.occurred_at,
            category=draft.category or heuristic_category(content),
            commit=False,
        )
        if attachment_ids and self.attachments is not None:
            try:
                await self.attachments.link_to_memory(user_id, attachment_ids, memory.id)
            except Exception:
                db.rollback()
                raise
        db.commit()
        db.refresh(memory)
        return memory

    async def _quick_save(
        self,
        db: Session,
        user_id: UUID,
        state: ConversationState,
        msg: InboundMessage,
    ) -> OrchestratorResult:
        memory = await self._store(
            db,
            user_id,
            msg.text,
            source_platform=msg.channel.value,
            is_forwarded=True,
            attachment_ids=list(msg.attachment_ids),
        )
        state.last_memory_id = memory.id
        ConversationStateService(db, self.settings).save(state)
        return OrchestratorResult(
            f'Saved the forwarded message as "{memory.title}".',
            created_memory=memory,
            suggested_buttons=[button(CREATE_REMINDER), button(NEW_MEMORY)],
        )

    async def _save_draft(
        self,
        db: Session,
        user_id: UUID,
        state: ConversationState,
        msg: InboundMessage,
    ) -> OrchestratorResult:
        states = ConversationStateService(db, self.settings)
        draft = dict(state.draft or {})
        parts = list(draft.get("parts") or [])
        if not parts:
            return OrchestratorResult(
                "There's nothing to save yet. Tell me what you'd like to remember.",
                suggested_buttons=[button(CANCEL)],
            )
        memory = await self._store(
            db,
            user_id,
            "\n\n".join(parts),
            source_platform=msg.channel.value,
            is_forwarded=bool(draft.get("is_forwarded")),
            attachment_ids=list(draft.get("attachment_ids") or []),
        )
        states.clear_draft(state)
        state.last_memory_id = memory.id
        states.save(state)
        related = len(
            RelationshipService(db, settings=self.settings).neighbors(user_id, memory.id)
        )
        reply = f'Saved "{memory.title}".'
        if related:
            reply += f" It's related to {related} other memor{'y' if related == 1 else 'ies'}."
        return OrchestratorResult(
            reply,
            created_memory=memory,
            suggested_buttons=[button(CREATE_REMINDER), button(NEW_MEMORY)],
        )

    async def _extract_remind_at(self, text: str):
        now = utcnow()
        if self.llm is not None:
            try:
                request = await self.llm.extract_reminder(text, now)
                return request.remind_at, request.title
            except TransientDependencyFailure as e:
                logger.warning("Reminder extraction failed, using heuristic: %s", e)
        return heuristic_remind_at(text, now), None

    async def _start_reminder(
        self, db: Session, user_id: UUID, state: ConversationState, text: str
    ) -> OrchestratorResult:
        if state.last_memory_id is None:
            return OrchestratorResult(
                "Save a memory first, then I can remind you about it.",
                suggested_buttons=list(DEFAULT_BUTTONS),
            )
        remind_at, title = await self._extract_remind_at(text)
        if remind_at is None:
            states = ConversationStateService(db, self.settings)
            states.set_pending_questions(state, [PENDING_REMINDER_TIME])
            states.save(state)
            return OrchestratorResult(
                "When should I remind you? For example: tomorrow, or in 2 hours.",
                suggested_buttons=[button(CANCEL)],
            )
        return self._create_reminder(db, user_id, state, remind_at, title)

    async def _answer_reminder_time(
        self, db: Session, user_id: UUID, state: ConversationState, msg: InboundMessage
    ) -> Optional[OrchestratorResult]:
        """
        Use the message as the awaited reminder time when it contains one.

        Anything else drops the question and returns None so the message is
        handled like any other.
        """
        if not msg.button_id:
            remind_at, title = await self._extract_remind_at((msg.text or "").strip())
            if remind_at is not None:
                return self._create_reminder(db, user_id, state, remind_at, title)
        states = ConversationStateService(db, self.settings)
        states.set_pending_questions(state, [])
        states.save(state)
        return None

    def _create_reminder(
        self,
        db: Session,
        user_id: UUID,
        state: ConversationState,
        remind_at,
        title: Optional[str],
    ) -> OrchestratorResult:
        states = ConversationStateService(db, self.settings)
        memory = db.get(Memory, state.last_memory_id)
        reminder = ReminderService(db).create_reminder(
            user_id,
            state.last_memory_id,
            title=title or (memory.title if memory else "") or "Reminder",
            remind_at=remind_at,
        )
        states.set_pending_questions(state, [])
        states.save(state)
        when = reminder.remind_at.strftime("%Y-%m-%d %H:%M UTC")
        return OrchestratorResult(
            f'Reminder set for {when}: "{reminder.title}".',
            created_reminder=reminder,
            suggested_buttons=list(DEFAULT_BUTTONS),
        )

    async def _recall(
        self, db: Session, user_id: UUID, state: ConversationState, query: str
    ) -> OrchestratorResult:
        retrieval = RetrievalService(db, self.embedder, settings=self.settings)
        try:
            items = await retrieval.recall(user_id, query)
        except TransientDependencyFailure as e:
            logger.warning("Hybrid recall failed, falling back to lexical: %s", e)
            items = retrieval.lexical_search(user_id, query)

        history = (state.message_history or [])[-self.settings.max_history_for_context :]
        if not items:
            return OrchestratorResult(
                "I couldn't find any memories about that yet.",
                suggested_buttons=list(DEFAULT_BUTTONS),
            )
        state.last_memory_id = items[0].memory.id
        context = [memory_as_context(item.memory) for item in items]
        reply = None
        if self.llm is not None:
            try:
                reply = await self.llm.answer(query, context, history)
            except TransientDependencyFailure as e:
                logger.warning("Answer generation failed, listing matches: %s", e)
        if not reply:
            reply = "Here's what I found:\n" + "\n".join(
                f"- {item.memory.title or 'Untitled'}: "
                f"{item.memory.summary or item.memory.content[:120]}"
                for item in items[:5]
            )
        return OrchestratorResult(
            reply,
            retrieved_memories=items,
            suggested_buttons=[button(CREATE_REMINDER), button(NEW_MEMORY)],
        )
