"""ConversationStateService: load, expire, update and reset per-channel dialogue state."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from memobot.config import Settings, get_settings
from memobot.models.conversation_state import MODE_CREATE, MODE_RECALL, ConversationState
from memobot.utils.time import as_utc, utcnow

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


def _is_state_expired(state: ConversationState, settings: Settings) -> bool:
    """True once the conversation has been idle longer than the configured window."""
    idle_minutes = settings.session_expiry_idle_minutes
    if not idle_minutes:
        return False
    last = as_utc(state.last_message_at)
    return last < utcnow() - timedelta(minutes=idle_minutes)


class ConversationStateService:
    def __init__(self, db: Session, settings: Optional[Settings] = None) -> None:
        self.db = db
        self.settings = settings or get_settings()

    def get_live_state(self, user_id: UUID, channel: str) -> Optional[ConversationState]:
        return (
            self.db.query(ConversationState)
            .filter(
                ConversationState.user_id == user_id,
                ConversationState.channel == channel,
                ConversationState.deleted_at.is_(None),
            )
            .first()
        )

    def get_or_create(
        self, user_id: UUID, channel: str, external_user_id: Optional[str] = None
    ) -> ConversationState:
        state = self.get_live_state(user_id, channel)
        if state is not None and _is_state_expired(state, self.settings):
            state.deleted_at = utcnow()
            self.db.flush()
            state = None
        if state is None:
            state = ConversationState(
                user_id=user_id,
                channel=channel,
                external_user_id=external_user_id,
                message_history=[],
                mode=MODE_RECALL,
                pending_questions=[],
                last_message_at=utcnow(),
            )
            self.db.add(state)
            self.db.commit()
            self.db.refresh(state)
        return state

    def reset(self, state: ConversationState) -> ConversationState:
        """Soft-delete the live row and start a fresh one."""
        state.deleted_at = utcnow()
        self.db.flush()
        return self.get_or_create(state.user_id, state.channel, state.external_user_id)

    def get_history(
        self, state: ConversationState, limit: Optional[int] = None
    ) -> List[dict[str, str]]:
        history = list(state.message_history or [])
        if limit is not None:
            history = history[-limit:] if limit > 0 else []
        return history

    def append_exchange(
        self,
        state: ConversationState,
        user_text: str,
        assistant_text: str,
        commit: bool = True,
    ) -> ConversationState:
        """Append one user/assistant turn, keeping only the newest entries."""
        history = list(state.message_history or [])
        if user_text and user_text.strip():
            history.append({"role": ROLE_USER, "content": user_text.strip()})
        if assistant_text and assistant_text.strip():
            history.append({"role": ROLE_ASSISTANT, "content": assistant_text.strip()})
        limit = self.settings.conversation_history_limit
        # Reassign so the JSON column is flagged dirty.
        state.message_history = history[-limit:]
        state.last_message_at = utcnow()
        if commit:
            self.db.commit()
        return state

    def start_draft(self, state: ConversationState) -> None:
        state.mode = MODE_CREATE
        if not state.draft:
            state.draft = {"parts": [], "attachment_ids": [], "is_forwarded": False}

    def add_to_draft(
        self,
        state: ConversationState,
        text: str,
        attachment_ids: Optional[List[str]] = None,
        is_forwarded: bool = False,
    ) -> dict[str, Any]:
        self.start_draft(state)
        draft = dict(state.draft or {})
        parts = list(draft.get("parts") or [])
        if text and text.strip():
            parts.append(text.strip())
        draft["parts"] = parts
        draft["attachment_ids"] = list(draft.get("attachment_ids") or []) + list(
            attachment_ids or []
        )
        draft["is_forwarded"] = bool(draft.get("is_forwarded")) or is_forwarded
        state.draft = draft
        return draft

    def clear_draft(self, state: ConversationState) -> None:
        state.draft = None
        state.mode = MODE_RECALL
        state.pending_questions = []

    def set_pending_questions(
        self, state: ConversationState, questions: List[str]
    ) -> None:
        state.pending_questions = list(questions)

    def save(self, state: ConversationState) -> ConversationState:
        self.db.commit()
        return state
