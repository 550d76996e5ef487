"""Quick-reply button ids and the text each click stands for."""

from __future__ import annotations

from typing import Optional

from memobot.schemas.messages import QuickReplyButton

SAVE_MEMORY = "save_memory"
CREATE_REMINDER = "create_reminder"
NEW_MEMORY = "new_memory"
RECALL_MEMORIES = "recall_memories"
CANCEL = "cancel"

BUTTON_TEXT = {
    SAVE_MEMORY: "Save it",
    CREATE_REMINDER: "Yes, create a reminder for this memory",
    NEW_MEMORY: "I want to create a new memory",
    RECALL_MEMORIES: "Search my memories",
    CANCEL: "Cancel",
}

BUTTON_TITLES = {
    SAVE_MEMORY: "Save it",
    CREATE_REMINDER: "Set reminder",
    NEW_MEMORY: "New Memory",
    RECALL_MEMORIES: "Search memories",
    CANCEL: "Cancel",
}


def button_text(button_id: Optional[str]) -> str:
    """Natural-language equivalent of a button click; unknown ids pass through."""
    if not button_id:
        return ""
    return BUTTON_TEXT.get(button_id, button_id)


def button(button_id: str) -> QuickReplyButton:
    return QuickReplyButton(id=button_id, title=BUTTON_TITLES.get(button_id, button_id))


DEFAULT_BUTTONS = [button(NEW_MEMORY)]
