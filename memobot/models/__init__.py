from memobot.models.category import Category
from memobot.models.conversation_event import ConversationEvent
from memobot.models.conversation_state import ConversationState
from memobot.models.memory import Memory, MemoryRelationship, MemoryTag, Tag
from memobot.models.reminder import Reminder
from memobot.models.user import LinkCode, PlatformLink, User

__all__ = [
    "Category",
    "ConversationEvent",
    "ConversationState",
    "LinkCode",
    "Memory",
    "MemoryRelationship",
    "MemoryTag",
    "PlatformLink",
    "Reminder",
    "Tag",
    "User",
]
