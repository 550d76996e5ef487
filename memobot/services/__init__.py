from memobot.services.conversation_state_service import ConversationStateService
from memobot.services.memory_service import MemoryService
from memobot.services.relationship_service import RelationshipService
from memobot.services.reminder_service import ReminderService
from memobot.services.retrieval_service import RetrievalService
from memobot.services.tag_service import TagService

__all__ = [
    "ConversationStateService",
    "MemoryService",
    "RelationshipService",
    "ReminderService",
    "RetrievalService",
    "TagService",
]
