from study_chat.chat.stores.base import ConversationStore, MessageStore
from study_chat.chat.stores.memory import InMemoryConversationStore, InMemoryMessageStore
from study_chat.chat.stores.sql import SqlConversationStore, SqlMessageStore

__all__ = [
    "ConversationStore",
    "MessageStore",
    "InMemoryConversationStore",
    "InMemoryMessageStore",
    "SqlConversationStore",
    "SqlMessageStore",
]
