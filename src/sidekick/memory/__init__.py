from sidekick.memory.conversation import (
    ConversationMemory,
    ConversationMemoryCache,
    format_context,
)
from sidekick.memory.store import (
    ConversationStore,
    ConversationSummary,
    InMemoryConversationStore,
    SQLiteConversationStore,
)

__all__ = [
    "ConversationMemory",
    "ConversationMemoryCache",
    "ConversationStore",
    "ConversationSummary",
    "InMemoryConversationStore",
    "SQLiteConversationStore",
    "format_context",
]
