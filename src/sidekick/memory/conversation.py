"""
memory/conversation.py — Per-Conversation Memory

ConversationMemory buffers one conversation's messages on top of a
ConversationStore: it lazily loads the tail of the conversation on first
access, writes every new message through to the store, and can produce an
LLM summary that is saved as a long-term summary record.

ConversationMemoryCache hands out one ConversationMemory per conversation id
and evicts the least recently used entry once max_conversations is reached.
Evicted conversations are reloaded from the store on next access.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from typing import Awaitable, Callable, Optional

from sidekick.brain.types import Message, Role
from sidekick.memory.store import ConversationStore, ConversationSummary
from sidekick.observability.logger import get_logger

log = get_logger(__name__)

LLMCall = Callable[[str], Awaitable[str]]

_SUMMARY_PROMPT = """\
Summarize the following conversation between a user and their AI thinking partner (Sidekick).
Focus on:
- Key decisions made
- Projects or ideas discussed
- Action items identified
- Important context for future conversations

Conversation:
{context}

Summary:"""

_SPEAKER = {Role.USER: "User", Role.ASSISTANT: "Assistant", Role.SYSTEM: "System"}


def format_context(messages: list[Message]) -> str:
    return "\n\n".join(f"{_SPEAKER[m.role]}: {m.content}" for m in messages)


class ConversationMemory:

    def __init__(self, conversation_id: str, store: ConversationStore, history_limit: int = 50):
        self.conversation_id = conversation_id
        self._store = store
        self._history_limit = history_limit
        self._messages: list[Message] = []
        self._loaded = False
        self._lock = asyncio.Lock()

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        async with self._lock:
            if self._loaded:
                return
            self._messages = await self._store.load_messages(
                self.conversation_id, limit=self._history_limit
            )
            self._loaded = True
            log.debug("memory.loaded", conversation_id=self.conversation_id,
                      messages=len(self._messages))

    async def _add(self, role: Role, content: str) -> None:
        await self._ensure_loaded()
        await self._store.append_message(self.conversation_id, role, content)
        self._messages.append(Message(role=role, content=content))
        if len(self._messages) > self._history_limit:
            del self._messages[: len(self._messages) - self._history_limit]

    async def add_user_message(self, content: str) -> None:
        await self._add(Role.USER, content)

    async def add_ai_message(self, content: str) -> None:
        await self._add(Role.ASSISTANT, content)

    async def get_messages(self) -> list[Message]:
        await self._ensure_loaded()
        return list(self._messages)

    async def recent_context(self, max_messages: int = 10) -> str:
        """Last `max_messages` messages as 'User: ...' / 'Assistant: ...' blocks."""
        messages = await self.get_messages()
        if max_messages <= 0:
            return ""
        return format_context(messages[-max_messages:])

    async def summarize(self, llm_call: LLMCall) -> str:
        """LLM summary of the buffered conversation; empty string when there is nothing to summarize."""
        context = await self.recent_context(self._history_limit)
        if not context:
            return ""
        return (await llm_call(_SUMMARY_PROMPT.format(context=context))).strip()

    async def create_summary(self, user_id: str, llm_call: LLMCall) -> Optional[ConversationSummary]:
        summary = await self.summarize(llm_call)
        if not summary:
            return None
        record = await self._store.save_summary(user_id, self.conversation_id, summary)
        log.info("memory.summary_created", conversation_id=self.conversation_id,
                 chars=len(summary))
        return record

    async def clear(self) -> None:
        """Drop the buffer and delete the conversation's messages from the store."""
        async with self._lock:
            await self._store.delete_messages(self.conversation_id)
            self._messages = []
            self._loaded = False

    def __repr__(self) -> str:
        return f"<ConversationMemory id={self.conversation_id} loaded={self._loaded}>"


class ConversationMemoryCache:
    """LRU map of conversation id -> ConversationMemory."""

    def __init__(
        self,
        store: ConversationStore,
        max_conversations: int = 256,
        history_limit: int = 50,
    ):
        if max_conversations < 1:
            raise ValueError("max_conversations must be >= 1")
        self.store = store
        self._max = max_conversations
        self._history_limit = history_limit
        self._entries: OrderedDict[str, ConversationMemory] = OrderedDict()

    def get(self, conversation_id: str) -> ConversationMemory:
        memory = self._entries.get(conversation_id)
        if memory is not None:
            self._entries.move_to_end(conversation_id)
            return memory

        memory = ConversationMemory(conversation_id, self.store, self._history_limit)
        self._entries[conversation_id] = memory
        if len(self._entries) > self._max:
            evicted, _ = self._entries.popitem(last=False)
            log.debug("memory.evicted", conversation_id=evicted)
        return memory

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def close(self) -> None:
        self._entries.clear()
        await self.store.close()
