"""
tests/unit/test_memory.py — Conversation Memory Tests

Covers:
  - InMemoryConversationStore / SQLiteConversationStore basic contract
  - InMemoryConversationStore conversation and message bounds
  - load_messages returns the tail, oldest first
  - ConversationMemory lazy load, write-through, context formatting
  - summarize / create_summary with a fake LLM callback
  - clear() deletes from the store
  - ConversationMemoryCache LRU eviction
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest

from sidekick.brain.types import Message, Role
from sidekick.exceptions import MemoryStoreError
from sidekick.memory import (
    ConversationMemory,
    ConversationMemoryCache,
    InMemoryConversationStore,
    SQLiteConversationStore,
)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def sqlite_path(tmp_path) -> str:
    return str(tmp_path / "sqlite" / "conversations.db")


@asynccontextmanager
async def _open(path: str):
    s = SQLiteConversationStore(path)
    await s.init()
    try:
        yield s
    finally:
        await s.close()


# ─────────────────────────────────────────────────────────────────────────────
# Stores
# ─────────────────────────────────────────────────────────────────────────────


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_append_and_load(self, store):
        await store.append_message("c1", Role.USER, "hi")
        await store.append_message("c1", Role.ASSISTANT, "hello")
        await store.append_message("c2", Role.USER, "other")

        messages = await store.load_messages("c1")
        assert [(m.role, m.content) for m in messages] == [
            (Role.USER, "hi"), (Role.ASSISTANT, "hello"),
        ]

    @pytest.mark.asyncio
    async def test_limit_returns_tail(self, store):
        for i in range(5):
            await store.append_message("c1", Role.USER, str(i))
        assert [m.content for m in await store.load_messages("c1", limit=2)] == ["3", "4"]

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.append_message("c1", Role.USER, "hi")
        await store.delete_messages("c1")
        assert await store.load_messages("c1") == []

    @pytest.mark.asyncio
    async def test_save_summary(self, store):
        record = await store.save_summary("u1", "c1", "We decided things.")
        assert record.title.startswith("Conversation Summary - ")
        assert record.tags == ("conversation", "summary")
        assert list(store.summaries) == [record]

    @pytest.mark.asyncio
    async def test_conversation_count_bounded(self):
        store = InMemoryConversationStore(max_conversations=2, max_messages=20)
        for c in range(1000):
            for i in range(20):
                await store.append_message(f"c{c}", Role.USER, str(i))

        assert len(store) == 2
        assert await store.load_messages("c0") == []
        assert len(await store.load_messages("c999")) == 20

    @pytest.mark.asyncio
    async def test_messages_per_conversation_bounded(self):
        store = InMemoryConversationStore(max_messages=3)
        for i in range(10):
            await store.append_message("c1", Role.USER, str(i))
        assert [m.content for m in await store.load_messages("c1")] == ["7", "8", "9"]

    @pytest.mark.asyncio
    async def test_load_refreshes_recency(self):
        store = InMemoryConversationStore(max_conversations=2)
        await store.append_message("a", Role.USER, "x")
        await store.append_message("b", Role.USER, "y")
        await store.load_messages("a")     # a is now most recent
        await store.append_message("c", Role.USER, "z")  # evicts b

        assert [m.content for m in await store.load_messages("a")] == ["x"]
        assert await store.load_messages("b") == []

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            InMemoryConversationStore(max_conversations=0)
        with pytest.raises(ValueError):
            InMemoryConversationStore(max_messages=0)


class TestSQLiteStore:
    @pytest.mark.asyncio
    async def test_append_and_load_tail_in_order(self, sqlite_path):
        async with _open(sqlite_path) as s:
            for i in range(6):
                role = Role.USER if i % 2 == 0 else Role.ASSISTANT
                await s.append_message("c1", role, f"m{i}")

            messages = await s.load_messages("c1", limit=3)

        assert [m.content for m in messages] == ["m3", "m4", "m5"]
        assert messages[0].role == Role.ASSISTANT

    @pytest.mark.asyncio
    async def test_survives_reopen(self, sqlite_path):
        async with _open(sqlite_path) as s:
            await s.append_message("c1", Role.USER, "persisted")
        async with _open(sqlite_path) as s:
            assert [m.content for m in await s.load_messages("c1")] == ["persisted"]

    @pytest.mark.asyncio
    async def test_conversations_isolated_and_delete(self, sqlite_path):
        async with _open(sqlite_path) as s:
            await s.append_message("c1", Role.USER, "a")
            await s.append_message("c2", Role.USER, "b")
            await s.delete_messages("c1")

            assert await s.load_messages("c1") == []
            assert [m.content for m in await s.load_messages("c2")] == ["b"]

    @pytest.mark.asyncio
    async def test_summaries_round_trip(self, sqlite_path):
        async with _open(sqlite_path) as s:
            await s.save_summary("u1", "c1", "Summary text")
            summaries = await s.get_summaries("u1")
        assert len(summaries) == 1
        assert summaries[0].summary == "Summary text"
        assert summaries[0].tags == ("conversation", "summary")

    @pytest.mark.asyncio
    async def test_lazy_connect(self, tmp_path):
        s = SQLiteConversationStore(str(tmp_path / "lazy.db"))
        await s.append_message("c1", Role.USER, "hi")
        assert len(await s.load_messages("c1")) == 1
        await s.close()

    @pytest.mark.asyncio
    async def test_unopenable_path_raises_memory_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        s = SQLiteConversationStore(str(blocker / "sub" / "db.sqlite"))
        with pytest.raises(MemoryStoreError):
            await s.init()


# ─────────────────────────────────────────────────────────────────────────────
# ConversationMemory
# ─────────────────────────────────────────────────────────────────────────────


class TestConversationMemory:
    @pytest.mark.asyncio
    async def test_lazy_load_once(self, store):
        await store.append_message("c1", Role.USER, "earlier")
        store.load_messages = AsyncMock(wraps=store.load_messages)
        memory = ConversationMemory("c1", store, history_limit=50)

        await memory.get_messages()
        await memory.get_messages()

        store.load_messages.assert_awaited_once_with("c1", limit=50)

    @pytest.mark.asyncio
    async def test_write_through(self, store):
        memory = ConversationMemory("c1", store)
        await memory.add_user_message("question")
        await memory.add_ai_message("answer")

        assert [m.content for m in await memory.get_messages()] == ["question", "answer"]
        assert [m.role for m in await store.load_messages("c1")] == [Role.USER, Role.ASSISTANT]

    @pytest.mark.asyncio
    async def test_buffer_bounded_by_history_limit(self, store):
        memory = ConversationMemory("c1", store, history_limit=3)
        for i in range(5):
            await memory.add_user_message(str(i))
        assert [m.content for m in await memory.get_messages()] == ["2", "3", "4"]

    @pytest.mark.asyncio
    async def test_recent_context_format(self, store):
        memory = ConversationMemory("c1", store)
        await memory.add_user_message("one")
        await memory.add_ai_message("two")
        await memory.add_user_message("three")

        assert await memory.recent_context(max_messages=2) == "Assistant: two\n\nUser: three"

    @pytest.mark.asyncio
    async def test_summarize_empty_conversation(self, store):
        llm = AsyncMock(return_value="nothing")
        assert await ConversationMemory("c1", store).summarize(llm) == ""
        llm.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_summary_saves_record(self, store):
        memory = ConversationMemory("c1", store)
        await memory.add_user_message("Should I raise prices?")
        await memory.add_ai_message("Consider a 20% increase for new clients.")
        llm = AsyncMock(return_value="  Decided to raise prices for new clients.  ")

        record = await memory.create_summary("u1", llm)

        prompt = llm.call_args.args[0]
        assert "Key decisions made" in prompt
        assert "User: Should I raise prices?" in prompt
        assert record.summary == "Decided to raise prices for new clients."
        assert store.summaries[0].conversation_id == "c1"

    @pytest.mark.asyncio
    async def test_clear(self, store):
        memory = ConversationMemory("c1", store)
        await memory.add_user_message("hi")
        await memory.clear()

        assert await store.load_messages("c1") == []
        assert await memory.get_messages() == []


# ─────────────────────────────────────────────────────────────────────────────
# ConversationMemoryCache
# ─────────────────────────────────────────────────────────────────────────────


class TestConversationMemoryCache:
    def test_same_instance_per_conversation(self, store):
        cache = ConversationMemoryCache(store)
        assert cache.get("c1") is cache.get("c1")

    def test_lru_eviction(self, store):
        cache = ConversationMemoryCache(store, max_conversations=2)
        cache.get("a")
        cache.get("b")
        cache.get("a")          # a is now most recent
        cache.get("c")          # evicts b

        assert "a" in cache and "c" in cache
        assert "b" not in cache
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_evicted_conversation_reloads_from_store(self, store):
        cache = ConversationMemoryCache(store, max_conversations=1)
        await cache.get("a").add_user_message("kept in store")
        cache.get("b")

        messages = await cache.get("a").get_messages()
        assert messages == [Message(role=Role.USER, content="kept in store")]

    def test_invalid_capacity(self, store):
        with pytest.raises(ValueError):
            ConversationMemoryCache(store, max_conversations=0)
