"""
memory/store.py — Conversation Store

Persistence boundary for conversation memory. The core only ever needs four
calls: load the tail of a conversation, append a message, delete a
conversation's messages, and insert a summary record.

Implementations:
  - InMemoryConversationStore : bounded LRU, process lifetime (default)
  - SQLiteConversationStore   : aiosqlite-backed, survives restarts

Usage:
    store = SQLiteConversationStore("./data/sqlite/conversations.db")
    await store.append_message("conv-1", Role.USER, "Hello")
    history = await store.load_messages("conv-1", limit=50)
"""

from __future__ import annotations

import time
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite

from sidekick.brain.types import Message, Role
from sidekick.exceptions import MemoryStoreError
from sidekick.observability.logger import get_logger

log = get_logger(__name__)


@dataclass
class ConversationSummary:
    id: str
    user_id: str
    conversation_id: str
    title: str
    summary: str
    created_at: float = field(default_factory=time.time)
    tags: tuple[str, ...] = ("conversation", "summary")


def _summary_title(created_at: float) -> str:
    day = datetime.fromtimestamp(created_at, tz=timezone.utc).date().isoformat()
    return f"Conversation Summary - {day}"


# ─────────────────────────────────────────────────────────────────────────────
# Interface
# ─────────────────────────────────────────────────────────────────────────────


class ConversationStore(ABC):

    @abstractmethod
    async def load_messages(self, conversation_id: str, limit: int = 50) -> list[Message]:
        """Last `limit` messages of the conversation, oldest first."""
        ...

    @abstractmethod
    async def append_message(self, conversation_id: str, role: Role, content: str) -> None:
        ...

    @abstractmethod
    async def delete_messages(self, conversation_id: str) -> None:
        ...

    @abstractmethod
    async def save_summary(
        self, user_id: str, conversation_id: str, summary: str
    ) -> ConversationSummary:
        ...

    async def close(self) -> None:
        pass


# ─────────────────────────────────────────────────────────────────────────────
# In-memory
# ─────────────────────────────────────────────────────────────────────────────


class InMemoryConversationStore(ConversationStore):
    """
    Process-lifetime store, bounded on both axes: at most max_conversations
    conversations (least recently used dropped first) and at most
    max_messages per conversation (oldest dropped first).
    """

    def __init__(self, max_conversations: int = 256, max_messages: int = 50) -> None:
        if max_conversations < 1 or max_messages < 1:
            raise ValueError("max_conversations and max_messages must be >= 1")
        self._max_conversations = max_conversations
        self._max_messages = max_messages
        self._messages: OrderedDict[str, deque[Message]] = OrderedDict()
        self.summaries: deque[ConversationSummary] = deque(maxlen=max_conversations)

    def __len__(self) -> int:
        return len(self._messages)

    async def load_messages(self, conversation_id: str, limit: int = 50) -> list[Message]:
        messages = self._messages.get(conversation_id)
        if messages is None or limit <= 0:
            return []
        self._messages.move_to_end(conversation_id)
        return list(messages)[-limit:]

    async def append_message(self, conversation_id: str, role: Role, content: str) -> None:
        messages = self._messages.get(conversation_id)
        if messages is None:
            messages = self._messages[conversation_id] = deque(maxlen=self._max_messages)
            while len(self._messages) > self._max_conversations:
                evicted, _ = self._messages.popitem(last=False)
                log.debug("conversation_store.evicted", conversation_id=evicted)
        else:
            self._messages.move_to_end(conversation_id)
        messages.append(Message(role=role, content=content))

    async def delete_messages(self, conversation_id: str) -> None:
        self._messages.pop(conversation_id, None)

    async def save_summary(
        self, user_id: str, conversation_id: str, summary: str
    ) -> ConversationSummary:
        now = time.time()
        record = ConversationSummary(
            id=str(uuid.uuid4()),
            user_id=user_id,
            conversation_id=conversation_id,
            title=_summary_title(now),
            summary=summary,
            created_at=now,
        )
        self.summaries.append(record)
        return record


# ─────────────────────────────────────────────────────────────────────────────
# SQLite
# ─────────────────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id              TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL,
    role            TEXT NOT NULL,   -- 'user' | 'assistant'
    content         TEXT NOT NULL,
    created_at      REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS conversation_summaries (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    conversation_id TEXT NOT NULL,
    title           TEXT NOT NULL,
    summary         TEXT NOT NULL,
    tags            TEXT DEFAULT 'conversation,summary',
    created_at      REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, created_at);
CREATE INDEX IF NOT EXISTS idx_summaries_user ON conversation_summaries(user_id);
"""


class SQLiteConversationStore(ConversationStore):
    """
    Async SQLite-backed conversation store.

    The connection opens on first use (or explicitly via `await store.init()`).
    Every aiosqlite failure is re-raised as MemoryStoreError.
    """

    def __init__(self, db_path: str = "./data/sqlite/conversations.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None

    async def init(self) -> None:
        """Create the database file and tables if they don't exist."""
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self.db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.executescript(_SCHEMA)
            await self._db.commit()
        except (aiosqlite.Error, OSError) as e:
            raise MemoryStoreError(f"Cannot open conversation store at {self.db_path}: {e}") from e
        log.info("conversation_store.initialized", db_path=self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.init()
        return self._db  # type: ignore[return-value]

    async def load_messages(self, conversation_id: str, limit: int = 50) -> list[Message]:
        db = await self._connection()
        if limit <= 0:
            return []
        try:
            async with db.execute(
                """SELECT role, content FROM (
                       SELECT rowid AS seq, role, content FROM messages
                       WHERE conversation_id=?
                       ORDER BY rowid DESC LIMIT ?
                   ) ORDER BY seq ASC""",
                (conversation_id, limit),
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise MemoryStoreError(f"Failed to load conversation {conversation_id}: {e}") from e
        return [Message(role=Role(row["role"]), content=row["content"]) for row in rows]

    async def append_message(self, conversation_id: str, role: Role, content: str) -> None:
        db = await self._connection()
        try:
            await db.execute(
                """INSERT INTO messages (id, conversation_id, role, content, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (str(uuid.uuid4()), conversation_id, Role(role).value, content, time.time()),
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise MemoryStoreError(f"Failed to append to conversation {conversation_id}: {e}") from e

    async def delete_messages(self, conversation_id: str) -> None:
        db = await self._connection()
        try:
            await db.execute("DELETE FROM messages WHERE conversation_id=?", (conversation_id,))
            await db.commit()
        except aiosqlite.Error as e:
            raise MemoryStoreError(f"Failed to delete conversation {conversation_id}: {e}") from e
        log.debug("conversation_store.deleted", conversation_id=conversation_id)

    async def save_summary(
        self, user_id: str, conversation_id: str, summary: str
    ) -> ConversationSummary:
        db = await self._connection()
        now = time.time()
        record = ConversationSummary(
            id=str(uuid.uuid4()),
            user_id=user_id,
            conversation_id=conversation_id,
            title=_summary_title(now),
            summary=summary,
            created_at=now,
        )
        try:
            await db.execute(
                """INSERT INTO conversation_summaries
                   (id, user_id, conversation_id, title, summary, tags, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.id,
                    record.user_id,
                    record.conversation_id,
                    record.title,
                    record.summary,
                    ",".join(record.tags),
                    record.created_at,
                ),
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise MemoryStoreError(f"Failed to save summary for {conversation_id}: {e}") from e
        log.info("conversation_store.summary_saved", conversation_id=conversation_id)
        return record

    async def get_summaries(self, user_id: str) -> list[ConversationSummary]:
        db = await self._connection()
        try:
            async with db.execute(
                """SELECT * FROM conversation_summaries WHERE user_id=?
                   ORDER BY created_at DESC""",
                (user_id,),
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise MemoryStoreError(f"Failed to load summaries for {user_id}: {e}") from e
        return [
            ConversationSummary(
                id=row["id"],
                user_id=row["user_id"],
                conversation_id=row["conversation_id"],
                title=row["title"],
                summary=row["summary"],
                created_at=row["created_at"],
                tags=tuple(t for t in (row["tags"] or "").split(",") if t),
            )
            for row in rows
        ]
