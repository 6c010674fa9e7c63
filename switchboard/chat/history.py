"""
Conversation history stores.

A conversation is an append-only list of {sender, content, timestamp}
entries keyed by conversation id. Appends for one conversation are
serialized through a per-conversation asyncio.Lock, so concurrent turns on
the same id never interleave.
"""

from __future__ import annotations

import asyncio
import sqlite3
import weakref
from contextlib import closing
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from switchboard.config.logging import get_logger

logger = get_logger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class HistoryEntry(BaseModel):
    """One stored turn."""

    sender: str = Field(description='"user" or the assistant identity')
    content: str = Field(description="Message text")
    timestamp: str = Field(default_factory=_now, description="ISO-8601 UTC time of the turn")


class HistoryStore(Protocol):
    """Storage consumed by ConversationAdapter."""

    async def append(self, conversation_id: str, *entries: HistoryEntry) -> None: ...

    async def read(self, conversation_id: str) -> list[HistoryEntry]: ...

    async def clear(self, conversation_id: str) -> bool: ...


class _ConversationLocks:
    # Weak values: a lock lives only while some coroutine holds or awaits it
    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        return lock


class InMemoryHistoryStore(_ConversationLocks):
    """Process-local history, lost on restart."""

    def __init__(self) -> None:
        super().__init__()
        self._conversations: dict[str, list[HistoryEntry]] = {}

    async def append(self, conversation_id: str, *entries: HistoryEntry) -> None:
        async with self.lock_for(conversation_id):
            self._conversations.setdefault(conversation_id, []).extend(entries)

    async def read(self, conversation_id: str) -> list[HistoryEntry]:
        return list(self._conversations.get(conversation_id, []))

    async def clear(self, conversation_id: str) -> bool:
        async with self.lock_for(conversation_id):
            removed = self._conversations.pop(conversation_id, None) is not None
        logger.debug(f"Cleared history for {conversation_id}: {removed}")
        return removed


class SQLiteHistoryStore(_ConversationLocks):
    """History persisted to a SQLite file; entries keep insertion order."""

    def __init__(self, db_path: str | Path) -> None:
        super().__init__()
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(sqlite3.connect(self._db_path)) as conn, conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversation_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT NOT NULL,
                    sender TEXT NOT NULL,
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversation ON conversation_history(conversation_id)"
            )

    async def append(self, conversation_id: str, *entries: HistoryEntry) -> None:
        async with self.lock_for(conversation_id):
            with closing(sqlite3.connect(self._db_path)) as conn, conn:
                conn.executemany(
                    "INSERT INTO conversation_history (conversation_id, sender, content, timestamp) "
                    "VALUES (?, ?, ?, ?)",
                    [(conversation_id, e.sender, e.content, e.timestamp) for e in entries],
                )

    async def read(self, conversation_id: str) -> list[HistoryEntry]:
        with closing(sqlite3.connect(self._db_path)) as conn:
            rows = conn.execute(
                "SELECT sender, content, timestamp FROM conversation_history "
                "WHERE conversation_id = ? ORDER BY id",
                (conversation_id,),
            ).fetchall()
        return [HistoryEntry(sender=s, content=c, timestamp=t) for s, c, t in rows]

    async def clear(self, conversation_id: str) -> bool:
        async with self.lock_for(conversation_id):
            with closing(sqlite3.connect(self._db_path)) as conn, conn:
                cur = conn.execute(
                    "DELETE FROM conversation_history WHERE conversation_id = ?", (conversation_id,)
                )
                return cur.rowcount > 0
