"""
Key/value storage backends for the response cache.

Backend contract (all coroutines):

- ``get(key) -> str | None``
- ``set(key, value, ttl) -> bool``
- ``delete(key) -> bool``
- ``keys() -> list[str]``
- optional ``delete_by_prefix(prefix) -> int``

Backends raise CacheError on storage failure; ResponseCache decides what to
do with it.
"""

from __future__ import annotations

import asyncio
import sqlite3
import time
from collections.abc import Callable
from contextlib import closing
from pathlib import Path

from switchboard.config.logging import get_logger
from switchboard.errors import CacheError

logger = get_logger(__name__)

__all__ = [
    "MemoryCacheBackend",
    "SQLiteCacheBackend",
]


class MemoryCacheBackend:
    """asyncio-safe TTL dict; evicts the oldest entry when full."""

    def __init__(self, max_entries: int = 2048, clock: Callable[[], float] = time.time) -> None:
        self._max_entries = max_entries
        self._clock = clock
        # key -> (stored_at, expires_at or None, value)
        self._store: dict[str, tuple[float, float | None, str]] = {}
        self._lock = asyncio.Lock()

    def _expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and self._clock() >= expires_at

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            _, expires_at, value = entry
            if self._expired(expires_at):
                del self._store[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        async with self._lock:
            if key not in self._store and len(self._store) >= self._max_entries:
                oldest_key = min(self._store.items(), key=lambda kv: kv[1][0])[0]
                self._store.pop(oldest_key, None)
            now = self._clock()
            expires_at = now + ttl if ttl else None
            self._store[key] = (now, expires_at, value)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._store.pop(key, None) is not None

    async def keys(self) -> list[str]:
        async with self._lock:
            return [k for k, (_, expires_at, _) in self._store.items() if not self._expired(expires_at)]

    async def delete_by_prefix(self, prefix: str) -> int:
        async with self._lock:
            doomed = [k for k in self._store if k.startswith(prefix)]
            for key in doomed:
                del self._store[key]
            return len(doomed)


class SQLiteCacheBackend:
    """
    Persistent cache stored in a SQLite file.

    Expiry is stored as an absolute timestamp and enforced on read. There is
    no native prefix delete; callers enumerate ``keys()`` instead.
    """

    def __init__(self, db_path: str | Path, clock: Callable[[], float] = time.time) -> None:
        self._db_path = Path(db_path)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _init_db(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cache_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                )
            """)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            try:
                with closing(self._connect()) as conn, conn:
                    row = conn.execute(
                        "SELECT value, expires_at FROM cache_entries WHERE key = ?", (key,)
                    ).fetchone()
                    if row is None:
                        return None
                    value, expires_at = row
                    if expires_at is not None and self._clock() >= expires_at:
                        conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                        return None
                    return value
            except sqlite3.Error as e:
                raise CacheError(f"cache read failed: {e}", cause=e) from e

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        async with self._lock:
            try:
                with closing(self._connect()) as conn, conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)",
                        (key, value, expires_at),
                    )
            except sqlite3.Error as e:
                raise CacheError(f"cache write failed: {e}", cause=e) from e
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            try:
                with closing(self._connect()) as conn, conn:
                    cur = conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                    return cur.rowcount > 0
            except sqlite3.Error as e:
                raise CacheError(f"cache delete failed: {e}", cause=e) from e

    async def keys(self) -> list[str]:
        async with self._lock:
            try:
                with closing(self._connect()) as conn, conn:
                    rows = conn.execute(
                        "SELECT key FROM cache_entries WHERE expires_at IS NULL OR expires_at > ?",
                        (self._clock(),),
                    ).fetchall()
            except sqlite3.Error as e:
                raise CacheError(f"cache scan failed: {e}", cause=e) from e
        return [row[0] for row in rows]
