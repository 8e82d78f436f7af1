"""Key-value backends for the TimedCache.

Every backend fault is re-raised as ``StoreError`` so the cache only has one
exception type to degrade on.
"""

from __future__ import annotations

import aiosqlite

from hianime_catalog.errors import StoreError

_CREATE_KV_TABLE = """
CREATE TABLE IF NOT EXISTS kv_store (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class MemoryStore:
    """Dict-backed store. ``max_entries`` models a storage quota."""

    def __init__(self, max_entries: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._max_entries = max_entries

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if (
            self._max_entries is not None
            and key not in self._items
            and len(self._items) >= self._max_entries
        ):
            raise StoreError(f"Store quota exceeded ({self._max_entries} entries)")
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    async def keys(self) -> list[str]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class SqliteStore:
    """SQLite-backed store. One row per key, written with ``INSERT OR REPLACE``."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create the table and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_KV_TABLE)
        await self._db.commit()

    async def get_item(self, key: str) -> str | None:
        try:
            cursor = await self._db.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to read {key!r}: {exc}") from exc
        return None if row is None else row[0]

    async def set_item(self, key: str, value: str) -> None:
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (key, value),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to write {key!r}: {exc}") from exc

    async def remove_item(self, key: str) -> None:
        try:
            await self._db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to remove {key!r}: {exc}") from exc

    async def keys(self) -> list[str]:
        try:
            cursor = await self._db.execute("SELECT key FROM kv_store")
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to list keys: {exc}") from exc
        return [row[0] for row in rows]
