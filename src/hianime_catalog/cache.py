"""TTL cache over a key-value store with stale reads and namespaced eviction.

All cache operations catch ``StoreError`` internally and degrade gracefully:
read failures return ``None`` (treated as cache miss by callers), write
failures clear the cache namespace and retry once, then are logged and
ignored (fetched content is still returned). Infrastructure errors never
cross the TimedCache boundary.
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any

import structlog

from hianime_catalog.errors import ErrorKind, StoreError
from hianime_catalog.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable

    from hianime_catalog.protocols import KeyValueStore

log = structlog.get_logger()

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_NAMESPACE = "hianime_"


class TimedCache:
    """Cache with one TTL for every entry, fixed at construction."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        namespace: str = DEFAULT_NAMESPACE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._namespace = namespace
        self._clock = clock

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def namespace(self) -> str:
        return self._namespace

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_entry(self, key: str) -> CacheEntry | None:
        """Read an entry regardless of age. Returns ``None`` on miss or read failure."""
        try:
            raw = await self._store.get_item(key)
        except StoreError:
            log.warning("cache_read_error", key=key, kind=ErrorKind.CACHE_FAULT, exc_info=True)
            return None
        if raw is None:
            return None

        try:
            return CacheEntry.from_record(key, json.loads(raw))
        except ValueError:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            log.warning("cache_entry_corrupt", key=key, kind=ErrorKind.CACHE_FAULT, exc_info=True)
            await self._discard(key)
            return None

    async def get(self, key: str) -> Any | None:
        """Return the payload only while it is younger than the TTL."""
        entry = await self.get_entry(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock(), self._ttl):
            log.debug("cache_expired", key=key, stored_at=entry.stored_at)
            return None
        return entry.payload

    async def get_stale(self, key: str) -> Any | None:
        """Return the most recent payload for ``key`` ignoring the TTL."""
        entry = await self.get_entry(key)
        return None if entry is None else entry.payload

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set(self, key: str, value: Any) -> None:
        """Write an entry. Non-fatal on failure."""
        entry = CacheEntry(key=key, payload=value, stored_at=self._clock())
        try:
            serialised = json.dumps(entry.to_record())
        except (TypeError, ValueError):
            log.warning("cache_write_error", key=key, reason="unserialisable", exc_info=True)
            return

        try:
            await self._store.set_item(key, serialised)
            return
        except StoreError:
            log.warning("cache_write_error", key=key, kind=ErrorKind.CACHE_FAULT, exc_info=True)

        # Store full or faulting: drop our own namespace and try once more
        await self.clear_namespace(self._namespace)
        try:
            await self._store.set_item(key, serialised)
        except StoreError:
            log.warning(
                "cache_write_retry_failed", key=key, kind=ErrorKind.CACHE_FAULT, exc_info=True
            )

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    async def clear_namespace(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``. Returns the number removed."""
        try:
            keys = [k for k in await self._store.keys() if k.startswith(prefix)]
            for key in keys:
                await self._store.remove_item(key)
        except StoreError:
            log.warning("cache_clear_error", prefix=prefix, kind=ErrorKind.CACHE_FAULT, exc_info=True)
            return 0
        log.info("cache_namespace_cleared", prefix=prefix, deleted=len(keys))
        return len(keys)

    async def clear_all(self) -> int:
        """Remove every entry this cache owns."""
        return await self.clear_namespace(self._namespace)

    async def _discard(self, key: str) -> None:
        try:
            await self._store.remove_item(key)
        except StoreError:
            log.warning("cache_discard_error", key=key, exc_info=True)
