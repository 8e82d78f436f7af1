"""Integration test fixtures.

Provides a fully wired CatalogClient over in-memory SQLite, a real httpx
client intercepted by respx, and a manually advanced clock.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import httpx
import pytest

from hianime_catalog.cache import TimedCache
from hianime_catalog.client import CatalogClient
from hianime_catalog.fetcher import ResilientFetcher
from hianime_catalog.stores import SqliteStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from conftest import FakeClock, RecordingSleep


@pytest.fixture()
async def sqlite_store() -> AsyncIterator[SqliteStore]:
    async with aiosqlite.connect(":memory:") as db:
        store = SqliteStore(db)
        await store.init_db()
        yield store


@pytest.fixture()
async def catalog(
    sqlite_store: SqliteStore,
    clock: FakeClock,
    recording_sleep: RecordingSleep,
    base_url: str,
) -> AsyncIterator[CatalogClient]:
    cache = TimedCache(sqlite_store, clock=clock)
    async with httpx.AsyncClient(base_url=base_url + "/") as http_client:
        yield CatalogClient(cache, ResilientFetcher(http_client, sleep=recording_sleep))
