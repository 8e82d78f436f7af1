"""Shared test fixtures for the hianime_catalog test suite."""

from __future__ import annotations

from typing import Any

import pytest

from hianime_catalog.cache import TimedCache
from hianime_catalog.stores import MemoryStore

BASE_URL = "https://api.example.test/anime"


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Replacement for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.delays)


@pytest.fixture()
def base_url() -> str:
    return BASE_URL


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def cache(store: MemoryStore, clock: FakeClock) -> TimedCache:
    """TimedCache with the default 5 minute TTL on an in-memory store."""
    return TimedCache(store, clock=clock)


def anime_raw(anime_id: str, name: str, **extra: Any) -> dict[str, Any]:
    """Upstream-shaped title payload."""
    return {
        "id": anime_id,
        "name": name,
        "poster": f"https://img.example.test/{anime_id}.jpg",
        "type": "TV",
        "episodes": {"sub": 12, "dub": 10, "total": 12},
        **extra,
    }


@pytest.fixture()
def home_body() -> dict[str, Any]:
    return {
        "success": True,
        "data": {
            "spotlightAnimes": [
                anime_raw("frieren-18542", "Frieren", rank=1, otherInfo=["TV", "24m"]),
            ],
            "trendingAnimes": [
                anime_raw("one-piece-100", "One Piece"),
                anime_raw("naruto-677", "Naruto"),
            ],
            "top10Animes": {
                "today": [anime_raw("dandadan-19319", "Dandadan", rank=1)],
                "week": [],
            },
        },
    }


@pytest.fixture()
def details_body() -> dict[str, Any]:
    return {
        "success": True,
        "data": {
            "anime": anime_raw(
                "frieren-18542",
                "Frieren: Beyond Journey's End",
                description="An elf mage outlives her party.",
                genres=["Adventure", "Drama", "Fantasy"],
                rating={"mal": "9.3"},
                releaseDate={"year": 2023},
                duration="24m",
                studios=["Madhouse"],
            )
        },
    }


@pytest.fixture()
def search_body() -> dict[str, Any]:
    return {
        "success": True,
        "data": {
            "animes": [anime_raw("naruto-677", "Naruto"), anime_raw("boruto-8143", "Boruto")],
            "currentPage": 1,
            "totalPages": 3,
            "hasNextPage": True,
            "totalResults": 55,
        },
    }
