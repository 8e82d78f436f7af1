from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from hianime_catalog.errors import ErrorKind

PLACEHOLDER_POSTER = "/placeholder-anime.jpg"


class NormalizedAnimeSummary(BaseModel):
    """One catalog title, mapped from whatever shape the upstream returned."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    title: str = "Unknown Title"
    poster_url: str = PLACEHOLDER_POSTER
    rating: float = 0
    total_episodes: int = 0
    kind: str = "Unknown"  # TV, Movie, OVA, ...
    status: str = "Unknown"
    genres: list[str] = []
    description: str = "No description available"
    year: int | None = None
    duration_minutes: int | None = None
    studios: list[str] = []
    audio_track: str = "sub"  # "sub" | "dub" | "both"


class SpotlightAnime(NormalizedAnimeSummary):
    rank: int = 0
    extra_info: list[str] = []


class RankedAnime(NormalizedAnimeSummary):
    rank: int = 0


class HomeFeedSnapshot(BaseModel):
    """Home page sections. A new snapshot always replaces the previous one."""

    model_config = ConfigDict(frozen=True)

    spotlight: list[SpotlightAnime] = []
    trending: list[NormalizedAnimeSummary] = []
    top_airing: list[RankedAnime] = []
    fetched_at: datetime | None = None  # None only for the empty default


class SearchResultPage(BaseModel):
    """One page of search results, cached independently per (query, page)."""

    model_config = ConfigDict(frozen=True)

    results: list[NormalizedAnimeSummary] = []
    page: int = 1
    total_pages: int = 1
    has_next_page: bool = False
    total_results: int = 0

    @classmethod
    def empty(cls, page: int = 1) -> SearchResultPage:
        """Shape returned when a search fails with nothing cached."""
        return cls(page=page, total_pages=0)


class HealthReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["healthy", "unhealthy", "unknown"] = "unknown"
    checked_at: datetime | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
