"""Mapping of upstream payloads onto the catalog models.

The upstream schema is not documented, so every summary field is read from an
ordered list of candidate source paths. The first candidate that is present
wins, otherwise the model default applies. The mapping is data, not code:
pass a different ``FieldMapping`` to ``Normalizer`` when the upstream changes.

Pure functions over dicts. No I/O, no knowledge of the cache or fetcher.
"""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from hianime_catalog.models.anime import (
    HomeFeedSnapshot,
    NormalizedAnimeSummary,
    RankedAnime,
    SearchResultPage,
    SpotlightAnime,
)

_MISSING = object()
_LEADING_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


class FieldMapping(BaseModel):
    """Candidate source paths per summary field, most preferred first.

    Paths use dots for nesting: ``"rating.mal"`` reads ``raw["rating"]["mal"]``.
    """

    model_config = ConfigDict(frozen=True)

    id: tuple[str, ...] = ("id",)
    title: tuple[str, ...] = ("name", "title")
    poster_url: tuple[str, ...] = ("poster", "image")
    rating: tuple[str, ...] = ("rating.mal", "score")
    total_episodes: tuple[str, ...] = ("episodes.total", "totalEpisodes")
    kind: tuple[str, ...] = ("type",)
    status: tuple[str, ...] = ("status",)
    genres: tuple[str, ...] = ("genres",)
    description: tuple[str, ...] = ("description", "synopsis")
    year: tuple[str, ...] = ("releaseDate.year", "year")
    duration_minutes: tuple[str, ...] = ("duration",)
    studios: tuple[str, ...] = ("studios",)
    audio_track: tuple[str, ...] = ("subOrDub",)

    # Section-level fields
    rank: tuple[str, ...] = ("rank",)
    extra_info: tuple[str, ...] = ("otherInfo",)


DEFAULT_FIELD_MAPPING = FieldMapping()

_TEXT_FIELDS = ("id", "title", "poster_url", "kind", "status", "description", "audio_track")
_LIST_FIELDS = ("genres", "studios")
_INT_FIELDS = ("total_episodes", "year", "duration_minutes")


def lookup(raw: dict[str, Any], path: str) -> Any:
    """Follow a dotted path through nested dicts. Returns ``_MISSING`` on any gap."""
    current: Any = raw
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def first_present(raw: dict[str, Any], paths: tuple[str, ...]) -> Any:
    """Return the first candidate that is neither missing, ``None`` nor ``""``."""
    for path in paths:
        value = lookup(raw, path)
        if value is _MISSING or value is None or value == "":
            continue
        return value
    return _MISSING


def _as_number(value: Any) -> float | None:
    """Coerce to a finite float, or ``None`` so the field default applies."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = _LEADING_NUMBER.search(value)
        value = match.group() if match else None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _as_str_list(value: Any) -> list[str] | None:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value if item is not None and item != ""]
    return None


class Normalizer:
    """Builds catalog models from raw upstream ``data`` payloads."""

    def __init__(self, mapping: FieldMapping = DEFAULT_FIELD_MAPPING) -> None:
        self._mapping = mapping

    def _fields(self, raw: dict[str, Any]) -> dict[str, Any]:
        mapping = self._mapping
        fields: dict[str, Any] = {}

        for name in _TEXT_FIELDS:
            value = first_present(raw, getattr(mapping, name))
            if value is not _MISSING and not isinstance(value, (dict, list)):
                fields[name] = str(value)

        for name in _LIST_FIELDS:
            value = _as_str_list(first_present(raw, getattr(mapping, name)))
            if value is not None:
                fields[name] = value

        rating = _as_number(first_present(raw, mapping.rating))
        if rating is not None:
            fields["rating"] = rating

        for name in _INT_FIELDS:
            number = _as_number(first_present(raw, getattr(mapping, name)))
            if number is not None:
                fields[name] = int(number)

        return fields

    def summary(self, raw: Any) -> NormalizedAnimeSummary:
        """Normalize one title. Non-dict input yields the all-defaults summary."""
        if not isinstance(raw, dict):
            return NormalizedAnimeSummary()
        return NormalizedAnimeSummary(**self._fields(raw))

    def _rank(self, raw: dict[str, Any]) -> int:
        rank = _as_number(first_present(raw, self._mapping.rank))
        return int(rank) if rank is not None else 0

    def spotlight(self, raw: dict[str, Any]) -> SpotlightAnime:
        extra_info = _as_str_list(first_present(raw, self._mapping.extra_info)) or []
        return SpotlightAnime(**self._fields(raw), rank=self._rank(raw), extra_info=extra_info)

    def ranked(self, raw: dict[str, Any]) -> RankedAnime:
        return RankedAnime(**self._fields(raw), rank=self._rank(raw))

    def home_feed(self, data: dict[str, Any], fetched_at: datetime | None = None) -> HomeFeedSnapshot:
        top10 = data.get("top10Animes")
        return HomeFeedSnapshot(
            spotlight=[self.spotlight(item) for item in _dict_items(data.get("spotlightAnimes"))],
            trending=[self.summary(item) for item in _dict_items(data.get("trendingAnimes"))],
            top_airing=[
                self.ranked(item)
                for item in _dict_items(top10.get("today") if isinstance(top10, dict) else None)
            ],
            fetched_at=fetched_at or datetime.now(UTC),
        )

    def details(self, data: dict[str, Any]) -> NormalizedAnimeSummary:
        return self.summary(data.get("anime"))

    def search_page(self, data: dict[str, Any], requested_page: int = 1) -> SearchResultPage:
        page = _as_number(data.get("currentPage")) or requested_page or 1
        total_pages = _as_number(data.get("totalPages")) or 1
        total_results = _as_number(data.get("totalResults")) or 0
        return SearchResultPage(
            results=[self.summary(item) for item in _dict_items(data.get("animes"))],
            page=int(page),
            total_pages=int(total_pages),
            has_next_page=bool(data.get("hasNextPage")),
            total_results=int(total_results),
        )


def _dict_items(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]
