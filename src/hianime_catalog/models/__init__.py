from __future__ import annotations

from hianime_catalog.models.anime import (
    HealthReport,
    HomeFeedSnapshot,
    NormalizedAnimeSummary,
    RankedAnime,
    SearchResultPage,
    SpotlightAnime,
)
from hianime_catalog.models.cache import CacheEntry
from hianime_catalog.models.outcome import Failure, RequestOutcome, StaleFallback, Success

__all__ = [
    # anime
    "NormalizedAnimeSummary",
    "SpotlightAnime",
    "RankedAnime",
    "HomeFeedSnapshot",
    "SearchResultPage",
    "HealthReport",
    # cache
    "CacheEntry",
    # outcomes
    "Success",
    "StaleFallback",
    "Failure",
    "RequestOutcome",
]
