"""Catalog operations: cache lookup, network fetch, normalization, stale fallback.

Every public operation returns a ``RequestOutcome``; ``CatalogError`` is
caught here and nowhere above. Callers always receive a usable payload,
possibly the operation's empty default.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from hianime_catalog.errors import CatalogError, ErrorKind
from hianime_catalog.fetcher import RequestSpec
from hianime_catalog.models.anime import (
    HealthReport,
    HomeFeedSnapshot,
    NormalizedAnimeSummary,
    SearchResultPage,
)
from hianime_catalog.models.outcome import Failure, RequestOutcome, StaleFallback, Success
from hianime_catalog.normalizer import Normalizer

if TYPE_CHECKING:
    from collections.abc import Callable

    from hianime_catalog.cache import TimedCache
    from hianime_catalog.protocols import FetcherProtocol

log = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

HOME_ENDPOINT = "home"
INFO_ENDPOINT = "info"
SEARCH_ENDPOINT = "search"


def home_cache_key(namespace: str) -> str:
    return f"{namespace}home_data"


def details_cache_key(namespace: str, anime_id: str) -> str:
    return f"{namespace}anime_{anime_id}"


def search_cache_key(namespace: str, query: str, page: int) -> str:
    return f"{namespace}search_{query}_{page}"


def unwrap_envelope(body: Any, url: str | None = None) -> dict[str, Any]:
    """Return ``body["data"]`` when the envelope reports ``success: true``."""
    if not isinstance(body, dict) or body.get("success") is not True:
        raise CatalogError(
            ErrorKind.UNSUCCESSFUL_RESPONSE,
            "API returned unsuccessful response",
            url=url,
        )
    data = body.get("data")
    if not isinstance(data, dict):
        raise CatalogError(
            ErrorKind.UNSUCCESSFUL_RESPONSE,
            "API response is missing its data payload",
            url=url,
        )
    return data


class CatalogClient:
    """Home feed, title details and search over a TimedCache and a fetcher."""

    def __init__(
        self,
        cache: TimedCache,
        fetcher: FetcherProtocol,
        normalizer: Normalizer | None = None,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._normalizer = normalizer or Normalizer()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get_home_data(self, *, force_refresh: bool = False) -> RequestOutcome[HomeFeedSnapshot]:
        return await self._run(
            operation="home",
            key=home_cache_key(self._cache.namespace),
            spec=RequestSpec(HOME_ENDPOINT),
            model=HomeFeedSnapshot,
            transform=lambda data: self._normalizer.home_feed(data, datetime.now(UTC)),
            empty=HomeFeedSnapshot(),
            force_refresh=force_refresh,
        )

    async def get_anime_details(
        self, anime_id: str, *, force_refresh: bool = False
    ) -> RequestOutcome[NormalizedAnimeSummary]:
        return await self._run(
            operation="details",
            key=details_cache_key(self._cache.namespace, anime_id),
            spec=RequestSpec(INFO_ENDPOINT, {"id": anime_id}),
            model=NormalizedAnimeSummary,
            transform=self._normalizer.details,
            empty=NormalizedAnimeSummary(id=anime_id),
            force_refresh=force_refresh,
        )

    async def search_anime(
        self, query: str, page: int = 1, *, force_refresh: bool = False
    ) -> RequestOutcome[SearchResultPage]:
        query = query.strip()
        if not query:
            return Success(SearchResultPage(), from_cache=False)
        return await self._run(
            operation="search",
            key=search_cache_key(self._cache.namespace, query, page),
            spec=RequestSpec(SEARCH_ENDPOINT, {"q": query, "page": page}),
            model=SearchResultPage,
            transform=lambda data: self._normalizer.search_page(data, page),
            empty=SearchResultPage.empty(page),
            force_refresh=force_refresh,
        )

    async def health_check(self) -> HealthReport:
        """Hit the home endpoint without the cache. Never raises."""
        try:
            await self._fetcher.execute(RequestSpec(HOME_ENDPOINT))
        except CatalogError as exc:
            log.warning("health_check_failed", kind=exc.kind, message=exc.message)
            return HealthReport(
                status="unhealthy",
                checked_at=datetime.now(UTC),
                error=exc.message,
                error_kind=exc.kind,
            )
        return HealthReport(status="healthy", checked_at=datetime.now(UTC))

    async def clear_cache(self) -> int:
        return await self._cache.clear_all()

    # ------------------------------------------------------------------
    # Shared template
    # ------------------------------------------------------------------

    async def _run(
        self,
        *,
        operation: str,
        key: str,
        spec: RequestSpec,
        model: type[ModelT],
        transform: Callable[[dict[str, Any]], ModelT],
        empty: ModelT,
        force_refresh: bool,
    ) -> RequestOutcome[ModelT]:
        op_log = log.bind(operation=operation, key=key)

        if not force_refresh:
            cached = self._revive(model, await self._cache.get(key), op_log)
            if cached is not None:
                op_log.info("cache_hit")
                return Success(cached, from_cache=True)
        op_log.info("cache_miss", force_refresh=force_refresh)

        try:
            body = await self._fetcher.execute(spec)
            result = transform(unwrap_envelope(body, spec.path))
        except CatalogError as exc:
            return await self._fallback(model, key, exc, empty, op_log)

        await self._cache.set(key, result.model_dump(mode="json"))
        return Success(result, from_cache=False)

    async def _fallback(
        self,
        model: type[ModelT],
        key: str,
        exc: CatalogError,
        empty: ModelT,
        op_log: structlog.typing.FilteringBoundLogger,
    ) -> RequestOutcome[ModelT]:
        stale = self._revive(model, await self._cache.get_stale(key), op_log)
        if stale is not None:
            op_log.warning("catalog_stale_fallback", kind=exc.kind, reason=exc.message)
            return StaleFallback(stale, reason=exc.message)

        op_log.error("catalog_failure", kind=exc.kind, reason=exc.message)
        return Failure(empty, reason=exc.message, kind=exc.kind)

    @staticmethod
    def _revive(
        model: type[ModelT], payload: Any, op_log: structlog.typing.FilteringBoundLogger
    ) -> ModelT | None:
        if payload is None:
            return None
        try:
            return model.model_validate(payload)
        except ValidationError:
            op_log.warning("cache_payload_invalid", kind=ErrorKind.CACHE_FAULT, exc_info=True)
            return None
