"""Per-use-case view controllers consumed by the UI layer.

Each controller runs at most one logical request at a time. Starting a new
request cancels the previous asyncio task and its CancellationToken; a
response is applied only if its token is still live, so a late answer can
never overwrite newer state. ``close()`` is terminal.

The UI reads the exposed properties and may ``subscribe`` to be told after
every state change. Nothing raised by a loader escapes a controller.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog

from hianime_catalog.errors import ErrorKind
from hianime_catalog.models.anime import (
    HealthReport,
    HomeFeedSnapshot,
    NormalizedAnimeSummary,
    SearchResultPage,
)
from hianime_catalog.models.outcome import Failure, StaleFallback, Success

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from hianime_catalog.client import CatalogClient
    from hianime_catalog.models.anime import RankedAnime, SpotlightAnime
    from hianime_catalog.models.outcome import RequestOutcome

log = structlog.get_logger()

T = TypeVar("T")


class ViewState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    STALE = "stale"  # Data is stale but still usable


class CancellationToken:
    """Handle for one logical request. Once cancelled, stays cancelled."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class DataViewController(Generic[T]):
    """Idle → Loading → {Success | Error | Stale} state machine over one data need."""

    # Failure payloads are placeholders; by default the last good data stays on screen
    replace_data_on_error = False

    def __init__(self, empty: T, *, name: str) -> None:
        self._empty = empty
        self._data: T = empty
        self._state = ViewState.IDLE
        self._error_message: str | None = None
        self._from_cache = False
        self._token: CancellationToken | None = None
        self._task: asyncio.Task[None] | None = None
        self._listeners: list[Callable[[DataViewController[T]], None]] = []
        self._closed = False
        self._log = log.bind(view=name)

    # ------------------------------------------------------------------
    # UI surface
    # ------------------------------------------------------------------

    @property
    def data(self) -> T:
        return self._data

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def is_idle(self) -> bool:
        return self._state == ViewState.IDLE

    @property
    def is_loading(self) -> bool:
        return self._state == ViewState.LOADING

    @property
    def is_success(self) -> bool:
        return self._state == ViewState.SUCCESS

    @property
    def is_error(self) -> bool:
        return self._state == ViewState.ERROR

    @property
    def is_stale(self) -> bool:
        return self._state == ViewState.STALE

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def from_cache(self) -> bool:
        return self._from_cache

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(
        self, listener: Callable[[DataViewController[T]], None]
    ) -> Callable[[], None]:
        """Call ``listener`` after every state change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Tear down: cancel the in-flight request and stop emitting updates."""
        if self._closed:
            return
        self._cancel_in_flight()
        self._closed = True
        self._listeners.clear()
        self._log.debug("view_closed")

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    def _start(self, loader: Callable[[], Awaitable[RequestOutcome[T]]]) -> asyncio.Task[None] | None:
        if self._closed:
            self._log.debug("view_request_refused", reason="closed")
            return None

        self._cancel_in_flight()
        token = CancellationToken()
        self._token = token
        self._transition(ViewState.LOADING, error_message=None)
        self._task = asyncio.create_task(self._run(loader, token))
        return self._task

    async def _run(
        self, loader: Callable[[], Awaitable[RequestOutcome[T]]], token: CancellationToken
    ) -> None:
        try:
            outcome = await loader()
        except asyncio.CancelledError:
            self._log.debug("view_request_cancelled")
            raise
        except Exception as exc:
            self._log.error("view_loader_error", exc_info=True)
            if token.cancelled:
                return
            self._transition(ViewState.ERROR, error_message=str(exc) or type(exc).__name__)
            return

        if token.cancelled:
            self._log.debug("view_response_discarded")
            return
        self._apply(outcome)

    def _apply(self, outcome: RequestOutcome[T]) -> None:
        match outcome:
            case Success(data=data, from_cache=from_cache):
                self._transition(
                    ViewState.SUCCESS, data=data, error_message=None, from_cache=from_cache
                )
            case StaleFallback(data=data, reason=reason):
                self._transition(ViewState.STALE, data=data, error_message=reason, from_cache=True)
            case Failure(data=data, reason=reason):
                self._transition(
                    ViewState.ERROR,
                    data=data if self.replace_data_on_error else None,
                    error_message=reason,
                )

    def _cancel_in_flight(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _reset(self) -> None:
        """Cancel any request and return to Idle with the empty payload."""
        self._cancel_in_flight()
        if self._closed:
            return
        self._transition(ViewState.IDLE, data=self._empty, error_message=None, from_cache=False)

    def _transition(
        self,
        state: ViewState,
        *,
        data: T | None = None,
        error_message: str | None,
        from_cache: bool | None = None,
    ) -> None:
        if self._closed:
            return
        self._state = state
        if data is not None:
            self._data = data
        if from_cache is not None:
            self._from_cache = from_cache
        self._error_message = error_message
        self._log.debug("view_state_changed", state=state)
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                # One broken subscriber must not stall the others or the request task
                self._log.exception("view_listener_error", state=state)


# ----------------------------------------------------------------------
# Use cases
# ----------------------------------------------------------------------


class HomeFeedView(DataViewController[HomeFeedSnapshot]):
    """Spotlight, trending and top-airing sections of the home page."""

    def __init__(self, client: CatalogClient) -> None:
        super().__init__(HomeFeedSnapshot(), name="home")
        self._client = client

    def load(self, *, force_refresh: bool = False) -> asyncio.Task[None] | None:
        return self._start(lambda: self._client.get_home_data(force_refresh=force_refresh))

    def retry(self) -> asyncio.Task[None] | None:
        return self.load()

    def refresh(self) -> asyncio.Task[None] | None:
        return self.load(force_refresh=True)

    @property
    def spotlight(self) -> list[SpotlightAnime]:
        return self.data.spotlight

    @property
    def trending(self) -> list[NormalizedAnimeSummary]:
        return self.data.trending

    @property
    def top_airing(self) -> list[RankedAnime]:
        return self.data.top_airing

    @property
    def last_updated(self) -> datetime | None:
        return self.data.fetched_at


class AnimeDetailsView(DataViewController[NormalizedAnimeSummary]):
    """Details for the currently selected title."""

    def __init__(self, client: CatalogClient) -> None:
        super().__init__(NormalizedAnimeSummary(), name="details")
        self._client = client
        self._anime_id = ""

    @property
    def anime_id(self) -> str:
        return self._anime_id

    def set_anime_id(self, anime_id: str | None) -> asyncio.Task[None] | None:
        """Select a title. An empty id clears the view back to Idle."""
        self._anime_id = (anime_id or "").strip()
        if not self._anime_id:
            self._reset()
            return None
        return self._load()

    def retry(self) -> asyncio.Task[None] | None:
        if not self._anime_id:
            return None
        return self._load()

    def _load(self) -> asyncio.Task[None] | None:
        anime_id = self._anime_id
        return self._start(lambda: self._client.get_anime_details(anime_id))


class SearchView(DataViewController[SearchResultPage]):
    """Paginated search. Each page replaces the previous one."""

    def __init__(self, client: CatalogClient) -> None:
        super().__init__(SearchResultPage(), name="search")
        self._client = client
        self._query = ""
        self._requested_page = 1

    @property
    def query(self) -> str:
        return self._query

    @property
    def results(self) -> list[NormalizedAnimeSummary]:
        return self.data.results

    @property
    def page(self) -> int:
        return self.data.page

    @property
    def total_pages(self) -> int:
        return self.data.total_pages

    @property
    def has_next_page(self) -> bool:
        return self.data.has_next_page

    @property
    def total_results(self) -> int:
        return self.data.total_results

    def search(self, query: str, page: int = 1) -> asyncio.Task[None] | None:
        """Run a search. A blank query clears the view back to Idle."""
        query = query.strip()
        if not query:
            self.clear()
            return None
        self._query = query
        self._requested_page = page
        return self._start(lambda: self._client.search_anime(query, page))

    def load_next_page(self) -> asyncio.Task[None] | None:
        if not self._query or not self.has_next_page or self.is_loading:
            return None
        return self.search(self._query, self.page + 1)

    def retry(self) -> asyncio.Task[None] | None:
        if not self._query:
            return None
        return self.search(self._query, self._requested_page)

    def clear(self) -> None:
        self._query = ""
        self._requested_page = 1
        self._reset()


class HealthView(DataViewController[HealthReport]):
    """Upstream availability indicator."""

    replace_data_on_error = True

    def __init__(self, client: CatalogClient) -> None:
        super().__init__(HealthReport(), name="health")
        self._client = client

    @property
    def status(self) -> str:
        return self.data.status

    @property
    def is_healthy(self) -> bool:
        return self.data.status == "healthy"

    @property
    def is_unknown(self) -> bool:
        return self.data.status == "unknown"

    @property
    def last_check(self) -> datetime | None:
        return self.data.checked_at

    def check_health(self) -> asyncio.Task[None] | None:
        return self._start(self._probe)

    async def _probe(self) -> RequestOutcome[HealthReport]:
        report = await self._client.health_check()
        if report.status == "healthy":
            return Success(report, from_cache=False)
        return Failure(
            report,
            reason=report.error or "Upstream unhealthy",
            kind=report.error_kind or ErrorKind.NETWORK,
        )
