"""HTTP fetcher with a per-attempt deadline and bounded linear-backoff retry.

All network I/O against the catalog API goes through a single
ResilientFetcher. It receives an httpx.AsyncClient via constructor
injection; the caller owns the client lifecycle.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from hianime_catalog.errors import CatalogError, ErrorKind

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from hianime_catalog.config import ApiSettings

log = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0


@dataclass(frozen=True)
class RequestSpec:
    """One logical GET against the catalog API, relative to the base URL."""

    path: str
    params: dict[str, str | int] = field(default_factory=dict)


def build_http_client(settings: ApiSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        base_url=settings.base_url.rstrip("/") + "/",
        # Upper bound only; the per-attempt deadline is enforced by the fetcher
        timeout=httpx.Timeout(settings.timeout_seconds * 2),
        headers={
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": settings.user_agent,
        },
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


class ResilientFetcher:
    """Executes requests with a hard deadline, up to ``max_attempts`` tries."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self._client = client
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._base_delay = base_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: ApiSettings) -> ResilientFetcher:
        return cls(
            client,
            timeout_seconds=settings.timeout_seconds,
            max_attempts=settings.max_attempts,
            base_delay_seconds=settings.retry_base_delay_seconds,
        )

    async def execute(self, spec: RequestSpec) -> Any:
        """Perform the request and return the decoded JSON body.

        Raises CatalogError with the classification of the final attempt's
        failure. ``asyncio.CancelledError`` is never retried.
        """
        url = spec.path.lstrip("/")
        last_error: CatalogError | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._attempt(url, spec.params, attempt)
            except CatalogError as exc:
                last_error = exc
                log.warning(
                    "fetch_attempt_failed",
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    url=exc.url,
                    error_kind=exc.kind,
                    status_code=exc.status_code,
                    message=exc.message,
                )

            if attempt < self._max_attempts:
                await self._sleep(attempt * self._base_delay)

        if last_error is None:
            raise RuntimeError("execute() finished without an attempt")
        raise last_error

    async def _attempt(self, url: str, params: dict[str, str | int], attempt: int) -> Any:
        request = self._client.build_request("GET", url, params=params)
        target = str(request.url)
        log.debug("fetch_attempt", attempt=attempt, max_attempts=self._max_attempts, url=target)

        try:
            response = await asyncio.wait_for(self._client.send(request), timeout=self._timeout)
        except TimeoutError as exc:
            raise CatalogError(
                ErrorKind.TIMEOUT,
                f"Request timeout after {self._timeout:g}s",
                url=target,
            ) from exc
        except httpx.TimeoutException as exc:
            raise CatalogError(ErrorKind.TIMEOUT, f"Request timeout: {exc}", url=target) from exc
        except httpx.HTTPError as exc:
            raise CatalogError(ErrorKind.NETWORK, f"Network error: {exc}", url=target) from exc

        if not response.is_success:
            raise CatalogError(
                ErrorKind.HTTP,
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
                url=target,
            )

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CatalogError(
                ErrorKind.UNSUCCESSFUL_RESPONSE,
                "Response body is not valid JSON",
                status_code=response.status_code,
                url=target,
            ) from exc

        log.info(
            "fetch_complete",
            url=target,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        return body
