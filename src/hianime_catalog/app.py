"""Wiring and command-line entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build the store, cache, fetcher and client from Settings, and close them
- Run one catalog operation from the command line and print it as JSON
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite
import structlog
from pydantic import BaseModel

from hianime_catalog import __version__
from hianime_catalog.cache import TimedCache
from hianime_catalog.client import CatalogClient
from hianime_catalog.config import Settings
from hianime_catalog.fetcher import ResilientFetcher, build_http_client
from hianime_catalog.models.outcome import Failure, StaleFallback, Success
from hianime_catalog.stores import MemoryStore, SqliteStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

    from hianime_catalog.protocols import KeyValueStore

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout carries the command's JSON output
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def _open_store(settings: Settings, stack: AsyncExitStack) -> KeyValueStore:
    if settings.cache.backend == "memory":
        return MemoryStore()

    db_path = Path(settings.cache.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = await stack.enter_async_context(aiosqlite.connect(str(db_path)))
    store = SqliteStore(db)
    await store.init_db()
    return store


@asynccontextmanager
async def open_catalog(settings: Settings) -> AsyncGenerator[CatalogClient, None]:
    """Create and tear down all shared resources for a CatalogClient."""
    async with AsyncExitStack() as stack:
        store = await _open_store(settings, stack)
        http_client = await stack.enter_async_context(build_http_client(settings.api))

        cache = TimedCache(
            store,
            ttl_seconds=settings.cache.ttl_seconds,
            namespace=settings.cache.namespace,
        )
        fetcher = ResilientFetcher.from_settings(http_client, settings.api)

        log.info(
            "catalog_opened",
            version=__version__,
            base_url=settings.api.base_url,
            cache_backend=settings.cache.backend,
        )
        try:
            yield CatalogClient(cache, fetcher)
        finally:
            log.info("catalog_closed")


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hianime-catalog",
        description="Query the HiAnime catalog through the local cache.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    commands = parser.add_subparsers(dest="command", required=True)

    home = commands.add_parser("home", help="Spotlight, trending and top airing titles")

    details = commands.add_parser("details", help="Details for one title")
    details.add_argument("anime_id")

    search = commands.add_parser("search", help="Search titles")
    search.add_argument("query")
    search.add_argument("--page", type=int, default=1)

    for sub in (home, details, search):
        sub.add_argument(
            "--refresh", action="store_true", help="Bypass fresh cache entries"
        )

    commands.add_parser("health", help="Check the upstream API")
    commands.add_parser("clear-cache", help="Remove every cached entry")
    return parser


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if is_dataclass(value) and not isinstance(value, type):
        return {
            "outcome": type(value).__name__,
            **{f.name: _to_jsonable(getattr(value, f.name)) for f in fields(value)},
        }
    return value


async def _run_command(args: argparse.Namespace, settings: Settings) -> tuple[Any, bool]:
    """Run one command. Returns the printable result and whether it succeeded."""
    async with open_catalog(settings) as client:
        if args.command == "health":
            report = await client.health_check()
            return report, report.status == "healthy"
        if args.command == "clear-cache":
            deleted = await client.clear_cache()
            return {"deleted": deleted}, True

        if args.command == "home":
            outcome = await client.get_home_data(force_refresh=args.refresh)
        elif args.command == "details":
            outcome = await client.get_anime_details(args.anime_id, force_refresh=args.refresh)
        else:
            outcome = await client.search_anime(
                args.query, args.page, force_refresh=args.refresh
            )
        return outcome, isinstance(outcome, (Success, StaleFallback))


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = Settings()
    setup_logging(settings)

    result, ok = asyncio.run(_run_command(args, settings))
    if isinstance(result, Failure):
        log.error("command_failed", command=args.command, kind=result.kind, reason=result.reason)

    json.dump(_to_jsonable(result), sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
