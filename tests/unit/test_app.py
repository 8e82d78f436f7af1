"""Unit tests for the command-line entrypoint and wiring."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest
import respx
from structlog.testing import capture_logs

from hianime_catalog import app
from hianime_catalog.config import ApiSettings, CacheSettings, Settings
from hianime_catalog.errors import ErrorKind
from hianime_catalog.models import Failure, NormalizedAnimeSummary, Success

if TYPE_CHECKING:
    from collections.abc import Iterator, MutableMapping
    from pathlib import Path


@pytest.fixture()
def settings(base_url: str) -> Settings:
    return Settings(
        api=ApiSettings(base_url=base_url, retry_base_delay_seconds=0),
        cache=CacheSettings(backend="memory"),
    )


@pytest.fixture()
def cli_env(
    monkeypatch: pytest.MonkeyPatch, base_url: str
) -> Iterator[list[MutableMapping[str, Any]]]:
    monkeypatch.setenv("HIANIME__API__BASE_URL", base_url)
    monkeypatch.setenv("HIANIME__API__RETRY_BASE_DELAY_SECONDS", "0")
    monkeypatch.setenv("HIANIME__CACHE__BACKEND", "memory")
    # Leave the global structlog configuration alone; captured events never reach stdout
    monkeypatch.setattr(app, "setup_logging", lambda settings: None)
    with capture_logs() as logs:
        yield logs


class TestParser:
    def test_search_arguments(self) -> None:
        args = app._build_parser().parse_args(["search", "naruto", "--page", "2", "--refresh"])
        assert args.command == "search"
        assert args.query == "naruto"
        assert args.page == 2
        assert args.refresh is True

    def test_defaults(self) -> None:
        args = app._build_parser().parse_args(["details", "frieren-18542"])
        assert args.anime_id == "frieren-18542"
        assert args.refresh is False

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            app._build_parser().parse_args([])


class TestToJsonable:
    def test_outcome_tagged_with_type(self) -> None:
        result = app._to_jsonable(Success(NormalizedAnimeSummary(id="x"), from_cache=True))
        assert result["outcome"] == "Success"
        assert result["from_cache"] is True
        assert result["data"]["id"] == "x"

    def test_failure_kind_serialises(self) -> None:
        outcome = Failure(NormalizedAnimeSummary(), reason="boom", kind=ErrorKind.TIMEOUT)
        result = json.loads(json.dumps(app._to_jsonable(outcome), default=str))
        assert result["outcome"] == "Failure"
        assert result["kind"] == "TIMEOUT"

    def test_plain_values_pass_through(self) -> None:
        assert app._to_jsonable({"deleted": 2}) == {"deleted": 2}


class TestRunCommand:
    async def test_home_success(
        self, settings: Settings, base_url: str, home_body: dict[str, Any]
    ) -> None:
        args = app._build_parser().parse_args(["home"])
        with respx.mock:
            respx.get(f"{base_url}/home").mock(return_value=httpx.Response(200, json=home_body))
            outcome, ok = await app._run_command(args, settings)

        assert ok is True
        assert isinstance(outcome, Success)
        assert outcome.data.top_airing[0].title == "Dandadan"

    async def test_health_unhealthy(self, settings: Settings, base_url: str) -> None:
        args = app._build_parser().parse_args(["health"])
        with respx.mock:
            respx.get(f"{base_url}/home").mock(return_value=httpx.Response(503))
            report, ok = await app._run_command(args, settings)

        assert ok is False
        assert report.status == "unhealthy"

    async def test_clear_cache(self, settings: Settings) -> None:
        args = app._build_parser().parse_args(["clear-cache"])
        result, ok = await app._run_command(args, settings)
        assert ok is True
        assert result == {"deleted": 0}

    async def test_sqlite_backend_persists_between_runs(
        self, tmp_path: Path, base_url: str, search_body: dict[str, Any]
    ) -> None:
        settings = Settings(
            api=ApiSettings(base_url=base_url),
            cache=CacheSettings(backend="sqlite", db_path=str(tmp_path / "nested" / "cache.db")),
        )
        args = app._build_parser().parse_args(["search", "naruto"])
        with respx.mock:
            route = respx.get(f"{base_url}/search").mock(
                return_value=httpx.Response(200, json=search_body)
            )
            first, _ = await app._run_command(args, settings)
            second, _ = await app._run_command(args, settings)

        assert first.from_cache is False
        assert second.from_cache is True
        assert route.call_count == 1
        assert (tmp_path / "nested" / "cache.db").exists()


class TestMain:
    @pytest.mark.usefixtures("cli_env")
    def test_prints_json_and_exits_zero(
        self, capsys: pytest.CaptureFixture[str], base_url: str, details_body: dict[str, Any]
    ) -> None:
        with respx.mock:
            respx.get(f"{base_url}/info").mock(return_value=httpx.Response(200, json=details_body))
            code = app.main(["details", "frieren-18542"])

        assert code == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed["outcome"] == "Success"
        assert printed["data"]["studios"] == ["Madhouse"]

    def test_failure_exits_one(
        self,
        cli_env: list[MutableMapping[str, Any]],
        capsys: pytest.CaptureFixture[str],
        base_url: str,
    ) -> None:
        with respx.mock:
            respx.get(f"{base_url}/search").mock(side_effect=httpx.ConnectError("refused"))
            code = app.main(["search", "bleach", "--page", "2"])

        assert code == 1
        printed = json.loads(capsys.readouterr().out)
        assert printed["outcome"] == "Failure"
        assert printed["kind"] == "NETWORK"
        assert printed["data"]["page"] == 2
        events = [entry["event"] for entry in cli_env]
        assert events.count("fetch_attempt_failed") == 3
        assert "command_failed" in events
