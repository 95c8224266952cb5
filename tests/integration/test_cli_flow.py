import json
from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner
from unittest.mock import AsyncMock, MagicMock

from econfetch import main
from econfetch.domain.exceptions import RemoteApiError
from econfetch.infrastructure.cli.display import ConsoleDisplay
from econfetch.infrastructure.config.settings import set_config_for_testing
from econfetch.infrastructure.sources.fred_client import FredClient
from econfetch.infrastructure.sources.worldbank_client import WorldBankClient
from econfetch.main import app

# These fixtures are defined in tests/conftest.py:
# runner: CliRunner
# isolated_config: resets loaded configuration between tests

OBSERVATIONS = [{"date": "2021-01-01", "value": 6.4}, {"date": "2021-02-01", "value": None}]


@pytest.fixture
def mock_fred_client(mocker):
    """Patches FredClient in the composition root with a canned client."""
    mock = mocker.MagicMock(spec=FredClient)
    mock.name = "fred"
    mock.privileged = True
    mock.rate_limit = None
    mock.fetch_series = AsyncMock(return_value=json.dumps(OBSERVATIONS))
    mock.search_series = AsyncMock(return_value=json.dumps([{"id": "UNRATE", "title": "Unemployment Rate"}]))
    mocker.patch("econfetch.main.FredClient", return_value=mock)
    return mock


@pytest.fixture
def mock_worldbank_client(mocker):
    """Patches WorldBankClient in the composition root with a canned client."""
    mock = mocker.MagicMock(spec=WorldBankClient)
    mock.name = "worldbank"
    mock.privileged = False
    mock.rate_limit = 60
    mock.fetch_series = AsyncMock(return_value=json.dumps([{"date": "2020-01-01", "value": 2.1e13}]))
    mocker.patch("econfetch.main.WorldBankClient", return_value=mock)
    return mock


@pytest.fixture
def mock_console_display(mocker):
    """Mocks the ConsoleDisplay to capture output easily."""
    mock = mocker.MagicMock(spec=ConsoleDisplay)
    mocker.patch("econfetch.main.ConsoleDisplay", return_value=mock)
    return mock


@pytest.fixture(autouse=True)
def fresh_dependencies(tmp_path: Path, monkeypatch, isolated_config):
    """Points the app at a temporary cache and rebuilds dependencies per test."""
    set_config_for_testing({
        "cache.directory": str(tmp_path / "cache"),
        "retry.base_delay": 0,
        "retry.max_delay": 0,
        "logging.level": "WARNING",
    })
    monkeypatch.setattr(main, "_dependencies", None)
    yield
    if main._dependencies is not None:
        main._dependencies["cache_service"].close()


def test_fetch_command_flow(runner: CliRunner, mock_fred_client: MagicMock, mock_console_display: MagicMock):
    args = ["fetch", "UNRATE", "--start", "2021-01-01", "--end", "2021-02-28"]

    result = runner.invoke(app, args)
    assert result.exit_code == 0, f"CLI command failed: {result.output}"
    mock_fred_client.fetch_series.assert_awaited_once_with("UNRATE", date(2021, 1, 1), date(2021, 2, 28))
    mock_console_display.display_series.assert_called_once_with("UNRATE", OBSERVATIONS, from_cache=False, stale=False)

    # Second run is answered from the persistent cache
    result = runner.invoke(app, args)
    assert result.exit_code == 0
    assert mock_fred_client.fetch_series.await_count == 1
    mock_console_display.display_series.assert_called_with("UNRATE", OBSERVATIONS, from_cache=True, stale=False)
    mock_console_display.display_error.assert_not_called()


def test_fetch_failure_exits_with_error(runner: CliRunner, mock_fred_client: MagicMock, mock_console_display: MagicMock):
    mock_fred_client.fetch_series.side_effect = RemoteApiError("series does not exist", status=400, provider="fred")

    result = runner.invoke(app, ["fetch", "NOPE", "--start", "2021-01-01", "--end", "2021-02-01"])

    assert result.exit_code == 1
    assert mock_fred_client.fetch_series.await_count == 1
    mock_console_display.display_error.assert_called_once()
    mock_console_display.display_series.assert_not_called()


def test_fetch_rejects_bad_date(runner: CliRunner, mock_fred_client: MagicMock, mock_console_display: MagicMock):
    result = runner.invoke(app, ["fetch", "GDP", "--start", "01/02/2021"])
    assert result.exit_code != 0
    mock_fred_client.fetch_series.assert_not_called()


def test_search_command_flow(runner: CliRunner, mock_fred_client: MagicMock, mock_console_display: MagicMock):
    result = runner.invoke(app, ["search", "unemployment", "--limit", "5"])
    assert result.exit_code == 0, f"CLI command failed: {result.output}"
    mock_fred_client.search_series.assert_awaited_once_with("unemployment", 5)
    mock_console_display.display_search_results.assert_called_once_with(
        "unemployment", [{"id": "UNRATE", "title": "Unemployment Rate"}]
    )


def test_cache_stats_and_clear_flow(runner: CliRunner, mock_fred_client: MagicMock, mock_console_display: MagicMock):
    runner.invoke(app, ["fetch", "UNRATE", "--start", "2021-01-01", "--end", "2021-02-28"])

    result = runner.invoke(app, ["cache-stats"])
    assert result.exit_code == 0
    stats = mock_console_display.display_cache_stats.call_args.args[0]
    assert stats["total"] == 1
    assert stats["by_source"] == {"fred": 1}

    result = runner.invoke(app, ["clear-cache", "--source", "fred"])
    assert result.exit_code == 0
    mock_console_display.display_info.assert_called_with("Removed 1 cache entries for 'fred'.")


def test_clear_cache_rejects_both_filters(runner: CliRunner, mock_fred_client: MagicMock, mock_console_display: MagicMock):
    result = runner.invoke(app, ["clear-cache", "--expired", "--source", "fred"])
    assert result.exit_code == 1
    mock_console_display.display_error.assert_called_once()


def test_fetch_routes_to_selected_source(
    runner: CliRunner, mock_fred_client: MagicMock, mock_worldbank_client: MagicMock, mock_console_display: MagicMock
):
    args = ["fetch", "US:NY.GDP.MKTP.CD", "--start", "2020-01-01", "--end", "2020-12-31", "--source", "worldbank"]

    result = runner.invoke(app, args)

    assert result.exit_code == 0, f"CLI command failed: {result.output}"
    mock_worldbank_client.fetch_series.assert_awaited_once_with("US:NY.GDP.MKTP.CD", date(2020, 1, 1), date(2020, 12, 31))
    mock_fred_client.fetch_series.assert_not_called()
    limiter = main.get_dependencies()["command_handler"].fetch_services["worldbank"].rate_limiter
    assert limiter.max_requests == 60


def test_unknown_source_exits_with_error(runner: CliRunner, mock_fred_client: MagicMock, mock_console_display: MagicMock):
    result = runner.invoke(app, ["search", "gdp", "--source", "imf"])
    assert result.exit_code == 1
    mock_console_display.display_error.assert_called_once()
