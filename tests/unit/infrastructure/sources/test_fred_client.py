import asyncio
import json
from datetime import date

import aiohttp
import pytest

from econfetch.domain.exceptions import RemoteApiError
from econfetch.domain.models.common import SeriesId
from econfetch.infrastructure.sources.fred_client import (
    FredClient,
    parse_observations,
    parse_search_results,
)


OBSERVATIONS_BODY = json.dumps({
    "observations": [
        {"date": "2020-01-01", "value": "21481.367"},
        {"date": "2020-04-01", "value": "."},
    ]
})


# --- Parsing ---

def test_parse_observations_maps_missing_values_to_none():
    data = json.loads(OBSERVATIONS_BODY)
    assert parse_observations(data) == [
        {"date": "2020-01-01", "value": 21481.367},
        {"date": "2020-04-01", "value": None},
    ]


def test_parse_observations_rejects_malformed_payload():
    with pytest.raises(RemoteApiError) as exc_info:
        parse_observations({"observations": [{"date": "2020-01-01", "value": "n/a"}]})
    assert exc_info.value.retryable is False


def test_parse_search_results_keeps_descriptive_fields():
    data = {"seriess": [{"id": "GDP", "title": "Gross Domestic Product", "popularity": 93, "units": "Bil. of $"}]}
    [series] = parse_search_results(data)
    assert series["id"] == "GDP"
    assert series["units"] == "Bil. of $"
    assert series["frequency"] is None
    assert "popularity" not in series


def test_parse_search_results_requires_seriess():
    with pytest.raises(RemoteApiError):
        parse_search_results({})


# --- Client ---

def test_privileged_only_with_api_key():
    assert FredClient(api_key="secret").privileged is True
    assert FredClient().privileged is False
    assert FredClient(api_key="").privileged is False


@pytest.mark.asyncio
async def test_fetch_series_builds_request_and_returns_json_payload(make_session):
    session = make_session(body=OBSERVATIONS_BODY)
    client = FredClient(api_key="secret", session=session)

    payload = await client.fetch_series(SeriesId("GDP"), date(2020, 1, 1), date(2020, 12, 31))

    assert json.loads(payload)[1] == {"date": "2020-04-01", "value": None}
    url = session.get.call_args.args[0]
    params = session.get.call_args.kwargs["params"]
    assert url.endswith("/series/observations")
    assert params == {
        "series_id": "GDP",
        "observation_start": "2020-01-01",
        "observation_end": "2020-12-31",
        "file_type": "json",
        "api_key": "secret",
    }


@pytest.mark.asyncio
async def test_anonymous_requests_omit_api_key(make_session):
    session = make_session(body=json.dumps({"seriess": []}))
    client = FredClient(session=session)

    payload = await client.search_series("unemployment", limit=5)

    assert json.loads(payload) == []
    params = session.get.call_args.kwargs["params"]
    assert "api_key" not in params
    assert params["limit"] == "5"


@pytest.mark.asyncio
@pytest.mark.parametrize("status,retryable", [(429, True), (503, True), (400, False), (404, False)])
async def test_http_errors_are_classified(make_session, status, retryable):
    client = FredClient(session=make_session(status=status, body="nope"))
    with pytest.raises(RemoteApiError) as exc_info:
        await client.fetch_series(SeriesId("GDP"), date(2020, 1, 1), date(2020, 2, 1))
    assert exc_info.value.status == status
    assert exc_info.value.retryable is retryable


@pytest.mark.asyncio
async def test_connection_errors_are_retryable(make_session):
    client = FredClient(session=make_session(error=aiohttp.ClientConnectionError("refused")))
    with pytest.raises(RemoteApiError) as exc_info:
        await client.search_series("gdp")
    assert exc_info.value.status is None
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_timeouts_are_retryable(make_session):
    client = FredClient(session=make_session(error=asyncio.TimeoutError()))
    with pytest.raises(RemoteApiError) as exc_info:
        await client.search_series("gdp")
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_invalid_json_is_not_retryable(make_session):
    client = FredClient(session=make_session(body="<html>"))
    with pytest.raises(RemoteApiError) as exc_info:
        await client.search_series("gdp")
    assert exc_info.value.retryable is False
