"""FRED (Federal Reserve Economic Data) client.

Provides access to economic time series from the Federal Reserve Bank of
St. Louis. Rate limit: 120 requests/minute with an API key, 5 without.

API documentation: https://fred.stlouisfed.org/docs/api/
"""

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import aiohttp

from econfetch.domain.exceptions import RemoteApiError
from econfetch.domain.interfaces.data_source import DataSource
from econfetch.domain.models.common import Observation, Payload, SeriesId, SourceName
from econfetch.infrastructure.sources.json_http import DEFAULT_REQUEST_TIMEOUT_SECONDS, get_json

logger = logging.getLogger(__name__)

FRED_BASE_URL = "https://api.stlouisfed.org/fred"
MISSING_VALUE = "."
SEARCH_FIELDS = ("id", "title", "frequency", "units", "observation_start", "observation_end")


def parse_observations(data: Dict[str, Any]) -> List[Observation]:
    """Turns a FRED observations response into normalized points."""
    try:
        raw = data["observations"]
        return [
            Observation(
                date=obs["date"],
                value=None if obs["value"] == MISSING_VALUE else float(obs["value"]),
            )
            for obs in raw
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise RemoteApiError(f"Malformed observations payload: {e}", provider="fred", retryable=False) from e


def parse_search_results(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Keeps the descriptive fields of each series in a search response."""
    try:
        return [{k: s.get(k) for k in SEARCH_FIELDS} for s in data["seriess"]]
    except (KeyError, TypeError, AttributeError) as e:
        raise RemoteApiError(f"Malformed search payload: {e}", provider="fred", retryable=False) from e


class FredClient(DataSource):
    """Async client for the FRED API.

    An aiohttp session may be injected; otherwise a short-lived session is
    opened per request.
    """

    name = SourceName("fred")

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = FRED_BASE_URL,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key or None
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self._session = session
        logger.info(f"FredClient initialized (api key configured: {self.privileged})")

    @property
    def privileged(self) -> bool:
        return self.api_key is not None

    async def fetch_series(self, series_id: SeriesId, start: date, end: date) -> Payload:
        params = {
            "series_id": series_id,
            "observation_start": start.isoformat(),
            "observation_end": end.isoformat(),
        }
        data = await self._get_json("series/observations", params)
        observations = parse_observations(data)
        logger.debug(f"FRED: fetched {len(observations)} observations for {series_id}")
        return Payload(json.dumps(observations))

    async def search_series(self, query: str, limit: int = 100) -> Payload:
        data = await self._get_json("series/search", {"search_text": query, "limit": str(limit)})
        return Payload(json.dumps(parse_search_results(data)))

    async def _get_json(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        query = dict(params, file_type="json")
        if self.api_key is not None:
            query["api_key"] = self.api_key
        logger.debug(f"FRED: Making API request {url} params={params}")
        return await get_json(url, query, self.name, session=self._session, request_timeout=self.request_timeout)
