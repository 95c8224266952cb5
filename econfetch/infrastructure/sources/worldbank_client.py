"""World Bank Indicators client.

Development indicators for countries worldwide. No API key is required and
the budget is a flat 60 requests/minute.

API documentation: https://datahelpdesk.worldbank.org/knowledgebase/articles/889392
"""

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from econfetch.domain.exceptions import RemoteApiError
from econfetch.domain.interfaces.data_source import DataSource
from econfetch.domain.models.common import Observation, Payload, SeriesId, SourceName
from econfetch.infrastructure.sources.json_http import DEFAULT_REQUEST_TIMEOUT_SECONDS, get_json

logger = logging.getLogger(__name__)

WORLDBANK_BASE_URL = "https://api.worldbank.org/v2"
WORLDBANK_MAX_REQUESTS = 60
DEFAULT_COUNTRY = "WLD"
COUNTRY_SEPARATOR = ":"
PAGE_SIZE = 1000


def split_series_id(series_id: str, default_country: str = DEFAULT_COUNTRY) -> Tuple[str, str]:
    """'US:NY.GDP.MKTP.CD' -> ('US', 'NY.GDP.MKTP.CD'); no prefix means the default country."""
    country, sep, indicator = series_id.partition(COUNTRY_SEPARATOR)
    if not sep:
        return default_country, series_id
    if not country or not indicator:
        raise ValueError(f"Invalid World Bank series id '{series_id}', expected COUNTRY:INDICATOR")
    return country, indicator


def _rows(data: Any) -> List[Dict[str, Any]]:
    """World Bank responses are ``[paging, rows]``; an error is ``[{"message": [...]}]``."""
    if not isinstance(data, list) or not data:
        raise RemoteApiError("Malformed response", provider="worldbank", retryable=False)
    head = data[0]
    if isinstance(head, dict) and "message" in head:
        messages = "; ".join(str(m.get("value", m)) for m in head["message"] if isinstance(m, dict))
        raise RemoteApiError(f"Request rejected: {messages or head['message']}", provider="worldbank", retryable=False)
    if len(data) < 2 or data[1] is None:
        return []
    return data[1]


def parse_observations(data: Any, start: date, end: date) -> List[Observation]:
    """Annual points dated January 1st, oldest first, clipped to [start, end]."""
    try:
        points = [
            Observation(
                date=date(int(row["date"]), 1, 1).isoformat(),
                value=None if row.get("value") is None else float(row["value"]),
            )
            for row in _rows(data)
            if row.get("date")
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise RemoteApiError(f"Malformed observations payload: {e}", provider="worldbank", retryable=False) from e
    lo, hi = start.isoformat(), end.isoformat()
    return sorted((p for p in points if lo <= p["date"] <= hi), key=lambda p: p["date"])


def parse_search_results(data: Any, query: str, limit: int) -> List[Dict[str, Any]]:
    """Filters the indicator catalogue by a case-insensitive substring match."""
    needle = query.lower()
    results = []
    for indicator in _rows(data):
        haystack = " ".join(
            str(indicator.get(k) or "") for k in ("id", "name", "sourceNote")
        ).lower()
        if needle not in haystack:
            continue
        results.append({
            "id": indicator.get("id"),
            "title": indicator.get("name"),
            "frequency": "Annual",
            "units": indicator.get("unit") or None,
            "source": (indicator.get("source") or {}).get("value"),
        })
        if len(results) >= limit:
            break
    return results


class WorldBankClient(DataSource):
    """Async client for the World Bank Indicators API.

    Series ids are ``COUNTRY:INDICATOR`` (e.g. ``US:NY.GDP.MKTP.CD``); a bare
    indicator code is read for ``default_country``.
    """

    name = SourceName("worldbank")
    rate_limit = WORLDBANK_MAX_REQUESTS

    def __init__(
        self,
        default_country: str = DEFAULT_COUNTRY,
        base_url: str = WORLDBANK_BASE_URL,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.default_country = default_country
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self._session = session
        logger.info(f"WorldBankClient initialized (default country: {default_country})")

    @property
    def privileged(self) -> bool:
        return False

    async def fetch_series(self, series_id: SeriesId, start: date, end: date) -> Payload:
        try:
            country, indicator = split_series_id(series_id, self.default_country)
        except ValueError as e:
            raise RemoteApiError(str(e), provider=self.name, retryable=False) from e
        params = {"date": f"{start.year}:{end.year}", "per_page": str(PAGE_SIZE)}
        data = await self._get_json(f"country/{country}/indicator/{indicator}", params)
        observations = parse_observations(data, start, end)
        logger.debug(f"WorldBank: fetched {len(observations)} observations for {country}/{indicator}")
        return Payload(json.dumps(observations))

    async def search_series(self, query: str, limit: int = 100) -> Payload:
        # No search endpoint: the catalogue is filtered locally
        data = await self._get_json("indicator", {"per_page": str(PAGE_SIZE)})
        return Payload(json.dumps(parse_search_results(data, query, limit)))

    async def _get_json(self, path: str, params: Dict[str, str]) -> Any:
        url = f"{self.base_url}/{path}"
        logger.debug(f"WorldBank: Making API request {url} params={params}")
        return await get_json(
            url, dict(params, format="json"), self.name, session=self._session, request_timeout=self.request_timeout
        )
