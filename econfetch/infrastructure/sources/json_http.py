"""Shared GET-and-decode helper for the JSON data source clients.

Maps every transport failure to RemoteApiError so the retry layer can
classify it by ``status`` and ``retryable``.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from econfetch.domain.exceptions import RemoteApiError

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
ERROR_BODY_PREVIEW_CHARS = 200


async def get_json(
    url: str,
    params: Dict[str, str],
    provider: str,
    session: Optional[aiohttp.ClientSession] = None,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
) -> Any:
    """Performs a GET and decodes the JSON body.

    Args:
        url: Absolute endpoint URL.
        params: Query string parameters.
        provider: Provider name used in errors and logs.
        session: Reused if given; otherwise a short-lived session is opened.
        request_timeout: Total timeout for a short-lived session.

    Raises:
        RemoteApiError: On non-200 status (``status`` set), connection
            failure or timeout (``status`` None, retryable), or an
            undecodable body (not retryable).
    """
    try:
        if session is not None:
            return await _request(session, url, params, provider)
        timeout = aiohttp.ClientTimeout(total=request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as own_session:
            return await _request(own_session, url, params, provider)
    except aiohttp.ClientError as e:
        logger.error(f"{provider}: HTTP client error: {e}")
        raise RemoteApiError(f"Connection failed: {e}", provider=provider) from e
    except asyncio.TimeoutError as e:
        logger.error(f"{provider}: request timed out after {request_timeout}s")
        raise RemoteApiError(f"Request timed out after {request_timeout}s", provider=provider) from e


async def _request(session: aiohttp.ClientSession, url: str, params: Dict[str, str], provider: str) -> Any:
    async with session.get(url, params=params) as response:
        if response.status != 200:
            error_text = await response.text()
            raise RemoteApiError(
                f"Request failed: {error_text[:ERROR_BODY_PREVIEW_CHARS]}", status=response.status, provider=provider
            )
        body = await response.text()
    try:
        return json.loads(body)
    except ValueError as e:
        raise RemoteApiError(f"Undecodable response body: {e}", provider=provider, retryable=False) from e
