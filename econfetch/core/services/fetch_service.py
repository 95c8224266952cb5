"""Application Service for fetching series through the resilience layer.

Composes the persistent cache, the provider's rate limiter and the retry
service for one data source: strict cache lookup first, then a rate limiter
slot, then the remote call under retry with stale fallback, then write-back.
"""

import logging
from datetime import date
from typing import Dict, Optional

from econfetch.domain.exceptions import RateLimitTimeout
from econfetch.domain.interfaces.cache import CacheService
from econfetch.domain.interfaces.data_source import DataSource
from econfetch.domain.models.common import CacheKey, FetchResult, SeriesId
from econfetch.infrastructure.cache.persistent_cache import search_cache_key, series_cache_key
from econfetch.infrastructure.resilience.api_retry import ApiRetryService, Operation
from econfetch.infrastructure.resilience.rate_limiter import DEFAULT_MAX_WAIT_SECONDS, RateLimiter

logger = logging.getLogger(__name__)


class FetchService:
    """Cached, rate-limited, retried access to a single data source."""

    def __init__(
        self,
        source: DataSource,
        cache: CacheService,
        rate_limiter: RateLimiter,
        retry_service: ApiRetryService,
        rate_limit_timeout: Optional[float] = DEFAULT_MAX_WAIT_SECONDS,
        stale_on_rate_limit: bool = False,
        ttl: Optional[int] = None,
    ):
        """Initializes the FetchService.

        Args:
            source: The remote provider client.
            cache: Persistent cache shared with other services.
            rate_limiter: The limiter owned by this provider.
            retry_service: Retry/backoff orchestrator.
            rate_limit_timeout: Max seconds to wait for a limiter slot.
            stale_on_rate_limit: Serve a stale entry instead of raising
                RateLimitTimeout when no slot is granted in time.
            ttl: TTL for written entries (cache default if None).
        """
        self.source = source
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.retry_service = retry_service
        self.rate_limit_timeout = rate_limit_timeout
        self.stale_on_rate_limit = stale_on_rate_limit
        self.ttl = ttl

    async def fetch_series(self, series_id: SeriesId, start: date, end: date) -> FetchResult:
        """Fetches observations for a series, preferring a live cache entry."""
        if start > end:
            raise ValueError(f"start date {start} is after end date {end}")
        key = series_cache_key(self.source.name, series_id, start, end)
        metadata = {
            "source": self.source.name,
            "series_id": series_id,
            "start": start.isoformat(),
            "end": end.isoformat(),
        }
        return await self._fetch(
            key,
            lambda: self.source.fetch_series(series_id, start, end),
            metadata,
            endpoint="fetch_series",
        )

    async def search_series(self, query: str, limit: int = 100) -> FetchResult:
        """Searches the provider catalogue, caching results per query."""
        key = search_cache_key(self.source.name, query, limit)
        metadata = {"source": self.source.name, "query": query, "limit": str(limit)}
        return await self._fetch(
            key,
            lambda: self.source.search_series(query, limit),
            metadata,
            endpoint="search_series",
        )

    async def _fetch(self, key: CacheKey, op: Operation, metadata: Dict[str, str], endpoint: str) -> FetchResult:
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug(f"{self.source.name}: cache hit for {endpoint} ({key[:10]}...)")
            return FetchResult(key=key, payload=cached, served_from_cache=True)

        logger.debug(f"{self.source.name}: cache miss for {endpoint}, fetching from API")
        if not await self.rate_limiter.wait_if_needed(self.rate_limit_timeout):
            if self.stale_on_rate_limit:
                stale = await self.cache.get_stale(key)
                if stale is not None:
                    logger.warning(f"{self.source.name}: rate limit timeout, serving stale cache entry")
                    return FetchResult(key=key, payload=stale, served_from_cache=True, stale=True)
            raise RateLimitTimeout(self.source.name, self.rate_limit_timeout)

        payload, from_cache = await self.retry_service.with_retry_and_cache(op, self.cache, key, endpoint=endpoint)
        if from_cache:
            return FetchResult(key=key, payload=payload, served_from_cache=True, stale=True)

        await self.cache.set(key, payload, ttl=self.ttl, metadata=metadata)
        return FetchResult(key=key, payload=payload, served_from_cache=False)
