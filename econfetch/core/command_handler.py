"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), delegates the work to
the fetch services and the cache, and reports results through the
UserInterface. Each handler returns True on success so the CLI can set its
exit status.
"""

import logging
from datetime import date
from typing import Dict, Optional

from econfetch.core.services.fetch_service import FetchService
from econfetch.domain.exceptions import EconFetchError, RateLimitTimeout
from econfetch.domain.interfaces.cache import CacheService
from econfetch.domain.interfaces.user_interface import UserInterface
from econfetch.domain.models.common import SeriesId

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        fetch_services: Dict[str, FetchService],
        cache_service: CacheService,
        ui: UserInterface,
    ):
        """Initializes the CommandHandler.

        Args:
            fetch_services: One FetchService per provider name.
            cache_service: The shared cache (for stats and clear-cache).
            ui: Where results and errors are displayed.
        """
        self.fetch_services = fetch_services
        self.cache_service = cache_service
        self.ui = ui

    def _service_for(self, source: str) -> Optional[FetchService]:
        service = self.fetch_services.get(source)
        if service is None:
            available = ", ".join(sorted(self.fetch_services)) or "none"
            self.ui.display_error(f"Unknown data source '{source}'. Available: {available}.")
        return service

    async def handle_fetch(self, source: str, series_id: str, start: date, end: date) -> bool:
        """Handles the 'fetch' command."""
        logger.info(f"Handling 'fetch' command: {source}/{series_id} {start}..{end}")
        service = self._service_for(source)
        if service is None:
            return False
        try:
            result = await service.fetch_series(SeriesId(series_id), start, end)
        except RateLimitTimeout as e:
            self.ui.display_error(f"Rate limit reached, try again later: {e}")
            return False
        except (EconFetchError, ValueError) as e:
            logger.error(f"Fetch command failed: {e}")
            self.ui.display_error(f"Fetch failed: {e}")
            return False

        if result.stale:
            self.ui.display_warning(
                f"{source} is unavailable; showing previously cached data for {series_id}, which may be out of date."
            )
        self.ui.display_series(series_id, result.data(), from_cache=result.served_from_cache, stale=result.stale)
        return True

    async def handle_search(self, source: str, query: str, limit: int) -> bool:
        """Handles the 'search' command."""
        logger.info(f"Handling 'search' command: {source} '{query}'")
        service = self._service_for(source)
        if service is None:
            return False
        try:
            result = await service.search_series(query, limit)
        except EconFetchError as e:
            logger.error(f"Search command failed: {e}")
            self.ui.display_error(f"Search failed: {e}")
            return False

        if result.stale:
            self.ui.display_warning(f"{source} is unavailable; showing cached search results.")
        self.ui.display_search_results(query, result.data())
        return True

    async def handle_cache_stats(self) -> bool:
        """Handles the 'cache-stats' command."""
        try:
            stats = await self.cache_service.stats()
        except EconFetchError as e:
            self.ui.display_error(f"Failed to read cache statistics: {e}")
            return False
        self.ui.display_cache_stats(stats)
        return True

    async def handle_clear_cache(self, expired_only: bool = False, source: Optional[str] = None) -> bool:
        """Handles the 'clear-cache' command."""
        logger.info(f"Handling 'clear-cache' command (expired_only={expired_only}, source={source})")
        if expired_only and source:
            self.ui.display_error("Use either --expired or --source, not both.")
            return False
        try:
            if expired_only:
                removed = await self.cache_service.clear_expired()
                self.ui.display_info(f"Removed {removed} expired cache entries.")
            elif source:
                removed = await self.cache_service.clear_by_source(source)
                self.ui.display_info(f"Removed {removed} cache entries for '{source}'.")
            else:
                removed = await self.cache_service.clear_all()
                self.ui.display_info(f"Cache cleared. Removed {removed} entries.")
        except EconFetchError as e:
            logger.error(f"Failed to clear cache: {e}")
            self.ui.display_error(f"Failed to clear cache: {e}")
            return False
        return True
