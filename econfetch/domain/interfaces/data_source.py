"""Interface for remote economic data providers.

A data source builds requests, calls the provider, and returns the response
as opaque JSON text. Transport failures must surface as RemoteApiError so the
retry layer can classify them.
"""

import abc
from datetime import date
from typing import Optional

from ..models.common import Payload, SeriesId, SourceName


class DataSource(abc.ABC):
    """Abstract Base Class for a remote time-series provider."""

    name: SourceName
    # Fixed requests per minute for providers whose budget does not depend on credentials
    rate_limit: Optional[int] = None

    @property
    @abc.abstractmethod
    def privileged(self) -> bool:
        """True when credentials granting the higher request budget are configured."""
        pass

    @abc.abstractmethod
    async def fetch_series(self, series_id: SeriesId, start: date, end: date) -> Payload:
        """Fetches observations for a series between two dates (inclusive).

        Returns:
            JSON text of ``[{"date": "YYYY-MM-DD", "value": float | null}, ...]``.
        """
        pass

    @abc.abstractmethod
    async def search_series(self, query: str, limit: int = 100) -> Payload:
        """Searches the provider catalogue.

        Returns:
            JSON text of a list of series descriptors.
        """
        pass
