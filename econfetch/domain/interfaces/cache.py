"""Interface for the persistent series cache.

Defines the contract for storing, retrieving, and evicting cached payloads
with per-entry TTL. The strict read (`get`) and the relaxed stale read
(`get_stale`) are separate methods.
"""

import abc
from typing import Dict, Optional

from ..models.common import CacheEntry, CacheKey, CacheStats, Payload


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[Payload]:
        """Retrieves a live item from the cache.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached value if found and its expiry lies strictly in the
            future, otherwise None.
        """
        pass

    @abc.abstractmethod
    async def get_stale(self, key: CacheKey) -> Optional[Payload]:
        """Retrieves an item ignoring its expiry.

        Only the exhausted-retry fallback path should use this.

        Args:
            key: The cache key to retrieve.

        Returns:
            The most recently stored value for the key, expired or not.
        """
        pass

    @abc.abstractmethod
    async def set(
        self,
        key: CacheKey,
        value: Payload,
        ttl: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        """Inserts or fully replaces the entry for a key.

        Args:
            key: The cache key to store the item under.
            value: The serialized payload.
            ttl: Time-to-live in seconds (uses the cache default if None).
            metadata: String tags stored with the entry. ``source`` and
                ``series_id`` are also indexed for statistics and eviction.
        """
        pass

    @abc.abstractmethod
    async def get_entry(self, key: CacheKey) -> Optional[CacheEntry]:
        """Returns the full stored entry regardless of expiry, or None."""
        pass

    @abc.abstractmethod
    async def delete(self, key: CacheKey) -> None:
        """Deletes a single entry. A missing key is not an error."""
        pass

    @abc.abstractmethod
    async def clear_expired(self) -> int:
        """Removes every expired entry and returns how many were removed."""
        pass

    @abc.abstractmethod
    async def clear_all(self) -> int:
        """Removes every entry and returns how many were removed."""
        pass

    @abc.abstractmethod
    async def clear_by_source(self, source: str) -> int:
        """Removes every entry tagged with ``source`` and returns the count."""
        pass

    @abc.abstractmethod
    async def stats(self) -> CacheStats:
        """Returns a point-in-time statistics snapshot."""
        pass
