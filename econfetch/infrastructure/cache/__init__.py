"""Persistent Cache Implementation.

Durable key/value store with per-entry TTL, keyed by request fingerprints,
backed by an embedded SQLite store (diskcache).
Bounded Context: Cache Management
"""

from econfetch.infrastructure.cache.persistent_cache import (
    PersistentCache,
    fingerprint,
    search_cache_key,
    series_cache_key,
)

__all__ = ["PersistentCache", "fingerprint", "search_cache_key", "series_cache_key"]
