"""Concrete implementation of the persistent series cache.

Entries live in an embedded SQLite store managed by ``diskcache`` and survive
restarts. Expiry is tracked per entry and enforced lazily at read time:
diskcache's own expiry is never used, otherwise the stale fallback read would
have nothing left to return.
"""

import hashlib
import json
import logging
import math
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Union

import diskcache as dc

from econfetch.domain.exceptions import StorageError
from econfetch.domain.interfaces.cache import CacheService
from econfetch.domain.models.common import (
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    CacheKey,
    CacheStats,
    Payload,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".econfetch" / "cache"
DEFAULT_LOCK_TIMEOUT_SECONDS = 5

STORAGE_EXCEPTIONS = (sqlite3.Error, OSError, dc.Timeout)

# --- Key Generation ---

def _normalize_part(part: Any) -> str:
    if isinstance(part, date):
        return part.isoformat()
    return str(part)


def fingerprint(*parts: Any) -> CacheKey:
    """Deterministic sha256 key for an ordered tuple of request parts.

    Parts are stringified (dates as ISO strings) and JSON-encoded as a list
    before hashing, so ``("a|b", "c")`` and ``("a", "b|c")`` differ.
    """
    if not parts:
        raise ValueError("fingerprint requires at least one part")
    encoded = json.dumps([_normalize_part(p) for p in parts], ensure_ascii=False, separators=(",", ":"))
    return CacheKey(hashlib.sha256(encoded.encode("utf-8")).hexdigest())


def series_cache_key(source: str, series_id: str, start: date, end: date) -> CacheKey:
    """Key for a series observation request."""
    return fingerprint(source, series_id, start, end)


def search_cache_key(source: str, query: str, limit: int) -> CacheKey:
    """Key for a catalogue search request; the result size is part of the request."""
    return fingerprint(source, "search", query, limit)


class PersistentCache(CacheService):
    """TTL cache persisted on disk.

    Each diskcache record holds the non-key columns of a cache row
    (value, created_at, expires_at, source, series_id, metadata). The
    ``source`` column doubles as the diskcache tag so that eviction by source
    uses the tag index.
    """

    def __init__(
        self,
        directory: Union[str, Path] = DEFAULT_CACHE_DIR,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ):
        """Opens (creating if needed) the cache store.

        Args:
            directory: Directory holding the SQLite database.
            default_ttl: TTL in seconds used when ``set`` is given none.
            clock: Returns the current epoch time in seconds.
            lock_timeout: Seconds to wait on the SQLite lock before failing.

        Raises:
            StorageError: If the directory or database cannot be opened.
        """
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.directory = Path(directory)
        self.default_ttl = default_ttl
        self._clock = clock
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._disk = dc.Cache(
                str(self.directory),
                timeout=lock_timeout,
                tag_index=True,
                eviction_policy="none",
            )
        except STORAGE_EXCEPTIONS as e:
            logger.error(f"Failed to open cache at {self.directory}: {e}", exc_info=True)
            raise StorageError("open", e) from e
        logger.info(f"PersistentCache initialized at {self.directory} (default TTL {default_ttl}s)")

    @contextmanager
    def _storage_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except STORAGE_EXCEPTIONS as e:
            logger.error(f"Cache {operation} failed: {e}")
            raise StorageError(operation, e) from e

    def _now(self) -> float:
        return self._clock()

    def _load(self, key: str) -> Optional[CacheEntry]:
        record = self._disk.get(key, default=None)
        if record is None:
            return None
        try:
            return CacheEntry(**record)
        except TypeError:
            logger.warning(f"Ignoring unreadable cache record for key: {key[:10]}...")
            return None

    # --- CacheService Interface Implementation ---

    async def get(self, key: CacheKey) -> Optional[Payload]:
        with self._storage_errors("get"):
            entry = self._load(key)
        if entry is None:
            logger.debug(f"Cache MISS for key: {key[:10]}...")
            return None
        if entry.expires_at > self._now():
            logger.debug(f"Cache HIT for key: {key[:10]}...")
            return entry.value
        logger.debug(f"Cache EXPIRED for key: {key[:10]}...")
        return None

    async def get_stale(self, key: CacheKey) -> Optional[Payload]:
        with self._storage_errors("get_stale"):
            entry = self._load(key)
        if entry is None:
            return None
        if entry.is_expired(self._now()):
            logger.debug(f"Returning expired entry for key: {key[:10]}... (expired at {entry.expires_at})")
        return entry.value

    async def get_entry(self, key: CacheKey) -> Optional[CacheEntry]:
        with self._storage_errors("get_entry"):
            return self._load(key)

    async def set(
        self,
        key: CacheKey,
        value: Payload,
        ttl: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        ttl_seconds = self.default_ttl if ttl is None else ttl
        if ttl_seconds <= 0:
            raise ValueError("ttl must be positive")
        metadata = {str(k): str(v) for k, v in (metadata or {}).items()}
        now = self._now()
        entry = CacheEntry(
            key=key,
            value=value,
            created_at=int(now),
            expires_at=math.ceil(now + ttl_seconds),  # live for at least ttl seconds
            source=metadata.get("source", ""),
            series_id=metadata.get("series_id", ""),
            metadata=metadata,
        )
        with self._storage_errors("set"):
            self._disk.set(key, asdict(entry), tag=entry.source or None)
        logger.debug(f"Cache PUT key: {key[:10]}... TTL: {ttl_seconds}s source: {entry.source or '-'}")

    async def delete(self, key: CacheKey) -> None:
        with self._storage_errors("delete"):
            if self._disk.delete(key):
                logger.debug(f"Deleted cache entry: {key[:10]}...")

    async def clear_expired(self) -> int:
        now = self._now()
        removed = 0
        with self._storage_errors("clear_expired"):
            with self._disk.transact():
                for key in list(self._disk.iterkeys()):
                    entry = self._load(key)
                    if entry is not None and entry.is_expired(now):
                        self._disk.delete(key)
                        removed += 1
        logger.info(f"Cleared {removed} expired cache entries.")
        return removed

    async def clear_all(self) -> int:
        with self._storage_errors("clear_all"):
            removed = self._disk.clear()
        logger.info(f"Cleared cache. Removed {removed} entries.")
        return removed

    async def clear_by_source(self, source: str) -> int:
        if not source:
            return 0
        with self._storage_errors("clear_by_source"):
            removed = self._disk.evict(source)
        logger.info(f"Cleared {removed} cache entries for source '{source}'.")
        return removed

    async def stats(self) -> CacheStats:
        now = self._now()
        total = active = 0
        by_source: Dict[str, int] = {}
        with self._storage_errors("stats"):
            with self._disk.transact():
                for key in list(self._disk.iterkeys()):
                    entry = self._load(key)
                    if entry is None:
                        continue
                    total += 1
                    if not entry.is_expired(now):
                        active += 1
                    if entry.source:
                        by_source[entry.source] = by_source.get(entry.source, 0) + 1
            size = self._disk.volume()
        return CacheStats(
            total=total,
            active=active,
            expired=total - active,
            by_source=by_source,
            storage_size=size,
            storage_size_mb=round(size / 1024 / 1024, 2),
        )

    # --- Lifecycle ---

    def close(self) -> None:
        self._disk.close()

    def __enter__(self) -> "PersistentCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
