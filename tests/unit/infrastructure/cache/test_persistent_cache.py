import sqlite3
from datetime import date
from pathlib import Path

import pytest

from econfetch.domain.exceptions import StorageError
from econfetch.domain.models.common import CacheKey, Payload
from econfetch.infrastructure.cache.persistent_cache import (
    PersistentCache,
    fingerprint,
    search_cache_key,
    series_cache_key,
)

KEY = CacheKey("k" * 64)


# --- Key generation ---

def test_fingerprint_is_deterministic():
    assert fingerprint("fred", "GDP", date(2020, 1, 1)) == fingerprint("fred", "GDP", date(2020, 1, 1))
    assert len(fingerprint("fred")) == 64


def test_fingerprint_depends_on_part_order():
    assert fingerprint("a", "b") != fingerprint("b", "a")


def test_fingerprint_does_not_collide_on_separators():
    assert fingerprint("a|b", "c") != fingerprint("a", "b|c")


def test_fingerprint_requires_parts():
    with pytest.raises(ValueError):
        fingerprint()


def test_series_and_search_keys_differ():
    start, end = date(2020, 1, 1), date(2021, 1, 1)
    assert series_cache_key("fred", "GDP", start, end) != series_cache_key("fred", "GDP", start, date(2021, 1, 2))
    assert series_cache_key("fred", "search", start, end) != search_cache_key("fred", "GDP", 10)
    assert search_cache_key("fred", "GDP", 5) != search_cache_key("fred", "GDP", 50)


# --- Get / set / TTL ---

@pytest.mark.asyncio
async def test_get_missing_key_returns_none(cache: PersistentCache):
    assert await cache.get(KEY) is None
    assert await cache.get_stale(KEY) is None


@pytest.mark.asyncio
async def test_entry_expires_after_ttl(cache: PersistentCache, clock):
    await cache.set(KEY, Payload("[1]"), ttl=10)
    assert await cache.get(KEY) == "[1]"

    clock.advance(9)
    assert await cache.get(KEY) == "[1]"

    clock.advance(1)  # expires_at == now counts as expired
    assert await cache.get(KEY) is None
    assert await cache.get_stale(KEY) == "[1]"


@pytest.mark.asyncio
async def test_default_ttl_is_used(cache: PersistentCache, clock):
    await cache.set(KEY, Payload("x"))
    entry = await cache.get_entry(KEY)
    assert entry.expires_at - entry.created_at == 3600


@pytest.mark.asyncio
async def test_fractional_clock_does_not_shorten_ttl(cache: PersistentCache, clock):
    clock.now = 1_700_000_000.999
    await cache.set(KEY, Payload("x"), ttl=1)

    clock.advance(0.002)
    assert await cache.get(KEY) == "x"

    clock.advance(0.9)
    assert await cache.get(KEY) == "x"

    clock.now = 1_700_000_002.0
    assert await cache.get(KEY) is None


@pytest.mark.asyncio
async def test_set_replaces_whole_entry(cache: PersistentCache, clock):
    await cache.set(KEY, Payload("old"), ttl=10, metadata={"source": "fred", "series_id": "GDP"})
    clock.advance(5)
    await cache.set(KEY, Payload("new"), ttl=100)

    entry = await cache.get_entry(KEY)
    assert entry.value == "new"
    assert entry.created_at == int(clock.now)
    assert entry.expires_at == int(clock.now) + 100
    assert entry.source == ""
    assert entry.metadata == {}


@pytest.mark.asyncio
async def test_set_rejects_non_positive_ttl(cache: PersistentCache):
    with pytest.raises(ValueError):
        await cache.set(KEY, Payload("x"), ttl=0)


@pytest.mark.asyncio
async def test_metadata_is_stringified(cache: PersistentCache):
    await cache.set(KEY, Payload("x"), metadata={"source": "fred", "limit": 10})
    entry = await cache.get_entry(KEY)
    assert entry.metadata == {"source": "fred", "limit": "10"}
    assert entry.source == "fred"


@pytest.mark.asyncio
async def test_entries_survive_reopen(cache_dir: Path, clock):
    with PersistentCache(cache_dir, clock=clock) as first:
        await first.set(KEY, Payload("persisted"))
    with PersistentCache(cache_dir, clock=clock) as second:
        assert await second.get(KEY) == "persisted"


@pytest.mark.asyncio
async def test_delete(cache: PersistentCache):
    await cache.set(KEY, Payload("x"))
    await cache.delete(KEY)
    assert await cache.get_stale(KEY) is None
    await cache.delete(KEY)  # missing key is a no-op


# --- Maintenance ---

@pytest.mark.asyncio
async def test_clear_expired_keeps_live_entries(cache: PersistentCache, clock):
    await cache.set(CacheKey("short"), Payload("a"), ttl=5)
    await cache.set(CacheKey("long"), Payload("b"), ttl=500)
    clock.advance(10)

    assert await cache.clear_expired() == 1
    assert await cache.get_stale(CacheKey("short")) is None
    assert await cache.get(CacheKey("long")) == "b"


@pytest.mark.asyncio
async def test_clear_by_source(cache: PersistentCache):
    await cache.set(CacheKey("a"), Payload("1"), metadata={"source": "fred"})
    await cache.set(CacheKey("b"), Payload("2"), metadata={"source": "fred"})
    await cache.set(CacheKey("c"), Payload("3"), metadata={"source": "other"})

    assert await cache.clear_by_source("fred") == 2
    assert await cache.clear_by_source("") == 0
    assert await cache.get(CacheKey("c")) == "3"

    stats = await cache.stats()
    assert stats["by_source"] == {"other": 1}
    assert stats["total"] == 1


@pytest.mark.asyncio
async def test_clear_all(cache: PersistentCache):
    await cache.set(CacheKey("a"), Payload("1"))
    await cache.set(CacheKey("b"), Payload("2"))
    assert await cache.clear_all() == 2
    assert (await cache.stats())["total"] == 0


@pytest.mark.asyncio
async def test_stats(cache: PersistentCache, clock):
    await cache.set(CacheKey("a"), Payload("1"), ttl=5, metadata={"source": "fred"})
    await cache.set(CacheKey("b"), Payload("2"), ttl=500, metadata={"source": "fred"})
    await cache.set(CacheKey("c"), Payload("3"), ttl=500)
    clock.advance(10)

    stats = await cache.stats()
    assert stats["total"] == 3
    assert stats["active"] == 2
    assert stats["expired"] == 1
    assert stats["by_source"] == {"fred": 2}
    assert stats["storage_size"] > 0


# --- Errors ---

def test_rejects_non_positive_default_ttl(tmp_path: Path):
    with pytest.raises(ValueError):
        PersistentCache(tmp_path, default_ttl=0)


def test_open_failure_raises_storage_error(tmp_path: Path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    with pytest.raises(StorageError) as exc_info:
        PersistentCache(blocker / "cache")
    assert exc_info.value.operation == "open"


@pytest.mark.asyncio
async def test_backend_failure_raises_storage_error(cache: PersistentCache, mocker):
    mocker.patch.object(cache._disk, "get", side_effect=sqlite3.OperationalError("disk I/O error"))
    with pytest.raises(StorageError) as exc_info:
        await cache.get(KEY)
    assert exc_info.value.operation == "get"
    assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
