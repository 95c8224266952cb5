"""Defines common Value Objects used across the resilience layer.

These objects represent cache keys, cache entries, statistics snapshots,
retry policies and fetch results, ensuring consistency and type safety.
"""

import json
import random
from dataclasses import dataclass, field
from typing import Any, Dict, NewType, Optional, TypedDict

# === Core Value Objects ===

CacheKey = NewType("CacheKey", str)        # sha256 hex fingerprint of a request
SourceName = NewType("SourceName", str)    # Provider tag, e.g. 'fred'
SeriesId = NewType("SeriesId", str)        # Provider series identifier, e.g. 'GDPC1'
Payload = NewType("Payload", str)          # Opaque serialized value (JSON text)

DEFAULT_TTL_SECONDS = 24 * 60 * 60

# === Caching Context ===

@dataclass(frozen=True)
class CacheEntry:
    """One stored cache record. Replaced wholesale on every set."""
    key: CacheKey
    value: Payload
    created_at: int  # epoch seconds
    expires_at: int  # epoch seconds, always > created_at
    source: str = ""
    series_id: str = ""
    metadata: Dict[str, str] = field(default_factory=dict)

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class CacheStats(TypedDict):
    """Point-in-time snapshot of the cache contents."""
    total: int
    active: int
    expired: int
    by_source: Dict[str, int]
    storage_size: int  # bytes
    storage_size_mb: float

# === Retry Context ===

@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry/backoff configuration.

    ``max_attempts`` counts the first call. The delay before attempt n+1 is
    ``min(max_delay, base_delay * backoff_multiplier ** (n - 1))``, scaled by a
    random factor in ``[1 - jitter, 1 + jitter]``.
    """
    max_attempts: int = 4
    base_delay: float = 2.0
    max_delay: float = 32.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if not 0 <= self.jitter <= 1:
            raise ValueError("jitter must be between 0 and 1")

    def compute_delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Backoff delay in seconds after the given failed attempt (1-indexed)."""
        delay = min(self.max_delay, self.base_delay * (self.backoff_multiplier ** (attempt - 1)))
        if self.jitter:
            uniform = (rng or random).uniform
            delay *= uniform(1 - self.jitter, 1 + self.jitter)
        return max(0.0, delay)

# === Fetch Context ===

@dataclass
class FetchResult:
    """What a fetch hands back to the UI layer."""
    key: CacheKey
    payload: Payload
    served_from_cache: bool
    stale: bool = False  # True only for the exhausted-retry fallback

    def data(self) -> Any:
        """Decodes the JSON payload."""
        return json.loads(self.payload)


class Observation(TypedDict):
    """A single time-series point as stored in payloads."""
    date: str  # ISO date
    value: Optional[float]
