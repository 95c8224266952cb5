"""Domain Events related to remote calls and resilience.

Examples include events for when calls are attempted, retried, fail, succeed,
or are answered from stale cache data.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an attempt is about to be made."""
    provider: str
    endpoint: str
    attempt_number: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an attempt succeeds."""
    provider: str
    endpoint: str
    attempt_number: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a single attempt fails."""
    provider: str
    endpoint: str
    attempt_number: int
    error_type: str
    error_message: str
    retryable: bool = True
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    provider: str
    endpoint: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class StaleCacheServed(DomainEvent):
    """Event triggered when retries were exhausted and a stale cache entry was returned."""
    provider: str
    endpoint: str
    cache_key: str
    attempts: int
    last_error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
