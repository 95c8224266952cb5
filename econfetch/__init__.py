"""econfetch: resilient fetching of economic time series.

Persistent TTL cache, sliding-window rate limiting and retry with stale
cache fallback for rate-limited remote data providers.
"""

__version__ = "0.1.0"
