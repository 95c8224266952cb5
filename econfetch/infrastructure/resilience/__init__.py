"""API Resilience Implementations.

Contains services for handling API rate limits and retries with exponential
backoff, falling back to stale cached data when retries are exhausted.
Bounded Context: API Resilience
"""
