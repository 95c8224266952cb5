"""Service for executing remote calls with automatic retries.

Implements exponential backoff for transient errors such as throttling (429)
or temporary server issues (5xx). When every attempt fails it falls back to
the most recent cached value for the request, even an expired one, instead of
failing the caller.
"""

import asyncio
import inspect
import logging
import random
import time
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

from econfetch.domain.events.api_events import (
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    DomainEvent,
    RetryScheduled,
    StaleCacheServed,
)
from econfetch.domain.exceptions import OperationFailed, StorageError
from econfetch.domain.interfaces.cache import CacheService
from econfetch.domain.models.common import CacheKey, RetryPolicy

logger = logging.getLogger(__name__)

Operation = Callable[[], Union[Any, Awaitable[Any]]]
EventHandler = Callable[[DomainEvent], None]


def is_retryable(error: Exception) -> bool:
    """Errors flagged ``retryable = False`` end the attempt loop early."""
    return getattr(error, "retryable", True) is not False


def _log_event(event: DomainEvent) -> None:
    logger.debug(f"EVENT: {event}")


class ApiRetryService:
    """Runs remote operations under a retry policy with stale cache fallback."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        provider_name: str = "remote",
        event_handler: Optional[EventHandler] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initializes the ApiRetryService.

        Args:
            policy: Retry/backoff configuration (defaults to RetryPolicy()).
            provider_name: Name of the provider being called (for logging/events).
            event_handler: Receives domain events; defaults to debug logging.
            rng: Random source for jitter.
        """
        self.policy = policy or RetryPolicy()
        self.provider_name = provider_name
        self.dispatch_event = event_handler or _log_event
        self._rng = rng

        logger.info(
            f"ApiRetryService initialized for '{provider_name}': max_attempts={self.policy.max_attempts}, "
            f"base_delay={self.policy.base_delay}s, max_delay={self.policy.max_delay}s, "
            f"factor={self.policy.backoff_multiplier}, jitter={self.policy.jitter}"
        )

    async def execute_with_retry(self, op: Operation, endpoint: Optional[str] = None) -> Any:
        """Executes ``op`` until it succeeds or the policy is exhausted.

        Args:
            op: Zero-argument callable performing the remote call. May return
                an awaitable.
            endpoint: Name used in logs and events (defaults to op's name).

        Returns:
            The result of the first successful attempt.

        Raises:
            OperationFailed: If every attempt failed, or a non-retryable error
                occurred. The last error is chained as ``__cause__``.
        """
        endpoint = endpoint or getattr(op, "__name__", "operation")
        max_attempts = self.policy.max_attempts
        last_exception: Optional[Exception] = None
        attempt = 0

        for attempt in range(1, max_attempts + 1):
            self.dispatch_event(ApiCallInitiated(provider=self.provider_name, endpoint=endpoint, attempt_number=attempt))
            start_time = time.perf_counter()
            try:
                result = op()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                last_exception = e
                retryable = is_retryable(e)
                self.dispatch_event(ApiCallFailed(
                    provider=self.provider_name, endpoint=endpoint, attempt_number=attempt,
                    error_type=type(e).__name__, error_message=str(e), retryable=retryable,
                ))
                if not retryable:
                    logger.error(f"Non-retryable error calling {self.provider_name}.{endpoint} on attempt {attempt}: {e}")
                    break
                if attempt == max_attempts:
                    logger.error(f"Max attempts ({max_attempts}) reached for {self.provider_name}.{endpoint}. Last error: {e}")
                    break

                delay = self.policy.compute_delay(attempt, self._rng)
                logger.warning(
                    f"Retryable error calling {self.provider_name}.{endpoint} on attempt {attempt}/{max_attempts}: "
                    f"{type(e).__name__}. Waiting {delay:.2f}s..."
                )
                self.dispatch_event(RetryScheduled(
                    provider=self.provider_name, endpoint=endpoint, attempt_number=attempt, delay_seconds=delay,
                ))
                await asyncio.sleep(delay)
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            self.dispatch_event(ApiCallSucceeded(
                provider=self.provider_name, endpoint=endpoint, attempt_number=attempt, latency_ms=latency_ms,
            ))
            return result

        raise OperationFailed(last_exception, attempt) from last_exception

    async def with_retry_and_cache(
        self,
        op: Operation,
        cache: CacheService,
        key: CacheKey,
        endpoint: Optional[str] = None,
    ) -> Tuple[Any, bool]:
        """Executes ``op`` with retries, serving stale cache data on exhaustion.

        The caller writes fresh results back into the cache; this method only
        reads from it, and only through the expiry-ignoring ``get_stale``.

        Returns:
            ``(result, served_from_cache)``.

        Raises:
            OperationFailed: If retries were exhausted and the cache holds no
                entry for ``key``.
        """
        endpoint = endpoint or getattr(op, "__name__", "operation")
        try:
            return await self.execute_with_retry(op, endpoint=endpoint), False
        except OperationFailed as failure:
            logger.warning(
                f"All attempts failed for {self.provider_name}.{endpoint}. "
                f"Attempting fallback from cache for key: {key[:10]}..."
            )
            try:
                stale = await cache.get_stale(key)
            except StorageError as cache_e:
                logger.error(f"Error during cache fallback lookup: {cache_e}")
                stale = None

            if stale is None:
                logger.error(f"No cached data available for fallback (key: {key[:10]}...).")
                raise OperationFailed(failure.last_error, failure.attempts, key=key) from failure.last_error

            logger.info(f"Cache fallback successful for key: {key[:10]}...")
            self.dispatch_event(StaleCacheServed(
                provider=self.provider_name, endpoint=endpoint, cache_key=key,
                attempts=failure.attempts, last_error=str(failure.last_error),
            ))
            return stale, True


async def with_retry_and_cache(
    op: Operation,
    cache: CacheService,
    key: CacheKey,
    policy: Optional[RetryPolicy] = None,
) -> Tuple[Any, bool]:
    """Module-level shortcut for ``ApiRetryService(policy).with_retry_and_cache``."""
    return await ApiRetryService(policy).with_retry_and_cache(op, cache, key)
