"""Error taxonomy for the resilience layer.

StorageError and RateLimitTimeout surface to the caller of the failing
component. OperationFailed is raised only when every attempt failed and no
stale cache entry existed; a stale fallback is never an error.
"""

from typing import Optional

# HTTP statuses worth another attempt (throttling and transient server errors)
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class EconFetchError(Exception):
    """Base class for all econfetch errors."""


class StorageError(EconFetchError):
    """Raised when the underlying cache store fails (disk full, corruption, lock timeout)."""

    def __init__(self, operation: str, original_exception: Exception):
        self.operation = operation
        self.original_exception = original_exception
        super().__init__(f"Cache storage failure during '{operation}': {original_exception}")


class RateLimitTimeout(EconFetchError):
    """Raised when no rate limiter slot was granted within the caller's timeout."""

    def __init__(self, provider: str, timeout: Optional[float]):
        self.provider = provider
        self.timeout = timeout
        super().__init__(f"Rate limit slot for '{provider}' not granted within {timeout}s")


class OperationFailed(EconFetchError):
    """Exception raised when all attempts failed and no cached fallback existed."""

    def __init__(self, last_error: Exception, attempts: int, key: Optional[str] = None):
        self.last_error = last_error
        self.attempts = attempts
        self.key = key
        super().__init__(
            f"Operation failed after {attempts} attempt(s), no cached fallback. Last error: {last_error}"
        )


RetryExhausted = OperationFailed


class RemoteApiError(EconFetchError):
    """A remote provider call failed.

    Raised by data source clients. ``status`` is the HTTP status for non-2xx
    responses and ``None`` for connection failures and timeouts.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        provider: Optional[str] = None,
        retryable: Optional[bool] = None,
    ):
        self.status = status
        self.provider = provider
        if retryable is None:
            retryable = status is None or status in RETRYABLE_STATUS_CODES
        self.retryable = retryable
        prefix = f"[{provider}] " if provider else ""
        suffix = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"{prefix}{message}{suffix}")
