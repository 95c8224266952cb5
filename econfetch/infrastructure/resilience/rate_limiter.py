"""Implementation of a rate limiter.

Controls the frequency of outgoing requests to prevent hitting provider rate
limits. Uses a sliding window: at most ``max_requests`` grants in any trailing
``time_window`` seconds.
"""

import asyncio
import logging
import threading
import time
from collections import deque
from typing import Deque, Optional

logger = logging.getLogger(__name__)

DEFAULT_TIME_WINDOW_SECONDS = 60
DEFAULT_MAX_WAIT_SECONDS = 120.0
PRIVILEGED_MAX_REQUESTS = 120  # with an API key
ANONYMOUS_MAX_REQUESTS = 5     # without
MIN_SLEEP_SECONDS = 0.01


class RateLimiter:
    """Sliding window rate limiter, per process and per instance.

    The timestamp ledger is guarded by a plain lock that is only held for the
    prune-check-record step, never while a caller sleeps.
    """

    def __init__(
        self,
        max_requests: int,
        time_window: float = DEFAULT_TIME_WINDOW_SECONDS,
        name: str = "default",
    ):
        """Initializes the rate limiter.

        Args:
            max_requests: Maximum number of requests allowed in the time window.
                Zero means nothing is ever granted.
            time_window: The time window in seconds.
            name: Provider name, used in logs.
        """
        if max_requests < 0:
            raise ValueError("max_requests must be >= 0")
        if time_window <= 0:
            raise ValueError("time_window must be positive")
        self.max_requests = max_requests
        self.time_window = time_window
        self.name = name
        self.timestamps: Deque[float] = deque()
        self._lock = threading.Lock()
        logger.info(f"RateLimiter '{name}' initialized: {max_requests} requests / {time_window} seconds")

    @classmethod
    def for_provider(
        cls,
        name: str,
        privileged: bool,
        time_window: float = DEFAULT_TIME_WINDOW_SECONDS,
        max_requests: Optional[int] = None,
    ) -> "RateLimiter":
        """Builds a limiter sized by whether privileged credentials are configured.

        A provider with a fixed budget passes ``max_requests``, which wins over
        the privileged/anonymous defaults.
        """
        if max_requests is not None:
            limit = max_requests
        else:
            limit = PRIVILEGED_MAX_REQUESTS if privileged else ANONYMOUS_MAX_REQUESTS
        return cls(limit, time_window=time_window, name=name)

    def _cleanup_timestamps(self, now: float) -> None:
        """Removes timestamps that have left the window. Caller holds the lock."""
        while self.timestamps and now - self.timestamps[0] >= self.time_window:
            self.timestamps.popleft()

    def _try_grant(self) -> float:
        """Records a grant if a slot is free.

        Returns:
            0.0 if granted, otherwise seconds until the oldest timestamp
            leaves the window (infinity when the limit is zero).
        """
        with self._lock:
            now = time.monotonic()
            self._cleanup_timestamps(now)
            if len(self.timestamps) < self.max_requests:
                self.timestamps.append(now)
                return 0.0
            if not self.timestamps:
                return float("inf")
            return max(MIN_SLEEP_SECONDS, self.timestamps[0] + self.time_window - now)

    async def wait_if_needed(self, timeout: Optional[float] = DEFAULT_MAX_WAIT_SECONDS) -> bool:
        """Waits until a request slot is available, then records it.

        Args:
            timeout: Maximum seconds to wait. None waits indefinitely.

        Returns:
            True if a slot was granted, False if the wait would exceed the
            timeout. A cancelled wait records nothing.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            wait_time = self._try_grant()
            if wait_time == 0.0:
                logger.debug(f"Rate limit permission granted for '{self.name}'.")
                return True

            remaining = float("inf") if deadline is None else deadline - time.monotonic()
            if wait_time == float("inf") or wait_time > remaining:
                logger.warning(
                    f"Rate limiter '{self.name}' cannot grant within timeout "
                    f"(needs {wait_time:.2f}s, timeout {timeout}s)."
                )
                return False

            logger.debug(f"Rate limit reached for '{self.name}'. Waiting for {wait_time:.2f} seconds.")
            await asyncio.sleep(wait_time)
            # Loop again: a concurrent caller may have taken the slot

    def try_acquire(self) -> bool:
        """Grants a slot without waiting, if one is free."""
        return self._try_grant() == 0.0

    def can_proceed(self) -> bool:
        """Checks whether a request could be granted now, without recording it."""
        with self._lock:
            self._cleanup_timestamps(time.monotonic())
            return len(self.timestamps) < self.max_requests

    def record_request(self) -> None:
        """Records a request made outside the limiter, regardless of the limit."""
        with self._lock:
            now = time.monotonic()
            self._cleanup_timestamps(now)
            self.timestamps.append(now)

    def current_count(self) -> int:
        """Number of grants still inside the window."""
        with self._lock:
            self._cleanup_timestamps(time.monotonic())
            return len(self.timestamps)

    def remaining(self) -> int:
        """Number of requests that can still be granted in the current window."""
        return max(0, self.max_requests - self.current_count())

    def get_wait_time(self) -> float:
        """Estimates the time needed before the next request can be made."""
        with self._lock:
            now = time.monotonic()
            self._cleanup_timestamps(now)
            if len(self.timestamps) < self.max_requests:
                return 0.0
            if not self.timestamps:
                return float("inf")
            return max(0.0, self.timestamps[0] + self.time_window - now)

    def reset(self) -> None:
        """Forgets every recorded request."""
        with self._lock:
            self.timestamps.clear()
