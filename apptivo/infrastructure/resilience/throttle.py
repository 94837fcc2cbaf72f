"""Throttle strategies applied before every remote call attempt.

`FlatSleepThrottle` reproduces Apptivo's recommended pattern: a fixed sleep
before each call, growing by `backoff_factor` per retry. It is local to each
call. `SlidingWindowThrottle` is meant to be shared by every caller of one
account and caps the number of calls within a time window.
"""

import time
import logging
import bisect
import collections
from threading import Lock
from typing import Deque

from apptivo.domain.interfaces.throttle import ThrottleStrategy

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS_PER_WINDOW = 60
DEFAULT_WINDOW_SECONDS = 60


class FlatSleepThrottle(ThrottleStrategy):
    """Waits `sleep_seconds * backoff_factor ** attempt` before each attempt."""

    def __init__(self, backoff_factor: float = 1.0):
        if backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        self.backoff_factor = backoff_factor

    def reserve(self, sleep_seconds: float, attempt: int) -> float:
        return max(0.0, sleep_seconds * (self.backoff_factor ** attempt))


class SlidingWindowThrottle(ThrottleStrategy):
    """Caps calls per window across threads, on top of the flat per-call sleep."""

    def __init__(self,
                 max_requests: int = DEFAULT_MAX_REQUESTS_PER_WINDOW,
                 window_seconds: float = DEFAULT_WINDOW_SECONDS,
                 backoff_factor: float = 1.0):
        """Initializes the throttle.

        Args:
            max_requests: Maximum number of calls allowed within the window.
            window_seconds: The duration of the sliding window in seconds.
            backoff_factor: Growth of the flat per-call sleep per retry.
        """
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("Max requests and window must be positive.")

        self.max_requests = max_requests
        self.window = window_seconds
        self.flat = FlatSleepThrottle(backoff_factor)
        # Reserved slot start times, kept sorted
        self.timestamps: Deque[float] = collections.deque()
        self._lock = Lock()
        logger.info(f"SlidingWindowThrottle initialized: Max {self.max_requests} calls / {self.window} seconds.")

    def _prune_timestamps(self, current_time: float) -> None:
        while self.timestamps and self.timestamps[0] <= current_time - self.window:
            self.timestamps.popleft()

    def reserve(self, sleep_seconds: float, attempt: int) -> float:
        flat_wait = self.flat.reserve(sleep_seconds, attempt)
        with self._lock:
            now = time.monotonic()
            self._prune_timestamps(now)
            start = now + flat_wait
            if len(self.timestamps) >= self.max_requests:
                # The slot frees up when the call max_requests back leaves the window
                oldest_relevant = self.timestamps[-self.max_requests]
                start = max(start, oldest_relevant + self.window)
            bisect.insort(self.timestamps, start)
            wait = start - now
        if wait > flat_wait:
            logger.debug(f"Call window full. Waiting {wait:.2f} seconds.")
        return wait
