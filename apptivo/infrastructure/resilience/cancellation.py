"""Cooperative cancellation for blocking retry loops."""

import threading
import time
from typing import Optional

# Upper bound on one blocking wait for shared work (an in-flight fetch or login)
WAIT_POLL_SECONDS = 0.05


class CancelToken:
    """Cancellation flag plus an optional deadline on the monotonic clock.

    Waits go through `wait()` so that `cancel()` from another thread wakes a
    sleeping retry loop immediately.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self.deadline: Optional[float] = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def should_stop(self) -> bool:
        return self.cancelled or self.expired

    @property
    def reason(self) -> str:
        return "cancelled" if self.cancelled else "deadline exceeded"

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def poll_interval(self) -> float:
        """Length of the next wait on shared work: the poll slice, capped by the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return WAIT_POLL_SECONDS
        return min(WAIT_POLL_SECONDS, remaining)

    def wait(self, seconds: float) -> bool:
        """Sleeps up to `seconds`. Returns False if cancelled or past the deadline."""
        if seconds <= 0:
            return not self.should_stop()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            return False
        self._event.wait(seconds)
        return not self.should_stop()
