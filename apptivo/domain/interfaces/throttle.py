"""Interface for pre-call throttling strategies.

A strategy decides how long the caller must wait before its next attempt.
The caller performs the wait itself so that cancellation can interrupt it.
"""

import abc


class ThrottleStrategy(abc.ABC):
    """Abstract Base Class for throttling outgoing calls."""

    @abc.abstractmethod
    def reserve(self, sleep_seconds: float, attempt: int) -> float:
        """Reserves a slot for the next attempt.

        Args:
            sleep_seconds: The per-call sleep configured by the caller.
            attempt: Zero-based attempt number (0 is the initial call).

        Returns:
            Seconds to wait before making the attempt (0 for no wait).
        """
        pass
