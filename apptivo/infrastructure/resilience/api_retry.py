"""Service for executing remote calls with throttling and bounded retries.

Every attempt is preceded by the delay the throttle strategy asks for (a flat
sleep by default, which keeps Apptivo from rate limiting us). Failures are
classified by exception type: retryable ones are attempted again until the
budget runs out, anything else propagates immediately.
"""

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

import httpx

from apptivo.domain.events.api_events import (
    ApiCallFailed, ApiCallInitiated, ApiCallSucceeded, DomainEvent, EventListener, RetryScheduled,
)
from apptivo.domain.exceptions import CancelledError, RetriesExhaustedError, RetryableCallError
from apptivo.domain.interfaces.throttle import ThrottleStrategy
from apptivo.infrastructure.resilience.cancellation import CancelToken
from apptivo.infrastructure.resilience.throttle import FlatSleepThrottle

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 1
DEFAULT_SLEEP_SECONDS = 1.0

# Everything not listed here is fatal: auth rejections, malformed requests, bugs.
RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (RetryableCallError, httpx.TransportError)


class ResilientInvoker:
    """Wraps any remote call with pre-call throttling and retry."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        sleep_seconds: float = DEFAULT_SLEEP_SECONDS,
        throttle: Optional[ThrottleStrategy] = None,
        retryable_exceptions: Tuple[Type[BaseException], ...] = RETRYABLE_EXCEPTIONS,
        event_listener: Optional[EventListener] = None,
    ):
        """Initializes the ResilientInvoker.

        Args:
            max_retries: Default number of retries after the initial attempt.
            sleep_seconds: Default delay applied before every attempt.
            throttle: Strategy computing the pre-attempt delay. Flat sleep if None.
            retryable_exceptions: Exception types that trigger a retry.
            event_listener: Optional callable receiving domain events.
        """
        if max_retries < 0 or sleep_seconds < 0:
            raise ValueError("max_retries and sleep_seconds must not be negative.")
        self.max_retries = max_retries
        self.sleep_seconds = sleep_seconds
        self.throttle = throttle or FlatSleepThrottle()
        self.retryable_exceptions = retryable_exceptions
        self.event_listener = event_listener

        logger.debug(
            f"ResilientInvoker initialized: max_retries={max_retries}, sleep={sleep_seconds}s, "
            f"throttle={type(self.throttle).__name__}"
        )

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.event_listener is not None:
            self.event_listener(event)

    def _cancelled(self, endpoint: str, attempts: int, token: CancelToken) -> CancelledError:
        reason = token.reason
        logger.warning(f"{endpoint}: {reason} after {attempts} attempts.")
        self._dispatch(ApiCallFailed(endpoint=endpoint, error_type="CancelledError", error_message=reason, attempts=attempts))
        return CancelledError(attempts=attempts, endpoint=endpoint, reason=reason)

    def invoke(
        self,
        operation: Callable[[], T],
        max_retries: Optional[int] = None,
        sleep_seconds: Optional[float] = None,
        cancel_token: Optional[CancelToken] = None,
        endpoint: Optional[str] = None,
    ) -> T:
        """Executes `operation` with throttling and retries.

        Args:
            operation: Zero-argument callable performing one remote call.
            max_retries: Overrides the default retry count for this call.
            sleep_seconds: Overrides the default pre-attempt delay for this call.
            cancel_token: Aborts the loop before the next sleep or attempt.
            endpoint: Name used in logs, events and errors.

        Returns:
            Whatever `operation` returns on its first successful attempt.

        Raises:
            RetriesExhaustedError: Every attempt failed with a retryable error.
            CancelledError: The token was cancelled or its deadline passed.
            Exception: Any non-retryable error raised by `operation`, unchanged.
        """
        retries = self.max_retries if max_retries is None else max_retries
        sleep = self.sleep_seconds if sleep_seconds is None else sleep_seconds
        if retries < 0 or sleep < 0:
            raise ValueError("max_retries and sleep_seconds must not be negative.")
        token = cancel_token or CancelToken()
        name = endpoint or getattr(operation, "__name__", "operation")
        last_exception: Optional[BaseException] = None

        for attempt in range(retries + 1):
            if token.should_stop():
                raise self._cancelled(name, attempt, token)

            # 1. Throttle
            delay = self.throttle.reserve(sleep, attempt)
            if attempt > 0:
                self._dispatch(RetryScheduled(endpoint=name, attempt_number=attempt + 1, delay_seconds=delay))
            if delay > 0 and not token.wait(delay):
                raise self._cancelled(name, attempt, token)

            # 2. Execute
            self._dispatch(ApiCallInitiated(endpoint=name, attempt_number=attempt + 1))
            start_time = time.perf_counter()
            try:
                result = operation()
            except self.retryable_exceptions as e:
                last_exception = e
                logger.warning(
                    f"Retryable error calling {name} on attempt {attempt + 1}/{retries + 1}: "
                    f"{type(e).__name__}: {e}"
                )
                continue
            except Exception as e:
                logger.error(f"Non-retryable error calling {name} on attempt {attempt + 1}: {type(e).__name__}: {e}")
                self._dispatch(ApiCallFailed(endpoint=name, error_type=type(e).__name__, error_message=str(e), attempts=attempt + 1))
                raise

            latency_ms = (time.perf_counter() - start_time) * 1000
            self._dispatch(ApiCallSucceeded(endpoint=name, attempt_number=attempt + 1, latency_ms=latency_ms))
            if attempt > 0:
                logger.info(f"{name} succeeded on attempt {attempt + 1}.")
            return result

        # Loop finished without returning: budget exhausted
        final_error: BaseException = last_exception or RuntimeError("no attempt was made")
        logger.error(f"Max retries ({retries}) reached for {name}. Last error: {final_error}")
        self._dispatch(ApiCallFailed(
            endpoint=name, error_type=type(final_error).__name__, error_message=str(final_error), attempts=retries + 1,
        ))
        raise RetriesExhaustedError(attempts=retries + 1, last_cause=final_error, endpoint=name)
