"""Obtains, caches and resets the session key of one Apptivo context.

State machine::

    UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED -> EXPIRED
           ^                 |                |             |
           +---- failure ----+---- reset() ---+-------------+

Expiry is never detected here. When a dependent call is rejected the caller
invokes `mark_expired()` (or `reset()`) and the next `ensure_session_key`
authenticates again.
"""

import enum
import logging
import threading
from typing import Callable, Optional

from apptivo.domain.events.api_events import DomainEvent, EventListener, SessionEstablished
from apptivo.domain.exceptions import AuthenticationError, CancelledError
from apptivo.domain.models.common import SessionKey
from apptivo.domain.models.credentials import SessionCredentials
from apptivo.infrastructure.resilience.api_retry import ResilientInvoker
from apptivo.infrastructure.resilience.cancellation import CancelToken

logger = logging.getLogger(__name__)

Authenticator = Callable[[SessionCredentials], SessionKey]


class SessionState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


class SessionManager:
    """Single-flight session authentication for one context."""

    def __init__(
        self,
        authenticator: Authenticator,
        invoker: Optional[ResilientInvoker] = None,
        credentials: Optional[SessionCredentials] = None,
        event_listener: Optional[EventListener] = None,
    ):
        self._authenticator = authenticator
        self._invoker = invoker
        self._credentials = credentials
        self._event_listener = event_listener
        self._session_key: Optional[SessionKey] = None
        self._state = SessionState.UNAUTHENTICATED
        # Held for the whole authentication call so concurrent callers wait for its result
        self._lock = threading.Lock()
        self.authentication_count = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_valid(self) -> bool:
        return self._state is SessionState.AUTHENTICATED and bool(self._session_key)

    @property
    def session_key(self) -> Optional[SessionKey]:
        """The cached key, or None when not authenticated."""
        return self._session_key if self.is_valid else None

    @property
    def credentials(self) -> Optional[SessionCredentials]:
        return self._credentials

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self._event_listener is not None:
            self._event_listener(event)

    def _authenticate(self, credentials: SessionCredentials, cancel_token: Optional[CancelToken]) -> SessionKey:
        self.authentication_count += 1
        if self._invoker is None:
            return self._authenticator(credentials)
        return self._invoker.invoke(
            lambda: self._authenticator(credentials), cancel_token=cancel_token, endpoint="login",
        )

    def _acquire(self, cancel_token: Optional[CancelToken]) -> None:
        """Takes the lock, giving up when `cancel_token` fires first."""
        if cancel_token is None:
            self._lock.acquire()
            return
        while not self._lock.acquire(timeout=cancel_token.poll_interval()):
            if cancel_token.should_stop():
                logger.warning(f"login: {cancel_token.reason} while waiting on in-flight authentication.")
                raise CancelledError(endpoint="login", reason=cancel_token.reason)

    def ensure_session_key(
        self,
        credentials: Optional[SessionCredentials] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> SessionKey:
        """Returns the cached session key, authenticating first when needed.

        Args:
            credentials: Login to use. Defaults to the last credentials given.
            cancel_token: Aborts the authentication retry loop, and the wait
                for an authentication another caller has in progress.

        Raises:
            AuthenticationError: The exchange failed; state is UNAUTHENTICATED.
            CancelledError: This caller's token fired. If it fired during this
                caller's own authentication, state is UNAUTHENTICATED.
        """
        self._acquire(cancel_token)
        try:
            requested = credentials or self._credentials
            if requested is None:
                raise AuthenticationError("No session credentials configured.")
            if self.is_valid and requested == self._credentials:
                return self._session_key

            self._state = SessionState.AUTHENTICATING
            self._credentials = requested
            self._session_key = None
            logger.info(f"Authenticating session for {requested.email_id}.")
            try:
                key = self._authenticate(requested, cancel_token)
            except (AuthenticationError, CancelledError):
                self._state = SessionState.UNAUTHENTICATED
                raise
            except Exception as e:
                self._state = SessionState.UNAUTHENTICATED
                raise AuthenticationError(f"Session authentication failed: {e}") from e
            except BaseException:
                self._state = SessionState.UNAUTHENTICATED
                raise

            if not key:
                self._state = SessionState.UNAUTHENTICATED
                raise AuthenticationError("Login response did not contain a session key.")

            session_key = SessionKey(key)
            self._session_key = session_key
            self._state = SessionState.AUTHENTICATED
        finally:
            self._lock.release()
        logger.info("Session established.")
        self._dispatch(SessionEstablished(email_id=requested.email_id, firm_id=requested.firm_id or None))
        return session_key

    def mark_expired(self) -> None:
        """Records that the remote side rejected the current key."""
        with self._lock:
            if self._state is SessionState.AUTHENTICATED:
                self._state = SessionState.EXPIRED
                self._session_key = None
                logger.info("Session marked as expired.")

    def reset(self) -> None:
        with self._lock:
            self._state = SessionState.UNAUTHENTICATED
            self._session_key = None
