"""Process-scoped cache of application configuration documents.

A document is fetched once per application identifier and kept for the
lifetime of the owning context. Entries never expire; callers replace or
invalidate them explicitly. Concurrent first requests for the same app id
share a single in-flight fetch.
"""

import logging
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import Callable, Dict, Mapping, Optional

from apptivo.domain.events.api_events import ConfigFetched, DomainEvent, EventListener
from apptivo.domain.exceptions import CancelledError, ConfigFetchError
from apptivo.domain.models.common import AppId
from apptivo.domain.models.config import ConfigDocument
from apptivo.infrastructure.resilience.api_retry import ResilientInvoker
from apptivo.infrastructure.resilience.cancellation import CancelToken

logger = logging.getLogger(__name__)

ConfigLoader = Callable[[AppId], ConfigDocument]


class ConfigCache:
    """Fetch-once cache mapping app id -> ConfigDocument."""

    def __init__(
        self,
        loader: ConfigLoader,
        invoker: Optional[ResilientInvoker] = None,
        event_listener: Optional[EventListener] = None,
    ):
        """Initializes the cache.

        Args:
            loader: Performs one remote fetch for an app id.
            invoker: Wraps each fetch with throttling and retries. Plain call if None.
            event_listener: Optional callable receiving domain events.
        """
        self._loader = loader
        self._invoker = invoker
        self._event_listener = event_listener
        self._documents: Dict[str, ConfigDocument] = {}
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self.fetch_count = 0

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self._event_listener is not None:
            self._event_listener(event)

    def _fetch(self, app_id: AppId, cancel_token: Optional[CancelToken]) -> ConfigDocument:
        if self._invoker is None:
            return self._loader(app_id)
        return self._invoker.invoke(
            lambda: self._loader(app_id), cancel_token=cancel_token, endpoint=f"getConfigData[{app_id}]",
        )

    def get(self, app_id: str, cancel_token: Optional[CancelToken] = None) -> ConfigDocument:
        """Returns the cached document, fetching it on first use.

        A caller that finds a fetch already running waits for it, within its
        own `cancel_token`. If the fetching caller is cancelled, one of the
        waiting callers starts the fetch again.

        Raises:
            ConfigFetchError: The fetch failed; nothing was cached.
            CancelledError: This caller's token fired; nothing was cached.
        """
        while True:
            with self._lock:
                document = self._documents.get(app_id)
                if document is not None:
                    logger.debug(f"Config cache hit for app: {app_id}")
                    return document
                future = self._in_flight.get(app_id)
                is_leader = future is None
                if is_leader:
                    future = Future()
                    self._in_flight[app_id] = future
                    self.fetch_count += 1

            if is_leader:
                return self._fetch_and_publish(app_id, future, cancel_token)

            logger.debug(f"Waiting on in-flight config fetch for app: {app_id}")
            document = self._wait(app_id, future, cancel_token)
            if document is not None:
                return document
            logger.debug(f"In-flight config fetch for app '{app_id}' was abandoned; fetching again.")

    def _wait(self, app_id: str, future: Future, cancel_token: Optional[CancelToken]) -> Optional[ConfigDocument]:
        """Result of another caller's fetch; None when that caller gave up."""
        if cancel_token is None:
            return future.result()
        while True:
            if cancel_token.should_stop():
                logger.warning(f"getConfigData[{app_id}]: {cancel_token.reason} while waiting on in-flight fetch.")
                raise CancelledError(endpoint=f"getConfigData[{app_id}]", reason=cancel_token.reason)
            try:
                return future.result(timeout=cancel_token.poll_interval())
            except FutureTimeoutError:
                continue

    def _fetch_and_publish(self, app_id: str, future: Future, cancel_token: Optional[CancelToken]) -> ConfigDocument:
        try:
            document = self._fetch(AppId(app_id), cancel_token)
        except CancelledError:
            # Cancellation belongs to this caller only
            self._release(app_id, future, None)
            logger.info(f"Config fetch for app '{app_id}' cancelled by its caller.")
            raise
        except Exception as e:
            error = ConfigFetchError(app_id, e)
            self._release(app_id, future, error)
            logger.warning(f"Config fetch for app '{app_id}' failed: {error}")
            raise error from e
        except BaseException:
            self._release(app_id, future, None)
            raise

        with self._lock:
            # An explicit set() during the fetch wins over the fetched copy
            document = self._documents.setdefault(app_id, document)
            del self._in_flight[app_id]
        future.set_result(document)
        logger.info(f"Cached config for app '{app_id}' ({len(document)} attributes).")
        self._dispatch(ConfigFetched(app_id=app_id, attribute_count=len(document)))
        return document

    def _release(self, app_id: str, future: Future, error: Optional[BaseException]) -> None:
        """Clears the in-flight entry; waiters get `error`, or retry when it is None."""
        with self._lock:
            del self._in_flight[app_id]
        if error is None:
            future.set_result(None)
        else:
            future.set_exception(error)

    def set(self, app_id: str, document: ConfigDocument) -> None:
        """Overwrites the entry for `app_id`."""
        with self._lock:
            self._documents[app_id] = document
        logger.debug(f"Config for app '{app_id}' set explicitly.")

    def get_all(self) -> Dict[str, ConfigDocument]:
        """Snapshot of every cached document."""
        with self._lock:
            return dict(self._documents)

    def replace_all(self, documents: Mapping[str, ConfigDocument]) -> None:
        """Replaces the whole cache contents."""
        with self._lock:
            self._documents = dict(documents)
        logger.debug(f"Config cache replaced with {len(documents)} entries.")

    def invalidate(self, app_id: str) -> None:
        with self._lock:
            self._documents.pop(app_id, None)

    def __contains__(self, app_id: str) -> bool:
        with self._lock:
            return app_id in self._documents
