import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from unittest.mock import MagicMock

from apptivo.domain.events.api_events import SessionEstablished
from apptivo.domain.exceptions import AuthenticationError, CancelledError, FatalCallError, RetryableCallError
from apptivo.domain.interfaces.throttle import ThrottleStrategy
from apptivo.domain.models.credentials import SessionCredentials
from apptivo.infrastructure.resilience.api_retry import ResilientInvoker
from apptivo.infrastructure.resilience.cancellation import CancelToken
from apptivo.infrastructure.session.session_manager import SessionManager, SessionState


@pytest.fixture
def login():
    return SessionCredentials(email_id="me@example.com", password="pw", firm_id="42")


@pytest.fixture
def authenticator():
    return MagicMock(return_value="sk-1")


def test_starts_unauthenticated(authenticator):
    manager = SessionManager(authenticator)
    assert manager.state is SessionState.UNAUTHENTICATED
    assert manager.session_key is None
    assert not manager.is_valid


def test_second_call_reuses_the_key(authenticator, login):
    manager = SessionManager(authenticator, credentials=login)
    assert manager.ensure_session_key() == "sk-1"
    assert manager.ensure_session_key() == "sk-1"

    authenticator.assert_called_once_with(login)
    assert manager.authentication_count == 1
    assert manager.state is SessionState.AUTHENTICATED


def test_missing_credentials(authenticator):
    with pytest.raises(AuthenticationError, match="No session credentials"):
        SessionManager(authenticator).ensure_session_key()
    authenticator.assert_not_called()


def test_rejected_login_reverts_state(login):
    manager = SessionManager(MagicMock(side_effect=AuthenticationError("bad password", status_code=401)))
    with pytest.raises(AuthenticationError):
        manager.ensure_session_key(login)
    assert manager.state is SessionState.UNAUTHENTICATED


def test_other_failures_become_authentication_errors(login):
    manager = SessionManager(MagicMock(side_effect=FatalCallError("HTTP 400")))
    with pytest.raises(AuthenticationError) as exc_info:
        manager.ensure_session_key(login)
    assert isinstance(exc_info.value.__cause__, FatalCallError)
    assert manager.state is SessionState.UNAUTHENTICATED


def test_empty_key_is_rejected(login):
    manager = SessionManager(MagicMock(return_value=""))
    with pytest.raises(AuthenticationError):
        manager.ensure_session_key(login)
    assert not manager.is_valid


def test_new_credentials_authenticate_again(authenticator, login):
    manager = SessionManager(authenticator, credentials=login)
    manager.ensure_session_key()
    other = SessionCredentials(email_id="other@example.com", password="pw2")
    manager.ensure_session_key(other)
    assert authenticator.call_count == 2
    assert manager.credentials == other


def test_mark_expired_forces_reauthentication(login):
    authenticator = MagicMock(side_effect=["sk-1", "sk-2"])
    manager = SessionManager(authenticator, credentials=login)
    manager.ensure_session_key()

    manager.mark_expired()
    assert manager.state is SessionState.EXPIRED
    assert manager.session_key is None

    assert manager.ensure_session_key() == "sk-2"
    assert manager.state is SessionState.AUTHENTICATED


def test_reset(authenticator, login):
    manager = SessionManager(authenticator, credentials=login)
    manager.ensure_session_key()
    manager.reset()
    assert manager.state is SessionState.UNAUTHENTICATED
    manager.ensure_session_key()
    assert authenticator.call_count == 2


def test_concurrent_callers_share_one_authentication(login):
    release = threading.Event()
    calls = []

    def slow_authenticator(credentials):
        calls.append(credentials)
        release.wait(5)
        return "sk-1"

    manager = SessionManager(slow_authenticator, credentials=login)
    with ThreadPoolExecutor(max_workers=6) as pool:
        futures = [pool.submit(manager.ensure_session_key) for _ in range(6)]
        time.sleep(0.1)
        release.set()
        keys = [future.result(timeout=5) for future in futures]

    assert keys == ["sk-1"] * 6
    assert len(calls) == 1


def test_authentication_is_retried(login):
    authenticator = MagicMock(side_effect=[RetryableCallError("rate limited"), "sk-1"])
    manager = SessionManager(authenticator, invoker=ResilientInvoker(max_retries=1, sleep_seconds=0), credentials=login)
    assert manager.ensure_session_key() == "sk-1"
    assert authenticator.call_count == 2


def test_cancelled_authentication(login, authenticator):
    manager = SessionManager(authenticator, invoker=ResilientInvoker(sleep_seconds=0), credentials=login)
    token = CancelToken()
    token.cancel()
    with pytest.raises(CancelledError):
        manager.ensure_session_key(cancel_token=token)
    assert manager.state is SessionState.UNAUTHENTICATED


def test_session_established_event(authenticator, login):
    events = []
    SessionManager(authenticator, credentials=login, event_listener=events.append).ensure_session_key()
    assert events == [SessionEstablished(email_id="me@example.com", firm_id="42", timestamp=events[0].timestamp)]


def test_waiter_gives_up_at_its_own_deadline(login):
    release = threading.Event()

    def slow_authenticator(credentials):
        release.wait(5)
        return "sk-1"

    manager = SessionManager(slow_authenticator, credentials=login)
    with ThreadPoolExecutor(max_workers=1) as pool:
        first = pool.submit(manager.ensure_session_key)
        time.sleep(0.1)
        started = time.monotonic()
        with pytest.raises(CancelledError) as exc_info:
            manager.ensure_session_key(cancel_token=CancelToken(timeout=0.1))
        waited = time.monotonic() - started
        release.set()
        assert first.result(timeout=5) == "sk-1"

    assert waited < 1.0
    assert exc_info.value.endpoint == "login"
    assert manager.state is SessionState.AUTHENTICATED


def test_waiter_authenticates_after_the_first_caller_is_cancelled(login):
    throttle = MagicMock(spec=ThrottleStrategy)
    throttle.reserve.side_effect = [5.0, 0.0]
    authenticator = MagicMock(return_value="sk-2")
    invoker = ResilientInvoker(max_retries=0, sleep_seconds=0, throttle=throttle)
    manager = SessionManager(authenticator, invoker=invoker, credentials=login)
    first_token = CancelToken()

    with ThreadPoolExecutor(max_workers=2) as pool:
        first = pool.submit(manager.ensure_session_key, None, first_token)
        time.sleep(0.1)
        waiter = pool.submit(manager.ensure_session_key)
        time.sleep(0.1)
        first_token.cancel()

        with pytest.raises(CancelledError):
            first.result(timeout=5)
        assert waiter.result(timeout=5) == "sk-2"

    authenticator.assert_called_once_with(login)
    assert manager.state is SessionState.AUTHENTICATED
