"""Exception taxonomy for the Apptivo client.

Every error carries a `context` dict (app id, label, attempt count ...) so an
external logger can render a useful diagnostic without parsing messages.
"""

from typing import Any, Dict, Optional


class ApptivoError(Exception):
    """Base class for all errors raised by this package."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context: Dict[str, Any] = context
        super().__init__(message)


class ConfigFetchError(ApptivoError):
    """Remote config retrieval failed after retries. Safe to retry later."""

    def __init__(self, app_id: str, cause: BaseException):
        self.app_id = app_id
        self.cause = cause
        super().__init__(f"Failed to fetch config for '{app_id}': {cause}", app_id=app_id)


class AttributeNotFoundError(ApptivoError):
    """A label or section label could not be resolved against a config document."""

    def __init__(self, label: Any, app_id: Optional[str] = None, reason: str = "not found"):
        self.label = label
        self.app_id = app_id
        super().__init__(f"Attribute {label!r} {reason} in config for '{app_id}'", label=label, app_id=app_id)


class AuthenticationError(ApptivoError):
    """Session credential exchange failed, or the remote side rejected our credentials."""

    def __init__(self, message: str = "Authentication failed", status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, status_code=status_code)


class RetriesExhaustedError(ApptivoError):
    """A resilient-wrapped operation used up its retry budget."""

    def __init__(self, attempts: int, last_cause: BaseException, endpoint: Optional[str] = None):
        self.attempts = attempts
        self.last_cause = last_cause
        self.endpoint = endpoint
        super().__init__(
            f"Gave up on {endpoint or 'operation'} after {attempts} attempts. Last error: {last_cause}",
            attempts=attempts,
            endpoint=endpoint,
        )


class CancelledError(ApptivoError):
    """The caller cancelled, or its deadline passed, during a retry loop."""

    def __init__(self, attempts: int = 0, endpoint: Optional[str] = None, reason: str = "cancelled"):
        self.attempts = attempts
        self.endpoint = endpoint
        super().__init__(
            f"{endpoint or 'Operation'} {reason} after {attempts} attempts",
            attempts=attempts,
            endpoint=endpoint,
        )


# --- Call classification (raised by transports / API clients) ---

class RetryableCallError(ApptivoError):
    """A remote call failed in a way that may succeed on retry (rate limit, 5xx, empty body)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, status_code=status_code)


class FatalCallError(ApptivoError):
    """A remote call failed in a way a retry cannot fix (malformed request, bad payload)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, status_code=status_code)
