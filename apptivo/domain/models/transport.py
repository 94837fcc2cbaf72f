"""Transport-level value objects: requests, responses and their classification."""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class CallOutcome(enum.Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


RETRYABLE_STATUS_CODES = (408, 429, 500, 502, 503, 504)
AUTH_STATUS_CODES = (401, 403)


@dataclass(frozen=True)
class ApiRequest:
    method: str
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    data: Optional[Dict[str, Any]] = None
    # Short name used in logs and events instead of the full URL (which carries keys)
    endpoint: Optional[str] = None

    @property
    def name(self) -> str:
        return self.endpoint or f"{self.method} {self.path}"


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    body: Any = None
    text: str = ""

    @property
    def outcome(self) -> CallOutcome:
        return classify_response(self.status_code, self.body)

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in AUTH_STATUS_CODES


def classify_response(status_code: int, body: Any) -> CallOutcome:
    """Maps a status code and decoded body onto success / retryable / fatal.

    Apptivo answers a throttled call with 200 and an empty body, so an empty
    2xx body is retryable rather than a success.
    """
    if 200 <= status_code < 300:
        if body is None or body == "" or body == {} or body == []:
            return CallOutcome.RETRYABLE
        return CallOutcome.SUCCESS
    if status_code in RETRYABLE_STATUS_CODES or status_code >= 500:
        return CallOutcome.RETRYABLE
    return CallOutcome.FATAL
