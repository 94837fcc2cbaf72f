"""Domain Events related to API calls, configuration and sessions.

Events are plain dataclasses handed to an optional listener callable, which is
how callers wire metrics or tracing in from outside.
"""

from dataclasses import dataclass, field
import time
from typing import Callable, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


EventListener = Callable[[DomainEvent], None]


@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an attempt is about to be made."""
    endpoint: str
    attempt_number: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    endpoint: str
    attempt_number: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a call fails definitively (fatal, exhausted or cancelled)."""
    endpoint: str
    error_type: str
    error_message: str
    attempts: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    endpoint: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class ConfigFetched(DomainEvent):
    """Event triggered when a config document is fetched and cached."""
    app_id: str
    attribute_count: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class SessionEstablished(DomainEvent):
    email_id: str
    firm_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
