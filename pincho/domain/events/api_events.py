"""Domain Events emitted while a send call is attempted and retried.

The retry orchestrator hands these to an optional observer so callers can
record attempt history without the client aggregating errors itself.
"""

from dataclasses import dataclass, field
import time
from typing import Any, Callable, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class AttemptStarted(DomainEvent):
    """Event triggered when an HTTP attempt is about to be made."""
    endpoint: str
    attempt_number: int  # 1-based
    timestamp: float = field(default_factory=time.time)


@dataclass
class AttemptSucceeded(DomainEvent):
    """Event triggered when an attempt returns a 2xx response."""
    endpoint: str
    attempt_number: int
    latency_ms: float
    response_summary: Optional[Any] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class AttemptFailed(DomainEvent):
    """Event triggered for every failed attempt, retried or not."""
    endpoint: str
    attempt_number: int
    error_kind: str
    error_message: str
    status_code: int = 0
    retryable: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a backoff wait is about to start."""
    endpoint: str
    attempt_number: int  # attempt that just failed
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class CallFailed(DomainEvent):
    """Event triggered when the logical call ends without success."""
    endpoint: str
    attempts: int
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)


EventObserver = Callable[[DomainEvent], None]
