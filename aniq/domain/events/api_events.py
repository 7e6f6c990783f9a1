"""Domain Events related to API calls, throttling and round building."""

from dataclasses import dataclass, field
import time
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- API Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an API call is about to be made."""
    operation: str  # e.g. 'GetCharactersBatch'
    remaining_estimate: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    operation: str
    latency_ms: Optional[float] = None
    remaining_estimate: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallThrottled(DomainEvent):
    """Event triggered when a call is classified as throttled (real 429 or heuristic)."""
    operation: str
    retry_after_seconds: int
    reset_timestamp: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a call fails for a reason other than throttling."""
    operation: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)


# --- Round Building Events ---

@dataclass
class RoundAttemptFailed(DomainEvent):
    """Event triggered when one round-build attempt fails and may be retried."""
    attempt_number: int
    max_attempts: int
    error_type: str
    error_message: str
    detail: Optional[Any] = None
    timestamp: float = field(default_factory=time.time)


def dispatch_event(event: DomainEvent) -> None:
    """Publishes an event. Events currently go to the debug log only."""
    logger.debug(f"EVENT: {event}")
