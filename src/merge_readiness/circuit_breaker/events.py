"""Observability events published by circuit breakers."""

from dataclasses import dataclass
from datetime import datetime

from merge_readiness.circuit_breaker.state import CircuitState, FailureKind


@dataclass(frozen=True)
class StateChanged:
    """Breaker moved between states."""

    name: str
    old: CircuitState
    new: CircuitState
    at: datetime


@dataclass(frozen=True)
class FailureRecorded:
    """A failure was recorded against the breaker."""

    name: str
    failures: int
    threshold: int
    kind: FailureKind | None
    at: datetime


@dataclass(frozen=True)
class SuccessRecorded:
    """A half-open probe succeeded."""

    name: str
    successes: int
    threshold: int
    at: datetime


@dataclass(frozen=True)
class BreakerReset:
    """Breaker was forced back to ``CLOSED`` with zeroed counters."""

    name: str
    at: datetime


BreakerEvent = StateChanged | FailureRecorded | SuccessRecorded | BreakerReset
