"""Circuit breaker state primitives."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class FailureKind(StrEnum):
    """Classification of a recorded failure.

    ``TERMINAL`` failures open the circuit immediately; the other kinds count
    toward the failure threshold.
    """

    TERMINAL = "terminal"
    TRANSIENT = "transient"
    PERSISTENT = "persistent"

    @property
    def severity(self) -> int:
        """Return an ordering key where larger means more severe."""
        return _SEVERITY[self]


_SEVERITY = {
    FailureKind.TRANSIENT: 0,
    FailureKind.PERSISTENT: 1,
    FailureKind.TERMINAL: 2,
}


@dataclass(frozen=True)
class BreakerStatus:
    """Point-in-time view of breaker internals useful for metrics/logging.

    Attributes:
        name: Breaker name.
        state: Current breaker state.
        failures: Consecutive failures counted while ``CLOSED``.
        successes: Consecutive successes counted while ``HALF_OPEN``.
        last_failure_at: Timestamp of the last recorded failure, if any.
        state_changed_at: Timestamp when the current state was entered.
        recent_failures: Failures recorded within the failure window.
    """

    name: str
    state: CircuitState
    failures: int
    successes: int
    last_failure_at: datetime | None
    state_changed_at: datetime
    recent_failures: int
