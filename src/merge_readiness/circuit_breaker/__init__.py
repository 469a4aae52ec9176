"""In-process circuit breaker guarding calls to the CI provider.

Key behavior notes:
  - ``OPEN`` never moves to ``HALF_OPEN`` on its own. A caller must call
    ``prepare_for_attempt()`` after ``can_attempt()`` reports the reset timeout
    has elapsed.
  - A single ``FailureKind.TERMINAL`` failure opens the circuit regardless of
    ``failure_threshold``.
  - Any failure while ``HALF_OPEN`` reopens the circuit and restarts the
    reset timeout.
  - State is local to one ``CircuitBreaker`` instance; nothing is persisted or
    shared across processes.
"""

from merge_readiness.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from merge_readiness.circuit_breaker.events import (
    BreakerEvent,
    BreakerReset,
    FailureRecorded,
    StateChanged,
    SuccessRecorded,
)
from merge_readiness.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
)
from merge_readiness.circuit_breaker.state import (
    BreakerStatus,
    CircuitState,
    FailureKind,
)

__all__ = [
    "BreakerEvent",
    "BreakerReset",
    "BreakerStatus",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitState",
    "FailureKind",
    "FailureRecorded",
    "StateChanged",
    "SuccessRecorded",
]
