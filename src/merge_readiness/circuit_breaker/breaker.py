"""Core circuit breaker implementation."""

import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import ParamSpec, TypeVar

from merge_readiness.circuit_breaker.events import (
    BreakerEvent,
    BreakerReset,
    FailureRecorded,
    StateChanged,
    SuccessRecorded,
)
from merge_readiness.circuit_breaker.exceptions import CircuitOpenError
from merge_readiness.circuit_breaker.state import (
    BreakerStatus,
    CircuitState,
    FailureKind,
)
from merge_readiness.events import DEFAULT_SUBSCRIPTION_SIZE, EventChannel, Subscription
from merge_readiness.logging import log_info, log_warning

T = TypeVar("T")
P = ParamSpec("P")

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_threshold: Consecutive failures while ``CLOSED`` before opening.
        success_threshold: Consecutive ``HALF_OPEN`` successes before closing.
        reset_timeout: Seconds to stay ``OPEN`` before allowing a probe.
        failure_window: Seconds of failure history retained for reporting.
    """

    failure_threshold: int = 3
    success_threshold: int = 2
    reset_timeout: float = 300.0
    failure_window: float = 600.0

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")
        if self.reset_timeout < 0:
            raise ValueError("reset_timeout must be >= 0")
        if self.failure_window < 0:
            raise ValueError("failure_window must be >= 0")


class CircuitBreaker:
    """Three-state gate in front of an unreliable dependency.

    Callers consult ``can_attempt()`` / ``prepare_for_attempt()`` before an
    operation and report the outcome through ``record_success()`` or
    ``record_failure()``; ``execute()`` wraps that protocol around one call.

    Counters are mutated without locks. Sharing one instance between poll
    loops couples their failure domains and requires the caller to serialize
    ``record_*`` calls.
    """

    def __init__(
        self,
        name: str = "ci",
        *,
        config: CircuitBreakerConfig | None = None,
    ) -> None:
        """Build a closed circuit breaker.

        Args:
            name: Breaker name used in events, logs and errors.
            config: Breaker behavior configuration. Defaults to
                ``CircuitBreakerConfig()``.
        """
        self.name = name
        self.config = CircuitBreakerConfig() if config is None else config
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._last_failure_at: datetime | None = None
        self._state_changed_at = _utcnow()
        self._failure_times: deque[datetime] = deque()
        self._events: EventChannel[BreakerEvent] = EventChannel()

    @property
    def state(self) -> CircuitState:
        """Return the current breaker state."""
        return self._state

    def subscribe(
        self, *, maxsize: int = DEFAULT_SUBSCRIPTION_SIZE
    ) -> Subscription[BreakerEvent]:
        """Subscribe to breaker events; close the subscription to unsubscribe."""
        return self._events.subscribe(maxsize=maxsize)

    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    def is_half_open(self) -> bool:
        return self._state == CircuitState.HALF_OPEN

    def _retry_after(self, now: datetime) -> float:
        elapsed = (now - self._state_changed_at).total_seconds()
        return max(self.config.reset_timeout - elapsed, 0.0)

    def can_attempt(self) -> bool:
        """Return true when closed, half-open, or open past the reset timeout."""
        if self._state != CircuitState.OPEN:
            return True
        return self._retry_after(_utcnow()) <= 0.0

    def prepare_for_attempt(self) -> None:
        """Move ``OPEN`` to ``HALF_OPEN`` once the reset timeout has elapsed.

        Raises:
            CircuitOpenError: When the circuit is open and still cooling down.
        """
        if self._state != CircuitState.OPEN:
            return
        now = _utcnow()
        retry_after = self._retry_after(now)
        if retry_after > 0.0:
            raise CircuitOpenError(
                self.name, failures=self._failures, retry_after=retry_after
            )
        self._transition(CircuitState.HALF_OPEN, now)

    def record_success(self) -> None:
        """Record a successful operation."""
        if self._state == CircuitState.HALF_OPEN:
            self._successes += 1
            self._events.publish(
                SuccessRecorded(
                    name=self.name,
                    successes=self._successes,
                    threshold=self.config.success_threshold,
                    at=_utcnow(),
                )
            )
            if self._successes >= self.config.success_threshold:
                self.reset()
        elif self._state == CircuitState.CLOSED:
            self._failures = 0
            self._failure_times.clear()

    def record_failure(self, kind: FailureKind | None = None) -> None:
        """Record a failed operation.

        Args:
            kind: Failure classification. ``FailureKind.TERMINAL`` opens the
                circuit immediately; any other value counts toward
                ``failure_threshold``.
        """
        now = _utcnow()
        self._last_failure_at = now
        self._prune_failure_window(now)
        self._failure_times.append(now)

        if kind == FailureKind.TERMINAL:
            self._failures = max(self._failures, self.config.failure_threshold)
        else:
            self._failures += 1

        self._events.publish(
            FailureRecorded(
                name=self.name,
                failures=self._failures,
                threshold=self.config.failure_threshold,
                kind=kind,
                at=now,
            )
        )

        if self._state == CircuitState.HALF_OPEN:
            self._successes = 0
            self._transition(CircuitState.OPEN, now)
        elif (
            self._state == CircuitState.CLOSED
            and self._failures >= self.config.failure_threshold
        ):
            self._transition(CircuitState.OPEN, now)

    def reset(self) -> None:
        """Force the breaker to ``CLOSED`` with zeroed counters."""
        now = _utcnow()
        previous = self._state
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._failure_times.clear()
        self._state_changed_at = now

        self._events.publish(BreakerReset(name=self.name, at=now))
        if previous != CircuitState.CLOSED:
            self._announce(previous, CircuitState.CLOSED, now)

    def force_open(self) -> None:
        """Operator override that opens the circuit."""
        log_warning(_logger, "circuit_breaker.force_open", breaker=self.name)
        self._transition(CircuitState.OPEN, _utcnow())

    def time_until_reset(self) -> float:
        """Return seconds until a probe is allowed; ``0.0`` unless ``OPEN``."""
        if self._state != CircuitState.OPEN:
            return 0.0
        return self._retry_after(_utcnow())

    def status(self) -> BreakerStatus:
        """Return a snapshot of the breaker counters."""
        self._prune_failure_window(_utcnow())
        return BreakerStatus(
            name=self.name,
            state=self._state,
            failures=self._failures,
            successes=self._successes,
            last_failure_at=self._last_failure_at,
            state_changed_at=self._state_changed_at,
            recent_failures=len(self._failure_times),
        )

    async def execute(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Invoke an async callable under circuit breaker protection.

        Args:
            func: Async callable to execute.
            *args: Positional arguments forwarded to ``func``.
            **kwargs: Keyword arguments forwarded to ``func``.

        Returns:
            The result of ``func`` when allowed and successful.

        Raises:
            CircuitOpenError: When the circuit denies the attempt; ``func`` is
                not invoked.
            Exception: The original exception from ``func``.
        """
        if not self.can_attempt():
            raise CircuitOpenError(
                self.name,
                failures=self._failures,
                retry_after=self.time_until_reset(),
            )
        self.prepare_for_attempt()

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        else:
            self.record_success()
            return result

    def _prune_failure_window(self, now: datetime) -> None:
        cutoff = now - timedelta(seconds=self.config.failure_window)
        while self._failure_times and self._failure_times[0] < cutoff:
            self._failure_times.popleft()

    def _transition(self, new: CircuitState, now: datetime) -> None:
        if self._state == new:
            return
        previous = self._state
        self._state = new
        self._state_changed_at = now
        if new == CircuitState.HALF_OPEN:
            self._successes = 0
        self._announce(previous, new, now)

    def _announce(self, old: CircuitState, new: CircuitState, now: datetime) -> None:
        self._events.publish(StateChanged(name=self.name, old=old, new=new, at=now))
        log_info(
            _logger,
            "circuit_breaker.state_changed",
            breaker=self.name,
            old_state=str(old),
            new_state=str(new),
            failures=self._failures,
        )
