"""Adaptive CI poller with backoff, jitter and circuit breaker protection."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import cast

from tenacity import (
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    stop_when_event_set,
)
from tenacity.stop import stop_base

from merge_readiness.circuit_breaker import CircuitBreaker, FailureKind
from merge_readiness.events import DEFAULT_SUBSCRIPTION_SIZE, EventChannel, Subscription
from merge_readiness.logging import log_info, log_warning
from merge_readiness.polling.classification import (
    classify_failure,
    determine_failure_type,
    most_severe,
)
from merge_readiness.polling.events import (
    BackoffReason,
    BackoffScheduled,
    CircuitOpened,
    FailureClassified,
    PollCompleted,
    PollerEvent,
    PollStarted,
    TerminalFailureDetected,
)
from merge_readiness.polling.models import (
    CheckFailure,
    CIState,
    CIStatus,
    PollFailureReason,
    PollResult,
    StatusCheck,
    StatusChecker,
)
from merge_readiness.retry import (
    build_backoff_wait,
    build_interruptible_sleep,
    build_polling_retrying,
)

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PollerConfig:
    """Poller configuration values.

    Attributes:
        initial_interval: Seconds to wait after the first poll.
        max_interval: Upper bound for the exponential part of the wait.
        backoff_multiplier: Growth factor applied per poll.
        max_jitter: Upper bound of the uniform jitter added to each wait.
        max_polls: Maximum number of status-check calls per session.
        fail_fast_on_terminal: Stop at the first terminal failure.
    """

    initial_interval: float = 10.0
    max_interval: float = 60.0
    backoff_multiplier: float = 1.5
    max_jitter: float = 1.0
    max_polls: int = 60
    fail_fast_on_terminal: bool = True

    def __post_init__(self) -> None:
        if self.initial_interval < 0:
            raise ValueError("initial_interval must be >= 0")
        if self.max_interval < self.initial_interval:
            raise ValueError("max_interval must be >= initial_interval")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if self.max_jitter < 0:
            raise ValueError("max_jitter must be >= 0")
        if self.max_polls < 1:
            raise ValueError("max_polls must be >= 1")


@dataclass(slots=True)
class _PollSession:
    pr_number: int
    status_checker: StatusChecker
    started: float
    poll_count: int = 0

    def finish(
        self,
        *,
        success: bool = False,
        reason: PollFailureReason | None = None,
        failure_details: CheckFailure | None = None,
    ) -> PollResult:
        return PollResult(
            success=success,
            poll_count=self.poll_count,
            reason=reason,
            failure_details=failure_details,
            elapsed=max(time.monotonic() - self.started, 0.0),
        )


def _keep_polling(outcome: object) -> bool:
    return not isinstance(outcome, PollResult)


class Poller:
    """Poll one pull request's CI until it settles or polling must stop.

    Each session is a sequential loop; the only suspension points are the
    status-check call and the backoff sleep. Construct one poller (and
    breaker) per failure domain.
    """

    def __init__(
        self,
        config: PollerConfig | None = None,
        *,
        circuit_breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Build a poller.

        Args:
            config: Poller behavior configuration. Defaults to
                ``PollerConfig()``.
            circuit_breaker: Breaker consulted before every attempt. Defaults
                to a fresh ``CircuitBreaker``.
            sleep: Async sleep used for backoff. Defaults to ``asyncio.sleep``
                or an interruptible sleep when ``stop_event`` is given.
            stop_event: When set, backoff sleeps end early and the session
                stops with ``PollFailureReason.INTERRUPTED``.
        """
        self.config = PollerConfig() if config is None else config
        self.circuit_breaker = (
            CircuitBreaker() if circuit_breaker is None else circuit_breaker
        )
        self._stop_event = stop_event
        if sleep is None and stop_event is not None:
            sleep = build_interruptible_sleep(stop_event)
        self._sleep = sleep
        self._events: EventChannel[PollerEvent] = EventChannel()

    def subscribe(
        self, *, maxsize: int = DEFAULT_SUBSCRIPTION_SIZE
    ) -> Subscription[PollerEvent]:
        """Subscribe to poller events; close the subscription to unsubscribe."""
        return self._events.subscribe(maxsize=maxsize)

    def reset(self) -> None:
        """Reset the associated circuit breaker."""
        self.circuit_breaker.reset()

    def classify_failure(
        self, check: StatusCheck, error_message: str | None = None
    ) -> CheckFailure:
        return classify_failure(check, error_message)

    def determine_failure_type(
        self, check_name: str, error_message: str | None = None
    ) -> FailureKind:
        return determine_failure_type(check_name, error_message)

    async def poll_until_complete(
        self, pr_number: int, status_checker: StatusChecker
    ) -> PollResult:
        """Poll CI status until success, a stop condition, or exhaustion.

        Args:
            pr_number: Pull request being watched.
            status_checker: Async callable returning the current ``CIStatus``.

        Returns:
            The session's ``PollResult``. Collaborator errors and CI failures
            are reported in the result, never raised.
        """
        session = _PollSession(
            pr_number=pr_number,
            status_checker=status_checker,
            started=time.monotonic(),
        )
        stop: stop_base = stop_after_attempt(self.config.max_polls)
        if self._stop_event is not None:
            stop = stop | stop_when_event_set(self._stop_event)  # type: ignore[arg-type]

        retrying = build_polling_retrying(
            retry=retry_if_result(_keep_polling),
            wait=build_backoff_wait(
                initial=self.config.initial_interval,
                maximum=self.config.max_interval,
                multiplier=self.config.backoff_multiplier,
                max_jitter=self.config.max_jitter,
            ),
            stop=stop,
            sleep=self._sleep,
            before_sleep=partial(self._on_backoff, session),
            retry_error_callback=partial(self._on_exhausted, session),
        )
        result = await retrying(self._poll_once, session)
        return cast(PollResult, result)

    async def _poll_once(self, session: _PollSession) -> PollResult | BackoffReason:
        if self._stop_requested():
            return session.finish(reason=PollFailureReason.INTERRUPTED)

        breaker = self.circuit_breaker
        if not breaker.can_attempt():
            status = breaker.status()
            retry_after = breaker.time_until_reset()
            self._events.publish(
                CircuitOpened(
                    pr_number=session.pr_number,
                    failures=status.failures,
                    retry_after=retry_after,
                )
            )
            log_warning(
                _logger,
                "poller.circuit_open",
                pr_number=session.pr_number,
                poll_count=session.poll_count,
                failures=status.failures,
                retry_after=retry_after,
            )
            return session.finish(reason=PollFailureReason.CIRCUIT_OPEN)
        breaker.prepare_for_attempt()

        session.poll_count += 1
        self._events.publish(
            PollStarted(pr_number=session.pr_number, poll_count=session.poll_count)
        )

        try:
            status = await session.status_checker(session.pr_number)
        except Exception as exc:
            log_warning(
                _logger,
                "poller.status_check_failed",
                pr_number=session.pr_number,
                poll_count=session.poll_count,
                error=f"{exc.__class__.__name__}: {exc}",
            )
            breaker.record_failure(FailureKind.TRANSIENT)
            return "error"

        self._events.publish(
            PollCompleted(
                pr_number=session.pr_number,
                poll_count=session.poll_count,
                state=status.state,
            )
        )

        if status.state == CIState.SUCCESS:
            breaker.record_success()
            log_info(
                _logger,
                "poller.ci_succeeded",
                pr_number=session.pr_number,
                poll_count=session.poll_count,
            )
            return session.finish(success=True)

        if status.state != CIState.FAILURE:
            return "pending"

        failures = self._classify_failures(session, status)
        breaker.record_failure(most_severe(failures))
        terminal = next(
            (failure for failure in failures if failure.kind == FailureKind.TERMINAL),
            None,
        )
        if terminal is not None and self.config.fail_fast_on_terminal:
            self._events.publish(
                TerminalFailureDetected(pr_number=session.pr_number, failure=terminal)
            )
            log_warning(
                _logger,
                "poller.terminal_failure",
                pr_number=session.pr_number,
                poll_count=session.poll_count,
                check=terminal.name,
                error_message=terminal.error_message,
            )
            return session.finish(
                reason=PollFailureReason.TERMINAL_FAILURE,
                failure_details=terminal,
            )
        return "failure"

    def _classify_failures(
        self, session: _PollSession, status: CIStatus
    ) -> tuple[CheckFailure, ...]:
        failures = list(status.failures)
        known = {failure.name for failure in failures}
        for check in status.checks:
            if check.is_failed() and check.name not in known:
                failures.append(classify_failure(check))
                known.add(check.name)

        for failure in failures:
            self._events.publish(
                FailureClassified(pr_number=session.pr_number, failure=failure)
            )
        return tuple(failures)

    def _on_backoff(self, session: _PollSession, retry_state: RetryCallState) -> None:
        next_action = retry_state.next_action
        interval = 0.0 if next_action is None else float(next_action.sleep)
        reason: BackoffReason = "pending"
        if retry_state.outcome is not None and not retry_state.outcome.failed:
            reason = cast(BackoffReason, retry_state.outcome.result())
        self._events.publish(
            BackoffScheduled(
                pr_number=session.pr_number,
                poll_count=session.poll_count,
                interval=interval,
                reason=reason,
            )
        )
        log_info(
            _logger,
            "poller.backoff",
            pr_number=session.pr_number,
            poll_count=session.poll_count,
            interval=round(interval, 3),
            reason=reason,
        )

    def _on_exhausted(
        self, session: _PollSession, retry_state: RetryCallState
    ) -> PollResult:
        del retry_state
        if self._stop_requested():
            return session.finish(reason=PollFailureReason.INTERRUPTED)
        log_warning(
            _logger,
            "poller.max_polls_exceeded",
            pr_number=session.pr_number,
            poll_count=session.poll_count,
        )
        return session.finish(reason=PollFailureReason.MAX_POLLS_EXCEEDED)

    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()
