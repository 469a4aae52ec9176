import asyncio

import pytest

from merge_readiness.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    FailureKind,
    FailureRecorded,
)
from merge_readiness.polling import (
    BackoffScheduled,
    CheckFailure,
    CheckStatus,
    CircuitOpened,
    CIState,
    CIStatus,
    FailureClassified,
    Poller,
    PollerConfig,
    PollFailureReason,
    StatusCheck,
    TerminalFailureDetected,
    build_ci_status,
)
from tests.merge_readiness.support.fakes import (
    FakeClock,
    RecordingSleep,
    ScriptedStatusChecker,
    event_types,
)

pytestmark = pytest.mark.asyncio

_PENDING = CIStatus(state=CIState.PENDING)
_SUCCESS = CIStatus(
    state=CIState.SUCCESS,
    checks=(StatusCheck("build", CheckStatus.PASSED, "success"),),
)


def _failed(name: str) -> CIStatus:
    return build_ci_status((StatusCheck(name, CheckStatus.FAILED, "failure"),))


def _poller(
    sleep: RecordingSleep,
    *,
    breaker: CircuitBreaker | None = None,
    stop_event: asyncio.Event | None = None,
    **overrides: object,
) -> Poller:
    values: dict[str, object] = {
        "initial_interval": 10.0,
        "max_interval": 60.0,
        "backoff_multiplier": 2.0,
        "max_jitter": 0.0,
        "max_polls": 5,
        "fail_fast_on_terminal": True,
    }
    values.update(overrides)
    return Poller(
        PollerConfig(**values),  # type: ignore[arg-type]
        circuit_breaker=breaker,
        sleep=sleep,
        stop_event=stop_event,
    )


async def test_success_on_first_poll_does_not_sleep(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    poller = _poller(recording_sleep)
    subscription = poller.subscribe()
    checker = ScriptedStatusChecker([_SUCCESS])

    result = await poller.poll_until_complete(7, checker)

    assert result.success
    assert result.poll_count == 1
    assert result.reason is None
    assert result.elapsed >= 0.0
    assert checker.calls == [7]
    assert recording_sleep.delays == []
    assert event_types(subscription.drain()) == ["PollStarted", "PollCompleted"]


async def test_pending_polls_back_off_exponentially(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    poller = _poller(recording_sleep)
    subscription = poller.subscribe()
    checker = ScriptedStatusChecker([_PENDING, _PENDING, _SUCCESS])

    result = await poller.poll_until_complete(7, checker)

    assert result.success
    assert result.poll_count == 3
    assert recording_sleep.delays == [10.0, 20.0]
    backoffs = [
        event for event in subscription.drain() if isinstance(event, BackoffScheduled)
    ]
    assert [(event.poll_count, event.interval, event.reason) for event in backoffs] == [
        (1, 10.0, "pending"),
        (2, 20.0, "pending"),
    ]


async def test_backoff_interval_is_capped_at_max_interval(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    poller = _poller(
        recording_sleep,
        initial_interval=1.0,
        max_interval=5.0,
        max_polls=6,
    )

    result = await poller.poll_until_complete(1, ScriptedStatusChecker([_PENDING]))

    assert recording_sleep.delays == [1.0, 2.0, 4.0, 5.0, 5.0]
    assert result.reason == PollFailureReason.MAX_POLLS_EXCEEDED
    assert result.poll_count == 6


async def test_jitter_stays_within_bounds(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    poller = _poller(
        recording_sleep,
        initial_interval=1.0,
        max_interval=4.0,
        max_jitter=0.5,
        max_polls=4,
    )

    await poller.poll_until_complete(1, ScriptedStatusChecker([_PENDING]))

    for base, delay in zip((1.0, 2.0, 4.0), recording_sleep.delays, strict=True):
        assert base <= delay <= base + 0.5


async def test_max_polls_exceeded_stops_after_limit(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    poller = _poller(recording_sleep, max_polls=3)
    checker = ScriptedStatusChecker([_PENDING])

    result = await poller.poll_until_complete(9, checker)

    assert not result.success
    assert result.reason == PollFailureReason.MAX_POLLS_EXCEEDED
    assert result.poll_count == 3
    assert len(checker.calls) == 3
    assert len(recording_sleep.delays) == 2


async def test_terminal_failure_fails_fast(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    breaker = CircuitBreaker("ci")
    poller = _poller(recording_sleep, breaker=breaker)
    subscription = poller.subscribe()

    result = await poller.poll_until_complete(3, ScriptedStatusChecker([_failed("config-validation")]))

    assert result.reason == PollFailureReason.TERMINAL_FAILURE
    assert result.poll_count == 1
    assert result.failure_details is not None
    assert result.failure_details.name == "config-validation"
    assert result.failure_details.kind == FailureKind.TERMINAL
    assert not result.failure_details.recoverable
    assert breaker.is_open()
    events = subscription.drain()
    assert event_types(events) == [
        "PollStarted",
        "PollCompleted",
        "FailureClassified",
        "TerminalFailureDetected",
    ]
    assert isinstance(events[-1], TerminalFailureDetected)


async def test_terminal_failure_without_fail_fast_hits_open_circuit(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    poller = _poller(recording_sleep, fail_fast_on_terminal=False)
    subscription = poller.subscribe()
    checker = ScriptedStatusChecker([_failed("syntax-check")])

    result = await poller.poll_until_complete(3, checker)

    assert result.reason == PollFailureReason.CIRCUIT_OPEN
    assert result.poll_count == 1
    assert len(checker.calls) == 1
    events = subscription.drain()
    assert event_types(events)[-2:] == ["BackoffScheduled", "CircuitOpened"]
    assert isinstance(events[-2], BackoffScheduled)
    assert events[-2].reason == "failure"


async def test_mixed_failures_record_one_failure_of_the_most_severe_kind(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    breaker = CircuitBreaker("ci", config=CircuitBreakerConfig(failure_threshold=3))
    breaker_events = breaker.subscribe()
    poller = _poller(recording_sleep, breaker=breaker, fail_fast_on_terminal=False)
    subscription = poller.subscribe()
    status = CIStatus(
        state=CIState.FAILURE,
        checks=(
            StatusCheck("unit-tests", CheckStatus.FAILED, "failure"),
            StatusCheck("config-validation", CheckStatus.FAILED, "failure"),
        ),
        failures=(
            CheckFailure("unit-tests", FailureKind.TRANSIENT, recoverable=True),
        ),
    )

    result = await poller.poll_until_complete(9, ScriptedStatusChecker([status]))

    assert result.reason == PollFailureReason.CIRCUIT_OPEN
    assert result.poll_count == 1
    recorded = [
        event for event in breaker_events.drain() if isinstance(event, FailureRecorded)
    ]
    assert [event.kind for event in recorded] == [FailureKind.TERMINAL]
    classified = [
        (event.failure.name, event.failure.kind)
        for event in subscription.drain()
        if isinstance(event, FailureClassified)
    ]
    assert classified == [
        ("unit-tests", FailureKind.TRANSIENT),
        ("config-validation", FailureKind.TERMINAL),
    ]


async def test_repeated_transient_failures_open_the_circuit(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    breaker = CircuitBreaker("ci", config=CircuitBreakerConfig(failure_threshold=3))
    poller = _poller(recording_sleep, breaker=breaker, max_polls=10)
    checker = ScriptedStatusChecker([_failed("unit-tests")])

    result = await poller.poll_until_complete(5, checker)

    assert result.reason == PollFailureReason.CIRCUIT_OPEN
    assert result.poll_count == 3
    assert len(checker.calls) == 3
    assert breaker.is_open()


async def test_open_circuit_skips_checker_and_poll_started(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    breaker = CircuitBreaker("ci")
    breaker.force_open()
    poller = _poller(recording_sleep, breaker=breaker)
    subscription = poller.subscribe()
    checker = ScriptedStatusChecker([_SUCCESS])

    result = await poller.poll_until_complete(5, checker)

    assert result.reason == PollFailureReason.CIRCUIT_OPEN
    assert result.poll_count == 0
    assert checker.calls == []
    events = subscription.drain()
    assert event_types(events) == ["CircuitOpened"]
    assert isinstance(events[0], CircuitOpened)
    assert events[0].retry_after == pytest.approx(300.0)


async def test_open_circuit_past_timeout_probes_half_open(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    breaker = CircuitBreaker(
        "ci", config=CircuitBreakerConfig(reset_timeout=30.0, success_threshold=1)
    )
    breaker.force_open()
    fake_clock.advance(30)
    poller = _poller(recording_sleep, breaker=breaker)

    result = await poller.poll_until_complete(5, ScriptedStatusChecker([_SUCCESS]))

    assert result.success
    assert breaker.is_closed()


async def test_checker_errors_are_retried_and_recorded(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    breaker = CircuitBreaker("ci")
    poller = _poller(recording_sleep, breaker=breaker)
    subscription = poller.subscribe()
    checker = ScriptedStatusChecker([ConnectionError("reset by peer"), _SUCCESS])

    result = await poller.poll_until_complete(5, checker)

    assert result.success
    assert result.poll_count == 2
    assert breaker.status().failures == 0
    backoffs = [
        event for event in subscription.drain() if isinstance(event, BackoffScheduled)
    ]
    assert [event.reason for event in backoffs] == ["error"]


async def test_checker_errors_count_toward_breaker(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    breaker = CircuitBreaker("ci", config=CircuitBreakerConfig(failure_threshold=2))
    poller = _poller(recording_sleep, breaker=breaker)

    result = await poller.poll_until_complete(
        5, ScriptedStatusChecker([TimeoutError("slow")])
    )

    assert result.reason == PollFailureReason.CIRCUIT_OPEN
    assert result.poll_count == 2


async def test_stop_event_set_before_start_interrupts(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    stop_event = asyncio.Event()
    stop_event.set()
    poller = _poller(recording_sleep, stop_event=stop_event)
    checker = ScriptedStatusChecker([_PENDING])

    result = await poller.poll_until_complete(5, checker)

    assert result.reason == PollFailureReason.INTERRUPTED
    assert result.poll_count == 0
    assert checker.calls == []


async def test_stop_event_set_during_backoff_interrupts(fake_clock: FakeClock) -> None:
    stop_event = asyncio.Event()

    async def _sleep_then_stop(delay: float) -> None:
        stop_event.set()

    poller = Poller(
        PollerConfig(max_jitter=0.0),
        sleep=_sleep_then_stop,
        stop_event=stop_event,
    )
    checker = ScriptedStatusChecker([_PENDING])

    result = await poller.poll_until_complete(5, checker)

    assert result.reason == PollFailureReason.INTERRUPTED
    assert result.poll_count == 1
    assert len(checker.calls) == 1


async def test_interruptible_sleep_returns_when_stop_event_is_set(
    fake_clock: FakeClock,
) -> None:
    stop_event = asyncio.Event()
    poller = Poller(
        PollerConfig(initial_interval=30.0, max_jitter=0.0),
        stop_event=stop_event,
    )

    async def _checker(pr_number: int) -> CIStatus:
        asyncio.get_running_loop().call_later(0.01, stop_event.set)
        return _PENDING

    result = await asyncio.wait_for(poller.poll_until_complete(5, _checker), timeout=5)

    assert result.reason == PollFailureReason.INTERRUPTED
    assert result.poll_count == 1


async def test_reset_closes_the_breaker(
    fake_clock: FakeClock, recording_sleep: RecordingSleep
) -> None:
    breaker = CircuitBreaker("ci")
    breaker.force_open()
    poller = _poller(recording_sleep, breaker=breaker)

    poller.reset()

    assert breaker.is_closed()


async def test_poller_exposes_classification_helpers(recording_sleep: RecordingSleep) -> None:
    poller = _poller(recording_sleep)

    assert poller.determine_failure_type("lint") == FailureKind.TRANSIENT
    failure = poller.classify_failure(
        StatusCheck("deploy", CheckStatus.FAILED), "permission denied"
    )
    assert failure.kind == FailureKind.TERMINAL
    assert failure.error_message == "permission denied"


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"initial_interval": -1.0}, "initial_interval must be >= 0"),
        ({"max_interval": 1.0}, "max_interval must be >= initial_interval"),
        ({"backoff_multiplier": 0.5}, "backoff_multiplier must be >= 1"),
        ({"max_jitter": -0.1}, "max_jitter must be >= 0"),
        ({"max_polls": 0}, "max_polls must be >= 1"),
    ],
)
async def test_config_validation(overrides: dict[str, object], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        PollerConfig(**overrides)  # type: ignore[arg-type]
