from __future__ import annotations

import asyncio
import warnings

import pytest
from tenacity import RetryCallState, retry_if_result, stop_after_attempt
from tenacity.retry import retry_if_exception_type

from merge_readiness.retry import (
    RetryBackoffPolicy,
    build_backoff_wait,
    build_exponential_jitter_retrying,
    build_interruptible_sleep,
    build_polling_retrying,
)

pytestmark = pytest.mark.asyncio


@pytest.mark.parametrize(
    ("attempts", "min_seconds", "max_seconds", "message"),
    [
        (0, 0.0, 1.0, "attempts must be >= 1"),
        (1, -0.1, 1.0, "min_seconds must be >= 0"),
        (1, 0.1, -0.1, "max_seconds must be >= 0"),
        (1, 2.0, 1.0, "max_seconds must be >= min_seconds"),
    ],
)
async def test_retry_backoff_policy_validation(
    attempts: int,
    min_seconds: float,
    max_seconds: float,
    message: str,
) -> None:
    with pytest.raises(ValueError, match=message):
        RetryBackoffPolicy(
            attempts=attempts,
            min_seconds=min_seconds,
            max_seconds=max_seconds,
        )


async def test_interruptible_sleep_returns_immediately_when_stop_event_is_set() -> None:
    stop_event = asyncio.Event()
    stop_event.set()
    sleep = build_interruptible_sleep(stop_event)

    await asyncio.wait_for(sleep(30.0), timeout=0.1)


async def test_interruptible_sleep_waits_for_delay_when_not_interrupted() -> None:
    stop_event = asyncio.Event()
    sleep = build_interruptible_sleep(stop_event)

    await asyncio.wait_for(sleep(0.01), timeout=0.2)


async def test_exponential_jitter_retrying_reraises_after_attempts() -> None:
    before_sleep_calls: list[int] = []
    sleep_calls: list[float] = []

    async def _sleep(delay: float) -> None:
        sleep_calls.append(delay)

    def _before_sleep(state: RetryCallState) -> None:
        before_sleep_calls.append(state.attempt_number)

    retrying = build_exponential_jitter_retrying(
        retry=retry_if_exception_type(ValueError),
        policy=RetryBackoffPolicy(attempts=3, min_seconds=0.0, max_seconds=0.0),
        sleep=_sleep,
        before_sleep=_before_sleep,
    )

    attempts = 0
    with pytest.raises(ValueError):
        async for attempt in retrying:
            with attempt:
                attempts += 1
                raise ValueError("boom")

    assert attempts == 3
    assert before_sleep_calls == [1, 2]
    assert sleep_calls == [0.0, 0.0]


@pytest.mark.parametrize(
    ("multiplier", "maximum", "expected"),
    [
        (2.0, 100.0, [3.0, 6.0, 12.0, 24.0]),
        (2.0, 10.0, [3.0, 6.0, 10.0, 10.0]),
        (1.0, 100.0, [3.0, 3.0, 3.0, 3.0]),
    ],
)
async def test_backoff_wait_without_jitter(
    multiplier: float, maximum: float, expected: list[float]
) -> None:
    sleep_calls: list[float] = []

    async def _sleep(delay: float) -> None:
        sleep_calls.append(delay)

    retrying = build_polling_retrying(
        retry=retry_if_result(lambda value: value == "again"),
        wait=build_backoff_wait(
            initial=3.0, maximum=maximum, multiplier=multiplier, max_jitter=0.0
        ),
        stop=stop_after_attempt(5),
        sleep=_sleep,
        retry_error_callback=lambda state: "exhausted",
    )

    async def _always_again() -> str:
        return "again"

    assert await retrying(_always_again) == "exhausted"
    assert sleep_calls == expected


async def test_backoff_wait_adds_bounded_jitter() -> None:
    sleep_calls: list[float] = []

    async def _sleep(delay: float) -> None:
        sleep_calls.append(delay)

    retrying = build_polling_retrying(
        retry=retry_if_result(lambda value: value is None),
        wait=build_backoff_wait(initial=1.0, maximum=1.0, multiplier=1.0, max_jitter=0.25),
        stop=stop_after_attempt(20),
        sleep=_sleep,
        retry_error_callback=lambda state: "exhausted",
    )

    async def _never() -> None:
        return None

    await retrying(_never)

    assert len(sleep_calls) == 19
    assert all(1.0 <= delay <= 1.25 for delay in sleep_calls)


async def test_polling_retrying_returns_first_accepted_result() -> None:
    results = iter(["pending", "pending", "done"])

    async def _sleep(delay: float) -> None:
        return None

    retrying = build_polling_retrying(
        retry=retry_if_result(lambda value: value == "pending"),
        wait=build_backoff_wait(initial=0.0, maximum=0.0, multiplier=1.0, max_jitter=0.0),
        stop=stop_after_attempt(10),
        sleep=_sleep,
    )

    async def _next() -> str:
        return next(results)

    assert await retrying(_next) == "done"


async def test_exponential_jitter_retrying_builds_without_deprecation_warnings() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        retrying = build_exponential_jitter_retrying(
            retry=retry_if_exception_type(ValueError),
            policy=RetryBackoffPolicy(attempts=2, min_seconds=0.5, max_seconds=4.0),
        )

    assert retrying.wait.multiplier == 0.5  # type: ignore[attr-defined]
    assert retrying.wait.max == 4.0  # type: ignore[attr-defined]
