from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    stop_after_attempt,
    stop_never,
    wait_exponential,
    wait_exponential_jitter,
    wait_random,
)
from tenacity.retry import retry_base
from tenacity.stop import stop_base
from tenacity.wait import wait_base


@dataclass(frozen=True)
class RetryBackoffPolicy:
    """Configuration for retry attempt count and backoff boundaries."""

    attempts: int | None
    min_seconds: float
    max_seconds: float

    def __post_init__(self) -> None:
        if self.attempts is not None and self.attempts < 1:
            raise ValueError("attempts must be >= 1 when provided")
        if self.min_seconds < 0:
            raise ValueError("min_seconds must be >= 0")
        if self.max_seconds < 0:
            raise ValueError("max_seconds must be >= 0")
        if self.max_seconds < self.min_seconds:
            raise ValueError("max_seconds must be >= min_seconds")


def build_interruptible_sleep(
    stop_event: asyncio.Event,
) -> Callable[[float], Awaitable[None]]:
    """Build an async sleep that exits early when shutdown is requested."""

    async def _interruptible_sleep(delay: float) -> None:
        if stop_event.is_set():
            return

        bounded_delay = max(delay, 0.0)
        with suppress(TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=bounded_delay)

    return _interruptible_sleep


def build_backoff_wait(
    *,
    initial: float,
    maximum: float,
    multiplier: float,
    max_jitter: float,
) -> wait_base:
    """Build ``min(maximum, initial * multiplier**(n-1)) + uniform(0, max_jitter)``.

    ``n`` is the number of the attempt that just finished, so the first
    backoff is ``initial`` plus jitter.
    """
    backoff = wait_exponential(multiplier=initial, max=maximum, exp_base=multiplier)
    if max_jitter <= 0:
        return backoff
    return backoff + wait_random(min=0, max=max_jitter)


def build_exponential_jitter_retrying(
    *,
    retry: retry_base,
    policy: RetryBackoffPolicy,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
    reraise: bool = True,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` with exponential jitter backoff."""
    stop = (
        stop_never if policy.attempts is None else stop_after_attempt(policy.attempts)
    )
    wait = wait_exponential_jitter(
        multiplier=policy.min_seconds,
        max=policy.max_seconds,
    )
    return _build_retrying(
        retry=retry,
        wait=wait,
        stop=stop,
        sleep=sleep,
        before_sleep=before_sleep,
        reraise=reraise,
    )


def build_polling_retrying(
    *,
    retry: retry_base,
    wait: wait_base,
    stop: stop_base,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
    retry_error_callback: Callable[[RetryCallState], object] | None = None,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` that polls on results rather than exceptions."""
    return _build_retrying(
        retry=retry,
        wait=wait,
        stop=stop,
        sleep=sleep,
        before_sleep=before_sleep,
        retry_error_callback=retry_error_callback,
        reraise=True,
    )


def _build_retrying(
    *,
    retry: retry_base,
    wait: wait_base,
    stop: stop_base,
    sleep: Callable[[float], Awaitable[None]] | None,
    before_sleep: Callable[[RetryCallState], None] | None,
    reraise: bool,
    retry_error_callback: Callable[[RetryCallState], object] | None = None,
) -> AsyncRetrying:
    options: dict[str, object] = {
        "retry": retry,
        "wait": wait,
        "stop": stop,
        "reraise": reraise,
    }
    if sleep is not None:
        options["sleep"] = sleep
    if before_sleep is not None:
        options["before_sleep"] = before_sleep
    if retry_error_callback is not None:
        options["retry_error_callback"] = retry_error_callback
    return AsyncRetrying(**options)  # type: ignore[arg-type]
