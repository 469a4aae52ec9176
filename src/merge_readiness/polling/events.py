"""Observability events published by the poller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from merge_readiness.polling.models import CheckFailure, CIState

BackoffReason = Literal["pending", "failure", "error"]


@dataclass(frozen=True)
class PollStarted:
    pr_number: int
    poll_count: int


@dataclass(frozen=True)
class PollCompleted:
    pr_number: int
    poll_count: int
    state: CIState


@dataclass(frozen=True)
class FailureClassified:
    pr_number: int
    failure: CheckFailure


@dataclass(frozen=True)
class BackoffScheduled:
    """The poller is about to sleep ``interval`` seconds before polling again."""

    pr_number: int
    poll_count: int
    interval: float
    reason: BackoffReason


@dataclass(frozen=True)
class TerminalFailureDetected:
    pr_number: int
    failure: CheckFailure


@dataclass(frozen=True)
class CircuitOpened:
    """Polling stopped because the circuit breaker denied the attempt."""

    pr_number: int
    failures: int
    retry_after: float


PollerEvent = (
    PollStarted
    | PollCompleted
    | FailureClassified
    | BackoffScheduled
    | TerminalFailureDetected
    | CircuitOpened
)
