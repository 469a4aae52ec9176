"""Value objects exchanged between the poller and its status checker."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from merge_readiness.circuit_breaker import FailureKind

FAILED_CONCLUSIONS = frozenset({"failure", "timed_out"})
PASSED_CONCLUSIONS = frozenset({"success", "skipped", "neutral"})


class CheckStatus(StrEnum):
    """Status of one CI check."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class CIState(StrEnum):
    """Overall CI state for a pull request."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"


class PollFailureReason(StrEnum):
    """Reason a polling session ended without success."""

    MAX_POLLS_EXCEEDED = "max_polls_exceeded"
    TERMINAL_FAILURE = "terminal_failure"
    CIRCUIT_OPEN = "circuit_open"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class StatusCheck:
    """One named entry of a pull request's status-check rollup."""

    name: str
    status: CheckStatus
    conclusion: str | None = None

    def is_failed(self) -> bool:
        return self.status == CheckStatus.FAILED or self.conclusion in FAILED_CONCLUSIONS

    def is_passed(self) -> bool:
        if self.is_failed():
            return False
        return (
            self.status in (CheckStatus.PASSED, CheckStatus.SKIPPED)
            or self.conclusion in PASSED_CONCLUSIONS
        )


@dataclass(frozen=True)
class CheckFailure:
    """A failed check together with its failure classification."""

    name: str
    kind: FailureKind
    recoverable: bool
    error_message: str | None = None


@dataclass(frozen=True)
class CIStatus:
    """CI observation produced by one status-check call."""

    state: CIState
    checks: tuple[StatusCheck, ...] = ()
    failures: tuple[CheckFailure, ...] = ()

    def __post_init__(self) -> None:
        """Freeze sequences so observations stay read-only."""
        object.__setattr__(self, "checks", tuple(self.checks))
        object.__setattr__(self, "failures", tuple(self.failures))


@dataclass(frozen=True)
class PollResult:
    """Terminal value of one polling session.

    Attributes:
        success: True when CI reported success.
        poll_count: Number of status-check calls made.
        reason: Why polling stopped, when unsuccessful.
        failure_details: The terminal failure that stopped polling, if any.
        elapsed: Wall-clock seconds spent in the session.
    """

    success: bool
    poll_count: int
    reason: PollFailureReason | None = None
    failure_details: CheckFailure | None = None
    elapsed: float = 0.0


StatusChecker = Callable[[int], Awaitable[CIStatus]]
