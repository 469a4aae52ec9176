"""Pull request state and merge readiness value objects."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from merge_readiness.polling.models import StatusCheck
from merge_readiness.quality.models import QualityGateResult

CHANGES_REQUESTED = "CHANGES_REQUESTED"


class MergeableState(StrEnum):
    """Normalized GitHub ``mergeable_state`` values."""

    CLEAN = "clean"
    DIRTY = "dirty"
    BLOCKED = "blocked"
    BEHIND = "behind"
    UNKNOWN = "unknown"

    @classmethod
    def from_github(cls, value: str | None) -> MergeableState:
        """Map a raw GitHub merge state, case-insensitively."""
        normalized = (value or "").strip().upper()
        if normalized in {"DIRTY", "CONFLICTING"}:
            return cls.DIRTY
        try:
            return cls(normalized.lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class PullRequest:
    number: int
    title: str
    url: str = ""
    branch: str = ""
    base: str = "main"
    state: str = "open"


@dataclass(frozen=True)
class PRReview:
    author: str
    state: str
    body: str
    submitted_at: datetime

    def __post_init__(self) -> None:
        # Naive timestamps are UTC.
        if self.submitted_at.tzinfo is None:
            object.__setattr__(
                self, "submitted_at", self.submitted_at.replace(tzinfo=UTC)
            )


@dataclass(frozen=True)
class PRInfo:
    """Snapshot of the pull request fields needed for a merge decision."""

    mergeable: bool | None = None
    mergeable_state: str | None = None
    conflicting_files: tuple[str, ...] = ()
    reviews: tuple[PRReview, ...] = ()
    status_checks: tuple[StatusCheck, ...] = ()
    head_branch: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "conflicting_files", tuple(self.conflicting_files))
        object.__setattr__(self, "reviews", tuple(self.reviews))
        object.__setattr__(self, "status_checks", tuple(self.status_checks))


@dataclass(frozen=True)
class MergeConflictInfo:
    has_conflicts: bool
    conflicting_files: tuple[str, ...]
    mergeable: bool
    mergeable_state: MergeableState


@dataclass(frozen=True)
class BlockingReview:
    author: str
    state: str
    body: str
    submitted_at: datetime


@dataclass(frozen=True)
class GateReport:
    """One row of the detailed report's gate table."""

    gate: str
    passed: bool
    threshold: str
    actual: str
    unit: str
    blocking: bool

    @property
    def status(self) -> str:
        if self.passed:
            return "✅ PASSED"
        return "❌ FAILED" if self.blocking else "⚠️ WARNING"


@dataclass(frozen=True)
class DetailedReport:
    passed: bool
    pr_number: int
    gates: tuple[GateReport, ...]
    required_actions: tuple[str, ...]
    recommendations: tuple[str, ...]
    markdown: str


@dataclass(frozen=True)
class MergeReadinessResult:
    """Verdict of one merge readiness check.

    Attributes:
        can_merge: True only when quality gates and CI passed, no conflicts
            exist and no review blocks the merge.
        blocking_reasons: One fixed message per failing condition.
        detailed_report: Report rendered for this check, always present.
    """

    can_merge: bool
    quality_gates: QualityGateResult
    conflicts: MergeConflictInfo
    blocking_reviews: tuple[BlockingReview, ...]
    ci_passed: bool
    blocking_reasons: tuple[str, ...]
    detailed_report: DetailedReport


@dataclass(frozen=True)
class SquashMergeMessage:
    title: str
    body: str
    closes_issues: tuple[int, ...] = ()


@dataclass(frozen=True)
class MergeOutcome:
    success: bool
    merge_commit: str | None = None
    error: str | None = None


PRInfoProvider = Callable[[int], Awaitable[PRInfo]]
MergeExecutor = Callable[[int, SquashMergeMessage], Awaitable[MergeOutcome]]
