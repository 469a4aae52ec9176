"""Merge readiness verdicts composed from quality, CI, conflict and review state."""

from __future__ import annotations

import asyncio
import logging
from functools import partial

from merge_readiness.logging import log_info, log_warning
from merge_readiness.merge.fetch import FetchResult
from merge_readiness.merge.models import (
    CHANGES_REQUESTED,
    BlockingReview,
    DetailedReport,
    MergeableState,
    MergeConflictInfo,
    MergeExecutor,
    MergeOutcome,
    MergeReadinessResult,
    PRInfo,
    PRInfoProvider,
    PRReview,
    PullRequest,
    SquashMergeMessage,
)
from merge_readiness.merge.report import build_detailed_report
from merge_readiness.quality.gate import QualityGateConfig
from merge_readiness.quality.models import (
    CheckResults,
    QualityGateResult,
    QualityMetrics,
)

_logger = logging.getLogger(__name__)

UNKNOWN_CONFLICTS = MergeConflictInfo(
    has_conflicts=False,
    conflicting_files=(),
    mergeable=False,
    mergeable_state=MergeableState.UNKNOWN,
)
UNKNOWN_PR_INFO = PRInfo(mergeable=False)


def latest_reviews(reviews: tuple[PRReview, ...]) -> tuple[PRReview, ...]:
    """Return the most recent review of each author, in first-seen order."""
    latest: dict[str, PRReview] = {}
    for review in reviews:
        current = latest.get(review.author)
        if current is None or review.submitted_at > current.submitted_at:
            latest[review.author] = review
    return tuple(latest.values())


class MergeDecision:
    """Decide whether a pull request may merge and execute the merge.

    Collaborator failures while fetching pull request state never escape:
    they are logged and replaced by conservative defaults (no conflicts but
    not mergeable, no blocking reviews).
    """

    def __init__(
        self,
        *,
        pr_info_provider: PRInfoProvider,
        merge_executor: MergeExecutor | None = None,
        quality_gate_config: QualityGateConfig | None = None,
    ) -> None:
        self._pr_info_provider = pr_info_provider
        self._merge_executor = merge_executor
        self.quality_gate_config = (
            QualityGateConfig() if quality_gate_config is None else quality_gate_config
        )

    async def _fetch_pr_info(self, pr_number: int, operation: str) -> PRInfo:
        result = await FetchResult.capture(
            operation, partial(self._pr_info_provider, pr_number)
        )
        if result.error is not None:
            log_warning(
                _logger,
                "merge.fetch_failed",
                pr_number=pr_number,
                operation=result.error.operation,
                error=result.error.describe(),
            )
        return result.unwrap_or(UNKNOWN_PR_INFO)

    async def check_merge_conflicts(self, pr_number: int) -> MergeConflictInfo:
        """Return conflict state, or ``UNKNOWN_CONFLICTS`` when it cannot be fetched."""
        info = await self._fetch_pr_info(pr_number, "check_merge_conflicts")
        state = MergeableState.from_github(info.mergeable_state)
        has_conflicts = state == MergeableState.DIRTY
        return MergeConflictInfo(
            has_conflicts=has_conflicts,
            conflicting_files=info.conflicting_files if has_conflicts else (),
            mergeable=info.mergeable is True,
            mergeable_state=state,
        )

    async def check_blocking_reviews(self, pr_number: int) -> tuple[BlockingReview, ...]:
        """Return reviews whose author's latest verdict requests changes."""
        info = await self._fetch_pr_info(pr_number, "check_blocking_reviews")
        return tuple(
            BlockingReview(
                author=review.author,
                state=review.state,
                body=review.body,
                submitted_at=review.submitted_at,
            )
            for review in latest_reviews(info.reviews)
            if review.state.upper() == CHANGES_REQUESTED
        )

    def generate_detailed_report(
        self,
        pr_number: int,
        quality_gate: QualityGateResult,
        metrics: QualityMetrics,
        checks: CheckResults,
    ) -> DetailedReport:
        return build_detailed_report(
            pr_number, quality_gate, metrics, checks, self.quality_gate_config
        )

    async def check_merge_readiness(
        self,
        pr_number: int,
        quality_gate: QualityGateResult,
        metrics: QualityMetrics,
        checks: CheckResults,
    ) -> MergeReadinessResult:
        """Fold quality, CI, conflict and review state into one verdict.

        Args:
            pr_number: Pull request being evaluated.
            quality_gate: Result of ``QualityGate.evaluate`` for this PR.
            metrics: Metrics the quality gate was evaluated with.
            checks: CI check outcomes.

        Returns:
            A ``MergeReadinessResult`` with a detailed report attached.
        """
        conflicts, blocking_reviews = await asyncio.gather(
            self.check_merge_conflicts(pr_number),
            self.check_blocking_reviews(pr_number),
        )
        ci_passed = checks.ci_passed

        blocking_reasons: list[str] = []
        if not quality_gate.passed:
            blocking_reasons.append("Quality gates failed")
        if not ci_passed:
            blocking_reasons.append("CI pipeline failed")
        if conflicts.has_conflicts:
            blocking_reasons.append("Merge conflicts present")
        if blocking_reviews:
            blocking_reasons.append(
                f"{len(blocking_reviews)} blocking review(s) pending"
            )

        can_merge = (
            quality_gate.passed
            and ci_passed
            and not conflicts.has_conflicts
            and not blocking_reviews
        )
        log_info(
            _logger,
            "merge.readiness_checked",
            pr_number=pr_number,
            can_merge=can_merge,
            blocking_reasons=blocking_reasons,
        )
        return MergeReadinessResult(
            can_merge=can_merge,
            quality_gates=quality_gate,
            conflicts=conflicts,
            blocking_reviews=blocking_reviews,
            ci_passed=ci_passed,
            blocking_reasons=tuple(blocking_reasons),
            detailed_report=self.generate_detailed_report(
                pr_number, quality_gate, metrics, checks
            ),
        )

    @staticmethod
    def generate_squash_message(
        pull_request: PullRequest,
        issue_number: int | None = None,
        summary: str | None = None,
    ) -> SquashMergeMessage:
        """Build the squash commit title and body for ``pull_request``."""
        body: list[str] = []
        if summary:
            body.extend([summary, ""])

        closes_issues: tuple[int, ...] = ()
        if issue_number is not None:
            body.append(f"Closes #{issue_number}")
            closes_issues = (issue_number,)

        return SquashMergeMessage(
            title=f"{pull_request.title} (#{pull_request.number})",
            body="\n".join(body),
            closes_issues=closes_issues,
        )

    async def execute_merge(
        self, pr_number: int, message: SquashMergeMessage
    ) -> MergeOutcome:
        """Merge through the configured executor, reporting failures as outcomes."""
        if self._merge_executor is None:
            return MergeOutcome(success=False, error="No merge executor configured")

        try:
            outcome = await self._merge_executor(pr_number, message)
        except Exception as exc:
            log_warning(
                _logger,
                "merge.execute_failed",
                pr_number=pr_number,
                error=f"{exc.__class__.__name__}: {exc}",
            )
            return MergeOutcome(success=False, error=str(exc) or exc.__class__.__name__)

        log_info(
            _logger,
            "merge.executed",
            pr_number=pr_number,
            success=outcome.success,
            merge_commit=outcome.merge_commit,
        )
        return outcome
