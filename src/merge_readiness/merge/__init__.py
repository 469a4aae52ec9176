"""Merge readiness decisions, detailed reports and merge execution."""

from merge_readiness.merge.decision import (
    UNKNOWN_CONFLICTS,
    UNKNOWN_PR_INFO,
    MergeDecision,
    latest_reviews,
)
from merge_readiness.merge.fetch import FetchResult
from merge_readiness.merge.models import (
    CHANGES_REQUESTED,
    BlockingReview,
    DetailedReport,
    GateReport,
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
from merge_readiness.merge.report import build_detailed_report, render_markdown

__all__ = [
    "CHANGES_REQUESTED",
    "UNKNOWN_CONFLICTS",
    "UNKNOWN_PR_INFO",
    "BlockingReview",
    "DetailedReport",
    "FetchResult",
    "GateReport",
    "MergeConflictInfo",
    "MergeDecision",
    "MergeExecutor",
    "MergeOutcome",
    "MergeReadinessResult",
    "MergeableState",
    "PRInfo",
    "PRInfoProvider",
    "PRReview",
    "PullRequest",
    "SquashMergeMessage",
    "build_detailed_report",
    "latest_reviews",
    "render_markdown",
]
