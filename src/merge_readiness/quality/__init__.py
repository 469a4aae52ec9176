"""Quality gates over test, coverage, complexity and security metrics."""

from merge_readiness.quality.gate import (
    QualityGate,
    QualityGateConfig,
    RecommendedRules,
    RequiredRules,
    format_number,
)
from merge_readiness.quality.models import (
    CheckResults,
    CommentSeverity,
    QualityGateResult,
    QualityMetrics,
    RecommendedGate,
    RequiredGate,
    ReviewComment,
    SecurityIssues,
)

__all__ = [
    "CheckResults",
    "CommentSeverity",
    "QualityGate",
    "QualityGateConfig",
    "QualityGateResult",
    "QualityMetrics",
    "RecommendedGate",
    "RecommendedRules",
    "RequiredGate",
    "RequiredRules",
    "ReviewComment",
    "SecurityIssues",
    "format_number",
]
