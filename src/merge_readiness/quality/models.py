"""Inputs and results of quality gate evaluation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType


class CommentSeverity(StrEnum):
    """Severity of a review comment."""

    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    SUGGESTION = "suggestion"


class RequiredGate(StrEnum):
    """Gates that must pass for a pull request to be mergeable.

    Declaration order is the evaluation and reporting order.
    """

    TESTS_PASS = "tests_pass"
    BUILD_PASS = "build_pass"
    LINT_PASS = "lint_pass"
    NO_CRITICAL_SECURITY = "no_critical_security"
    NO_CRITICAL_ISSUES = "no_critical_issues"
    CODE_COVERAGE = "code_coverage"


class RecommendedGate(StrEnum):
    """Gates that only produce warnings when they fail."""

    NO_MAJOR_ISSUES = "no_major_issues"
    NEW_LINES_COVERAGE = "new_lines_coverage"
    MAX_COMPLEXITY = "max_complexity"
    NO_STYLE_VIOLATIONS = "no_style_violations"


@dataclass(frozen=True)
class SecurityIssues:
    """Security findings counted by severity."""

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


@dataclass(frozen=True)
class QualityMetrics:
    """Code quality metrics for one pull request."""

    code_coverage: float
    new_lines_coverage: float
    complexity_score: float
    security_issues: SecurityIssues = field(default_factory=SecurityIssues)
    style_violations: int = 0
    test_count: int = 0


@dataclass(frozen=True)
class CheckResults:
    """Boolean outcomes of the pull request's CI checks."""

    ci_passed: bool
    tests_passed: bool
    lint_passed: bool
    build_passed: bool
    security_scan_passed: bool = True


@dataclass(frozen=True)
class ReviewComment:
    """One review finding attached to a file location."""

    file: str
    line: int
    comment: str
    severity: CommentSeverity
    resolved: bool = False
    suggested_fix: str | None = None


def _ordered(gates: Mapping[str, bool], order: type[StrEnum]) -> Mapping[str, bool]:
    return MappingProxyType({gate: gates[gate] for gate in order if gate in gates})


@dataclass(frozen=True)
class QualityGateResult:
    """Outcome of one quality gate evaluation.

    Attributes:
        passed: True when every evaluated required gate passed.
        required_gates: Required gate outcomes in ``RequiredGate`` order.
        recommended_gates: Recommended gate outcomes in ``RecommendedGate``
            order.
        failures: One message per failed required gate.
        warnings: One message per failed recommended gate.
    """

    passed: bool
    required_gates: Mapping[RequiredGate, bool] = field(default_factory=dict)
    recommended_gates: Mapping[RecommendedGate, bool] = field(default_factory=dict)
    failures: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Freeze gate mappings and message lists to keep results read-only."""
        object.__setattr__(
            self, "required_gates", _ordered(self.required_gates, RequiredGate)
        )
        object.__setattr__(
            self, "recommended_gates", _ordered(self.recommended_gates, RecommendedGate)
        )
        object.__setattr__(self, "failures", tuple(self.failures))
        object.__setattr__(self, "warnings", tuple(self.warnings))
