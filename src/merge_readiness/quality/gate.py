"""Quality gate evaluation against configurable thresholds."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from merge_readiness.quality.models import (
    CheckResults,
    CommentSeverity,
    QualityGateResult,
    QualityMetrics,
    RecommendedGate,
    RequiredGate,
    ReviewComment,
)


def format_number(value: float) -> str:
    """Render a metric without a trailing ``.0`` for whole numbers."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _validate_percentage(name: str, value: float | None) -> None:
    if value is not None and not 0 <= value <= 100:
        raise ValueError(f"{name} must be between 0 and 100")


@dataclass(frozen=True)
class RequiredRules:
    """Required gate rules. ``False``/``None`` disables a rule."""

    tests_pass: bool = True
    build_pass: bool = True
    lint_pass: bool = True
    no_critical_security: bool = True
    no_critical_issues: bool = True
    code_coverage: float | None = 80.0

    def __post_init__(self) -> None:
        _validate_percentage("code_coverage", self.code_coverage)


@dataclass(frozen=True)
class RecommendedRules:
    """Recommended gate rules. ``False``/``None`` disables a rule."""

    no_major_issues: bool = True
    new_lines_coverage: float | None = 90.0
    max_complexity: float | None = 10.0
    no_style_violations: bool = True

    def __post_init__(self) -> None:
        _validate_percentage("new_lines_coverage", self.new_lines_coverage)
        if self.max_complexity is not None and self.max_complexity < 0:
            raise ValueError("max_complexity must be >= 0")


@dataclass(frozen=True)
class QualityGateConfig:
    """Quality gate configuration."""

    required: RequiredRules = field(default_factory=RequiredRules)
    recommended: RecommendedRules = field(default_factory=RecommendedRules)
    include_recommendations: bool = True


def _count_unresolved(
    comments: Sequence[ReviewComment], severity: CommentSeverity
) -> int:
    return sum(
        1 for comment in comments if comment.severity == severity and not comment.resolved
    )


class QualityGate:
    """Evaluate pull request metrics against required and recommended gates."""

    def __init__(self, config: QualityGateConfig | None = None) -> None:
        self.config = QualityGateConfig() if config is None else config

    def evaluate(
        self,
        metrics: QualityMetrics,
        checks: CheckResults,
        comments: Sequence[ReviewComment] = (),
    ) -> QualityGateResult:
        """Evaluate every configured gate.

        Failing required gates add a failure message and flip ``passed``;
        failing recommended gates only add a warning. Every evaluated gate is
        recorded in the result mappings whether it passed or not.
        """
        required: dict[RequiredGate, bool] = {}
        failures: list[str] = []
        self._evaluate_required(metrics, checks, comments, required, failures)

        recommended: dict[RecommendedGate, bool] = {}
        warnings: list[str] = []
        if self.config.include_recommendations:
            self._evaluate_recommended(metrics, comments, recommended, warnings)

        return QualityGateResult(
            passed=not failures,
            required_gates=required,
            recommended_gates=recommended,
            failures=tuple(failures),
            warnings=tuple(warnings),
        )

    def _evaluate_required(
        self,
        metrics: QualityMetrics,
        checks: CheckResults,
        comments: Sequence[ReviewComment],
        gates: dict[RequiredGate, bool],
        failures: list[str],
    ) -> None:
        rules = self.config.required

        if rules.tests_pass:
            gates[RequiredGate.TESTS_PASS] = checks.tests_passed
            if not checks.tests_passed:
                failures.append("Tests must pass")

        if rules.build_pass:
            gates[RequiredGate.BUILD_PASS] = checks.build_passed
            if not checks.build_passed:
                failures.append("Build must pass")

        if rules.lint_pass:
            gates[RequiredGate.LINT_PASS] = checks.lint_passed
            if not checks.lint_passed:
                failures.append("Lint must pass")

        if rules.no_critical_security:
            critical = metrics.security_issues.critical
            gates[RequiredGate.NO_CRITICAL_SECURITY] = critical == 0
            if critical:
                failures.append(f"Critical security issues found: {critical}")

        if rules.no_critical_issues:
            critical_comments = _count_unresolved(comments, CommentSeverity.CRITICAL)
            gates[RequiredGate.NO_CRITICAL_ISSUES] = critical_comments == 0
            if critical_comments:
                failures.append(f"Critical review issues found: {critical_comments}")

        if rules.code_coverage is not None:
            passed = metrics.code_coverage >= rules.code_coverage
            gates[RequiredGate.CODE_COVERAGE] = passed
            if not passed:
                failures.append(
                    f"Code coverage {format_number(metrics.code_coverage)}% is below "
                    f"required {format_number(rules.code_coverage)}%"
                )

    def _evaluate_recommended(
        self,
        metrics: QualityMetrics,
        comments: Sequence[ReviewComment],
        gates: dict[RecommendedGate, bool],
        warnings: list[str],
    ) -> None:
        rules = self.config.recommended

        if rules.no_major_issues:
            major_comments = _count_unresolved(comments, CommentSeverity.MAJOR)
            gates[RecommendedGate.NO_MAJOR_ISSUES] = major_comments == 0
            if major_comments:
                warnings.append(f"Major review issues found: {major_comments}")

        if rules.new_lines_coverage is not None:
            passed = metrics.new_lines_coverage >= rules.new_lines_coverage
            gates[RecommendedGate.NEW_LINES_COVERAGE] = passed
            if not passed:
                warnings.append(
                    f"New lines coverage {format_number(metrics.new_lines_coverage)}% "
                    f"is below recommended {format_number(rules.new_lines_coverage)}%"
                )

        if rules.max_complexity is not None:
            passed = metrics.complexity_score <= rules.max_complexity
            gates[RecommendedGate.MAX_COMPLEXITY] = passed
            if not passed:
                warnings.append(
                    f"Complexity score {format_number(metrics.complexity_score)} "
                    f"exceeds recommended max {format_number(rules.max_complexity)}"
                )

        if rules.no_style_violations:
            violations = metrics.style_violations
            gates[RecommendedGate.NO_STYLE_VIOLATIONS] = violations == 0
            if violations:
                warnings.append(f"Style violations found: {violations}")

    @staticmethod
    def summary(result: QualityGateResult) -> str:
        """Render a human-readable summary of an evaluation."""
        lines: list[str] = []
        if result.passed:
            lines.append("✅ All required quality gates passed")
        else:
            lines.append("❌ Quality gates failed")
            lines.append("")
            lines.append("**Failures:**")
            lines.extend(f"- {failure}" for failure in result.failures)

        if result.warnings:
            lines.append("")
            lines.append("**Warnings:**")
            lines.extend(f"- ⚠️ {warning}" for warning in result.warnings)

        return "\n".join(lines)
