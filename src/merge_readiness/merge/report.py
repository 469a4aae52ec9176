"""Markdown quality gate report rendering.

Everything here is a pure function of its inputs so the same evaluation
always renders the same document.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from merge_readiness.merge.models import DetailedReport, GateReport
from merge_readiness.quality.gate import QualityGateConfig, format_number
from merge_readiness.quality.models import (
    CheckResults,
    QualityGateResult,
    QualityMetrics,
)

REPORT_HEADING = "## Quality Gate Report"
TABLE_HEADER = "| Gate | Threshold | Actual | Status |"
TABLE_SEPARATOR = "|------|-----------|--------|--------|"
REQUIRED_ACTIONS_HEADING = "### Required Actions"
RECOMMENDATIONS_HEADING = "### Recommendations"

_Row = tuple[GateReport, str]


def _status_row(name: str, passed: bool, action: str) -> _Row:
    gate = GateReport(
        gate=name,
        passed=passed,
        threshold="pass",
        actual="pass" if passed else "fail",
        unit="status",
        blocking=True,
    )
    return gate, action


def _blocking_rows(
    config: QualityGateConfig, metrics: QualityMetrics, checks: CheckResults
) -> list[_Row]:
    rules = config.required
    rows: list[_Row] = []
    if rules.tests_pass:
        rows.append(
            _status_row("Tests Pass", checks.tests_passed, "Fix failing tests before merge")
        )
    if rules.build_pass:
        rows.append(
            _status_row("Build Pass", checks.build_passed, "Fix build errors before merge")
        )
    if rules.lint_pass:
        rows.append(
            _status_row("Lint Pass", checks.lint_passed, "Fix linting errors before merge")
        )
    if rules.code_coverage is not None:
        required = format_number(rules.code_coverage)
        actual = format_number(metrics.code_coverage)
        rows.append(
            (
                GateReport(
                    gate="Code Coverage",
                    passed=metrics.code_coverage >= rules.code_coverage,
                    threshold=f"≥{required}",
                    actual=actual,
                    unit="percentage",
                    blocking=True,
                ),
                f"Increase test coverage to at least {required}% (current: {actual}%)",
            )
        )
    if rules.no_critical_security:
        critical = metrics.security_issues.critical
        rows.append(
            (
                GateReport(
                    gate="Security (Critical)",
                    passed=critical == 0,
                    threshold="0",
                    actual=str(critical),
                    unit="count",
                    blocking=True,
                ),
                f"Fix {critical} critical security issue(s)",
            )
        )
    return rows


def _advisory_rows(config: QualityGateConfig, metrics: QualityMetrics) -> list[_Row]:
    rules = config.recommended
    high = metrics.security_issues.high
    rows: list[_Row] = [
        (
            GateReport(
                gate="Security (High)",
                passed=high == 0,
                threshold="0",
                actual=str(high),
                unit="count",
                blocking=False,
            ),
            f"Consider fixing {high} high severity security issue(s)",
        )
    ]
    if rules.new_lines_coverage is not None:
        recommended = format_number(rules.new_lines_coverage)
        actual = format_number(metrics.new_lines_coverage)
        rows.append(
            (
                GateReport(
                    gate="New Lines Coverage",
                    passed=metrics.new_lines_coverage >= rules.new_lines_coverage,
                    threshold=f"≥{recommended}",
                    actual=actual,
                    unit="percentage",
                    blocking=False,
                ),
                "Consider improving test coverage for new code "
                f"(current: {actual}%, recommended: {recommended}%)",
            )
        )
    if rules.max_complexity is not None:
        maximum = format_number(rules.max_complexity)
        actual = format_number(metrics.complexity_score)
        rows.append(
            (
                GateReport(
                    gate="Complexity",
                    passed=metrics.complexity_score <= rules.max_complexity,
                    threshold=f"≤{maximum}",
                    actual=actual,
                    unit="number",
                    blocking=False,
                ),
                "Consider refactoring to reduce complexity "
                f"(current: {actual}, recommended: ≤{maximum})",
            )
        )
    if rules.no_style_violations:
        violations = metrics.style_violations
        rows.append(
            (
                GateReport(
                    gate="Style Violations",
                    passed=violations == 0,
                    threshold="0",
                    actual=str(violations),
                    unit="count",
                    blocking=False,
                ),
                f"Consider fixing {violations} style violation(s)",
            )
        )
    return rows


def _merge_unique(first: Iterable[str], second: Iterable[str]) -> tuple[str, ...]:
    merged: list[str] = []
    for item in (*first, *second):
        if item not in merged:
            merged.append(item)
    return tuple(merged)


def render_markdown(
    pr_number: int,
    gates: Sequence[GateReport],
    required_actions: Sequence[str],
    recommendations: Sequence[str],
) -> str:
    lines = [
        REPORT_HEADING,
        "",
        f"**PR #{pr_number}**",
        "",
        "### Gate Status",
        "",
        TABLE_HEADER,
        TABLE_SEPARATOR,
    ]
    lines.extend(
        f"| {gate.gate} | {gate.threshold} | {gate.actual} | {gate.status} |"
        for gate in gates
    )
    lines.append("")

    if required_actions:
        lines.extend([REQUIRED_ACTIONS_HEADING, ""])
        lines.extend(
            f"{index}. {action}" for index, action in enumerate(required_actions, 1)
        )
        lines.append("")

    if recommendations:
        lines.extend([RECOMMENDATIONS_HEADING, ""])
        lines.extend(f"- {recommendation}" for recommendation in recommendations)
        lines.append("")

    return "\n".join(lines)


def build_detailed_report(
    pr_number: int,
    quality_gate: QualityGateResult,
    metrics: QualityMetrics,
    checks: CheckResults,
    config: QualityGateConfig,
) -> DetailedReport:
    """Build the gate table, action lists and markdown for one pull request.

    Required actions are listed only when the quality gate failed; they
    combine the failed blocking rows with the gate's own failure messages.
    Recommendations combine failed advisory rows with the gate's warnings.
    """
    blocking = _blocking_rows(config, metrics, checks)
    advisory = _advisory_rows(config, metrics)

    required_actions: tuple[str, ...] = ()
    if not quality_gate.passed:
        required_actions = _merge_unique(
            (action for gate, action in blocking if not gate.passed),
            quality_gate.failures,
        )
    recommendations = _merge_unique(
        (advice for gate, advice in advisory if not gate.passed),
        quality_gate.warnings,
    )

    gates = tuple(gate for gate, _ in (*blocking, *advisory))
    return DetailedReport(
        passed=quality_gate.passed,
        pr_number=pr_number,
        gates=gates,
        required_actions=required_actions,
        recommendations=recommendations,
        markdown=render_markdown(pr_number, gates, required_actions, recommendations),
    )
