import pytest

from merge_readiness.quality import (
    CheckResults,
    CommentSeverity,
    QualityGate,
    QualityGateConfig,
    QualityMetrics,
    RecommendedGate,
    RecommendedRules,
    RequiredGate,
    RequiredRules,
    ReviewComment,
    SecurityIssues,
    format_number,
)

_GOOD_METRICS = QualityMetrics(
    code_coverage=92.0,
    new_lines_coverage=95.0,
    complexity_score=4.0,
    test_count=120,
)
_GREEN_CHECKS = CheckResults(
    ci_passed=True,
    tests_passed=True,
    lint_passed=True,
    build_passed=True,
)


def _comment(severity: CommentSeverity, *, resolved: bool = False) -> ReviewComment:
    return ReviewComment(
        file="src/app.py",
        line=10,
        comment="needs work",
        severity=severity,
        resolved=resolved,
    )


def test_all_gates_pass() -> None:
    result = QualityGate().evaluate(_GOOD_METRICS, _GREEN_CHECKS, [])

    assert result.passed
    assert result.failures == ()
    assert result.warnings == ()
    assert list(result.required_gates) == list(RequiredGate)
    assert all(result.required_gates.values())
    assert list(result.recommended_gates) == list(RecommendedGate)
    assert all(result.recommended_gates.values())


def test_failed_checks_produce_failures_in_gate_order() -> None:
    checks = CheckResults(
        ci_passed=False,
        tests_passed=False,
        lint_passed=False,
        build_passed=False,
    )

    result = QualityGate().evaluate(_GOOD_METRICS, checks, [])

    assert not result.passed
    assert result.failures == (
        "Tests must pass",
        "Build must pass",
        "Lint must pass",
    )
    assert result.required_gates[RequiredGate.TESTS_PASS] is False
    assert result.required_gates[RequiredGate.CODE_COVERAGE] is True


def test_security_review_and_coverage_failures() -> None:
    metrics = QualityMetrics(
        code_coverage=70.0,
        new_lines_coverage=95.0,
        complexity_score=4.0,
        security_issues=SecurityIssues(critical=2, high=1),
    )
    comments = [
        _comment(CommentSeverity.CRITICAL),
        _comment(CommentSeverity.CRITICAL, resolved=True),
    ]

    result = QualityGate().evaluate(metrics, _GREEN_CHECKS, comments)

    assert not result.passed
    assert result.failures == (
        "Critical security issues found: 2",
        "Critical review issues found: 1",
        "Code coverage 70% is below required 80%",
    )


def test_coverage_at_threshold_passes() -> None:
    metrics = QualityMetrics(
        code_coverage=80.0, new_lines_coverage=90.0, complexity_score=10.0
    )

    result = QualityGate().evaluate(metrics, _GREEN_CHECKS, [])

    assert result.passed
    assert result.warnings == ()


def test_recommended_gate_failures_only_warn() -> None:
    metrics = QualityMetrics(
        code_coverage=85.5,
        new_lines_coverage=72.5,
        complexity_score=14.0,
        style_violations=3,
    )
    comments = [_comment(CommentSeverity.MAJOR), _comment(CommentSeverity.MINOR)]

    result = QualityGate().evaluate(metrics, _GREEN_CHECKS, comments)

    assert result.passed
    assert result.failures == ()
    assert result.warnings == (
        "Major review issues found: 1",
        "New lines coverage 72.5% is below recommended 90%",
        "Complexity score 14 exceeds recommended max 10",
        "Style violations found: 3",
    )
    assert not any(result.recommended_gates.values())


def test_disabled_rules_are_not_evaluated() -> None:
    config = QualityGateConfig(
        required=RequiredRules(tests_pass=False, code_coverage=None),
        recommended=RecommendedRules(max_complexity=None),
    )
    checks = CheckResults(
        ci_passed=True, tests_passed=False, lint_passed=True, build_passed=True
    )
    metrics = QualityMetrics(
        code_coverage=10.0, new_lines_coverage=95.0, complexity_score=50.0
    )

    result = QualityGate(config).evaluate(metrics, checks, [])

    assert result.passed
    assert RequiredGate.TESTS_PASS not in result.required_gates
    assert RequiredGate.CODE_COVERAGE not in result.required_gates
    assert RecommendedGate.MAX_COMPLEXITY not in result.recommended_gates


def test_recommendations_can_be_skipped() -> None:
    metrics = QualityMetrics(
        code_coverage=90.0, new_lines_coverage=10.0, complexity_score=99.0
    )

    result = QualityGate(QualityGateConfig(include_recommendations=False)).evaluate(
        metrics, _GREEN_CHECKS, []
    )

    assert result.recommended_gates == {}
    assert result.warnings == ()


def test_result_gate_mappings_are_read_only() -> None:
    result = QualityGate().evaluate(_GOOD_METRICS, _GREEN_CHECKS, [])

    with pytest.raises(TypeError):
        result.required_gates[RequiredGate.TESTS_PASS] = False  # type: ignore[index]


def test_summary_for_passing_result() -> None:
    gate = QualityGate()

    summary = gate.summary(gate.evaluate(_GOOD_METRICS, _GREEN_CHECKS, []))

    assert summary == "✅ All required quality gates passed"


def test_summary_lists_failures_and_warnings() -> None:
    gate = QualityGate()
    metrics = QualityMetrics(
        code_coverage=50.0,
        new_lines_coverage=95.0,
        complexity_score=4.0,
        style_violations=2,
    )

    summary = gate.summary(gate.evaluate(metrics, _GREEN_CHECKS, []))

    assert summary.splitlines() == [
        "❌ Quality gates failed",
        "",
        "**Failures:**",
        "- Code coverage 50% is below required 80%",
        "",
        "**Warnings:**",
        "- ⚠️ Style violations found: 2",
    ]


@pytest.mark.parametrize(
    ("value", "expected"),
    [(80.0, "80"), (85.5, "85.5"), (0, "0"), (7, "7")],
)
def test_format_number_drops_trailing_zero(value: float, expected: str) -> None:
    assert format_number(value) == expected


def test_rule_thresholds_are_validated() -> None:
    with pytest.raises(ValueError, match="code_coverage must be between 0 and 100"):
        RequiredRules(code_coverage=120.0)
    with pytest.raises(ValueError, match="max_complexity must be >= 0"):
        RecommendedRules(max_complexity=-1.0)
