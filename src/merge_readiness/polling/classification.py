"""Failure taxonomy for CI checks.

Pure string matching, usable without any network I/O.
"""

from __future__ import annotations

from collections.abc import Iterable

from merge_readiness.circuit_breaker import FailureKind
from merge_readiness.polling.models import CheckFailure, StatusCheck

# Matched against both the check name and the error message.
TERMINAL_PATTERNS = (
    "configuration",
    "config-validation",
    "config error",
    "config_error",
    "unauthorized",
    "forbidden",
    "invalid token",
    "permission denied",
    "access denied",
    "syntax error",
    "syntax-error",
    "syntax-check",
    "parse error",
    "parse-error",
    "invalid yaml",
    "invalid json",
    "missing required",
    "dependency not found",
    "module not found",
)

TRANSIENT_NAME_PATTERNS = (
    "test",
    "lint",
    "build",
    "compile",
    "type-check",
    "format",
    "coverage",
)

TRANSIENT_ERROR_PATTERNS = (
    "timeout",
    "rate limit",
    "network error",
    "connection refused",
    "temporary",
    "retry",
    "flaky",
)


def determine_failure_type(
    check_name: str, error_message: str | None = None
) -> FailureKind:
    """Classify a failure from its check name and optional error output."""
    name = check_name.lower()
    error = (error_message or "").lower()

    if any(pattern in name or pattern in error for pattern in TERMINAL_PATTERNS):
        return FailureKind.TERMINAL
    if any(pattern in name for pattern in TRANSIENT_NAME_PATTERNS):
        return FailureKind.TRANSIENT
    if any(pattern in error for pattern in TRANSIENT_ERROR_PATTERNS):
        return FailureKind.TRANSIENT
    return FailureKind.PERSISTENT


def classify_failure(
    check: StatusCheck, error_message: str | None = None
) -> CheckFailure:
    """Build a classified failure record for a failed check."""
    kind = determine_failure_type(check.name, error_message)
    return CheckFailure(
        name=check.name,
        kind=kind,
        recoverable=kind != FailureKind.TERMINAL,
        error_message=error_message,
    )


def most_severe(failures: Iterable[CheckFailure]) -> FailureKind | None:
    """Return the most severe failure kind, or ``None`` for no failures."""
    kinds = [failure.kind for failure in failures]
    if not kinds:
        return None
    return max(kinds, key=lambda kind: kind.severity)
