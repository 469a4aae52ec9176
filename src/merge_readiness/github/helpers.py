"""Helpers for mapping GitHub REST payloads onto merge_readiness models."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import cast

from merge_readiness.merge.models import PRReview
from merge_readiness.polling.models import CheckStatus, StatusCheck

_FAILED_CHECK_CONCLUSIONS = {"failure", "timed_out", "cancelled", "action_required"}
_PASSED_CHECK_CONCLUSIONS = {"success", "neutral"}


def summarize_github_error(payload: object) -> str:
    """Create a concise summary of a GitHub error payload."""
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return json.dumps(payload)


def parse_timestamp(value: object) -> datetime | None:
    """Parse a GitHub ISO-8601 timestamp into an aware datetime."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_head(pull: dict[str, object]) -> tuple[str | None, str | None]:
    """Return the head branch name and commit SHA of a ``pulls/{n}`` payload."""
    head = pull.get("head")
    if not isinstance(head, dict):
        return None, None
    ref = head.get("ref")
    sha = head.get("sha")
    return (
        ref if isinstance(ref, str) else None,
        sha if isinstance(sha, str) else None,
    )


def check_run_to_status_check(check_run: dict[str, object]) -> StatusCheck:
    """Map one ``check-runs`` entry to a ``StatusCheck``."""
    name = str(check_run.get("name") or "unknown")
    status = check_run.get("status")
    conclusion = check_run.get("conclusion")
    if status != "completed":
        check_status = (
            CheckStatus.RUNNING if status == "in_progress" else CheckStatus.PENDING
        )
        return StatusCheck(name=name, status=check_status)

    conclusion_text = conclusion if isinstance(conclusion, str) else None
    if conclusion_text in _FAILED_CHECK_CONCLUSIONS:
        check_status = CheckStatus.FAILED
    elif conclusion_text in _PASSED_CHECK_CONCLUSIONS:
        check_status = CheckStatus.PASSED
    elif conclusion_text == "skipped":
        check_status = CheckStatus.SKIPPED
    else:
        check_status = CheckStatus.PENDING
    return StatusCheck(name=name, status=check_status, conclusion=conclusion_text)


def parse_check_runs(payload: object) -> tuple[StatusCheck, ...]:
    """Map a ``check-runs`` list response to status checks."""
    if not isinstance(payload, dict):
        return ()
    check_runs = payload.get("check_runs")
    if not isinstance(check_runs, list):
        return ()
    return tuple(
        check_run_to_status_check(cast(dict[str, object], item))
        for item in check_runs
        if isinstance(item, dict)
    )


def parse_reviews(payload: object) -> tuple[PRReview, ...]:
    """Map a pull request reviews response to submitted reviews."""
    if not isinstance(payload, list):
        return ()
    reviews: list[PRReview] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        submitted_at = parse_timestamp(item.get("submitted_at"))
        if submitted_at is None:
            # pending reviews have not been submitted yet
            continue
        user = item.get("user")
        author = user.get("login") if isinstance(user, dict) else None
        reviews.append(
            PRReview(
                author=author if isinstance(author, str) else "ghost",
                state=str(item.get("state") or ""),
                body=str(item.get("body") or ""),
                submitted_at=submitted_at,
            )
        )
    return tuple(reviews)
