from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

from merge_readiness.polling.classification import classify_failure
from merge_readiness.polling.models import CIState, CIStatus, StatusCheck, StatusChecker


class StatusRollup(Protocol):
    """Anything carrying a pull request's status-check rollup."""

    @property
    def status_checks(self) -> Sequence[StatusCheck]:
        """Return the rollup entries."""


def build_ci_status(checks: Sequence[StatusCheck]) -> CIStatus:
    """Derive the overall CI state and classify failed checks.

    ``FAILURE`` if any check failed, ``SUCCESS`` if every check passed and
    there is at least one, otherwise ``PENDING``.
    """
    resolved = tuple(checks)
    failed = [check for check in resolved if check.is_failed()]
    if failed:
        state = CIState.FAILURE
    elif resolved and all(check.is_passed() for check in resolved):
        state = CIState.SUCCESS
    else:
        state = CIState.PENDING
    return CIStatus(
        state=state,
        checks=resolved,
        failures=tuple(classify_failure(check) for check in failed),
    )


def create_status_checker(
    get_pr_info: Callable[[int], Awaitable[StatusRollup]],
) -> StatusChecker:
    """Adapt a PR-info provider into a poller status checker."""

    async def _check(pr_number: int) -> CIStatus:
        rollup = await get_pr_info(pr_number)
        return build_ci_status(rollup.status_checks)

    return _check
