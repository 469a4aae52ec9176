from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import cast

import httpx
from tenacity import RetryCallState, retry_if_exception_type

from merge_readiness.errors import MergeReadinessError, TransientError
from merge_readiness.github.constants import (
    ACCEPT_HEADER,
    API_VERSION,
    AUTH_STATUSES,
    DEFAULT_API_URL,
    MERGE_REJECTED_STATUSES,
    MERGE_STRATEGIES,
    RETRY_STATUSES,
)
from merge_readiness.github.helpers import (
    parse_check_runs,
    parse_head,
    parse_reviews,
    summarize_github_error,
)
from merge_readiness.github.url import branch_ref_path, build_repository_url
from merge_readiness.logging import log_info, log_warning
from merge_readiness.merge.models import MergeOutcome, PRInfo, SquashMergeMessage
from merge_readiness.polling.models import StatusCheck
from merge_readiness.retry import RetryBackoffPolicy, build_exponential_jitter_retrying

_logger = logging.getLogger(__name__)


class GitHubRequestError(MergeReadinessError):
    """Base exception for GitHub REST request failures."""

    def __init__(
        self,
        message: str,
        http_status: int | None = None,
        response_body: str | None = None,
    ) -> None:
        """Initialize request-error metadata.

        Args:
            message: Human-readable error message.
            http_status: Optional HTTP status observed from GitHub.
            response_body: Optional response payload text.
        """
        super().__init__(message)
        self.http_status = http_status
        self.response_body = response_body


class GitHubAuthError(GitHubRequestError):
    """Raised when GitHub rejects the configured credentials."""


class GitHubTransientFailure(GitHubRequestError, TransientError):
    """Raised for retryable GitHub failures."""


class GitHubPullRequestClient:
    """Pull request client with bounded retries over the GitHub REST API.

    ``get_pr_info`` and ``merge`` match the ``PRInfoProvider`` and
    ``MergeExecutor`` collaborator signatures of ``MergeDecision``.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        repository: str,
        token: str | None = None,
        api_url: str = DEFAULT_API_URL,
        merge_strategy: str = "squash",
        delete_branch_on_merge: bool = True,
        retry_attempts: int = 3,
        retry_min_seconds: float = 1.0,
        retry_max_seconds: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Create a pull request client.

        Args:
            client: Shared async HTTP client.
            repository: Repository in ``owner/name`` form.
            token: Optional bearer token.
            api_url: GitHub REST API root.
            merge_strategy: One of ``merge``, ``squash`` or ``rebase``.
            delete_branch_on_merge: Delete the head branch after merging.
            retry_attempts: Max attempts per request.
            retry_min_seconds: Minimum retry backoff in seconds.
            retry_max_seconds: Maximum retry backoff in seconds.
            sleep: Optional async sleep used between retries.
        """
        if merge_strategy not in MERGE_STRATEGIES:
            choices = ", ".join(sorted(MERGE_STRATEGIES))
            raise ValueError(f"merge_strategy must be one of: {choices}")
        self._client = client
        self._base_url = build_repository_url(api_url, repository)
        self._merge_strategy = merge_strategy
        self._delete_branch_on_merge = delete_branch_on_merge
        self._retry_policy = RetryBackoffPolicy(
            attempts=retry_attempts,
            min_seconds=retry_min_seconds,
            max_seconds=retry_max_seconds,
        )
        self._sleep = sleep
        self._headers = {
            "Accept": ACCEPT_HEADER,
            "X-GitHub-Api-Version": API_VERSION,
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def get_pr_info(self, pr_number: int) -> PRInfo:
        """Fetch merge state, reviews and head check runs of a pull request."""
        pull = await self._get_pull(pr_number)
        reviews = await self._request(
            "GET", f"pulls/{pr_number}/reviews", params={"per_page": 100}
        )

        head_ref, head_sha = parse_head(pull)

        status_checks: tuple[StatusCheck, ...] = ()
        if head_sha:
            check_runs = await self._request(
                "GET", f"commits/{head_sha}/check-runs", params={"per_page": 100}
            )
            status_checks = parse_check_runs(self._parse_json(check_runs))

        mergeable = pull.get("mergeable")
        mergeable_state = pull.get("mergeable_state")
        return PRInfo(
            mergeable=mergeable if isinstance(mergeable, bool) else None,
            mergeable_state=mergeable_state if isinstance(mergeable_state, str) else None,
            reviews=parse_reviews(self._parse_json(reviews)),
            status_checks=status_checks,
            head_branch=head_ref,
        )

    async def merge(self, pr_number: int, message: SquashMergeMessage) -> MergeOutcome:
        """Merge a pull request with the configured strategy.

        GitHub refusing the merge (HTTP 405/409) is reported as a failed
        outcome. Other request failures raise after retries are exhausted.
        """
        head_branch: str | None = None
        if self._delete_branch_on_merge:
            head_branch, _ = parse_head(await self._get_pull(pr_number))

        response = await self._request(
            "PUT",
            f"pulls/{pr_number}/merge",
            json={
                "merge_method": self._merge_strategy,
                "commit_title": message.title,
                "commit_message": message.body,
            },
            accept_statuses=MERGE_REJECTED_STATUSES,
        )
        payload = self._parse_json_object(response)
        if response.status_code in MERGE_REJECTED_STATUSES or payload.get("merged") is False:
            error = summarize_github_error(payload)
            log_warning(
                _logger,
                "github.merge_rejected",
                pr_number=pr_number,
                http_status=response.status_code,
                error=error,
            )
            return MergeOutcome(success=False, error=error)

        sha = payload.get("sha")
        merge_commit = sha if isinstance(sha, str) else None
        log_info(
            _logger,
            "github.merged",
            pr_number=pr_number,
            merge_commit=merge_commit,
            strategy=self._merge_strategy,
        )
        if head_branch:
            await self._delete_branch(pr_number, head_branch)
        return MergeOutcome(success=True, merge_commit=merge_commit)

    async def _get_pull(self, pr_number: int) -> dict[str, object]:
        return self._parse_json_object(await self._request("GET", f"pulls/{pr_number}"))

    async def _delete_branch(self, pr_number: int, branch: str) -> None:
        try:
            await self._request("DELETE", branch_ref_path(branch))
        except GitHubRequestError as exc:
            log_warning(
                _logger,
                "github.branch_delete_failed",
                pr_number=pr_number,
                branch=branch,
                http_status=exc.http_status,
                error=str(exc),
            )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        accept_statuses: set[int] | frozenset[int] = frozenset(),
        **kwargs: object,
    ) -> httpx.Response:
        retrying = build_exponential_jitter_retrying(
            retry=retry_if_exception_type(GitHubTransientFailure),
            policy=self._retry_policy,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._request_once(
                    method, path, accept_statuses=accept_statuses, **kwargs
                )

        raise RuntimeError("GitHub retry loop exited unexpectedly.")

    async def _request_once(
        self,
        method: str,
        path: str,
        *,
        accept_statuses: set[int] | frozenset[int],
        **kwargs: object,
    ) -> httpx.Response:
        url = f"{self._base_url}/{path}"
        try:
            response = await self._client.request(
                method, url, headers=self._headers, **kwargs  # type: ignore[arg-type]
            )
        except httpx.RequestError as exc:
            raise GitHubTransientFailure(str(exc)) from exc

        status = response.status_code
        if status < 400 or status in accept_statuses:
            return response
        if status in RETRY_STATUSES:
            raise GitHubTransientFailure(
                f"GitHub {method} {path} transient failure (HTTP {status}).",
                http_status=status,
                response_body=response.text,
            )
        if status in AUTH_STATUSES:
            raise GitHubAuthError(
                f"GitHub {method} {path} auth failed (HTTP {status}).",
                http_status=status,
                response_body=response.text,
            )
        raise GitHubRequestError(
            f"GitHub {method} {path} returned HTTP {status}.",
            http_status=status,
            response_body=response.text,
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = None
        if retry_state.outcome is not None and retry_state.outcome.failed:
            error = str(retry_state.outcome.exception())
        log_warning(
            _logger,
            "github.retry",
            attempt=retry_state.attempt_number,
            error=error,
        )

    @staticmethod
    def _parse_json(response: httpx.Response) -> object:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubRequestError(
                "GitHub response is not valid JSON.",
                http_status=response.status_code,
                response_body=response.text,
            ) from exc

    @classmethod
    def _parse_json_object(cls, response: httpx.Response) -> dict[str, object]:
        payload = cls._parse_json(response)
        if not isinstance(payload, dict):
            raise GitHubRequestError(
                "GitHub response is not a JSON object.",
                http_status=response.status_code,
                response_body=response.text,
            )
        return cast(dict[str, object], payload)


__all__ = [
    "GitHubAuthError",
    "GitHubPullRequestClient",
    "GitHubRequestError",
    "GitHubTransientFailure",
]
