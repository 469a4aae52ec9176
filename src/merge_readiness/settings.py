from __future__ import annotations

from typing import Literal

import httpx
from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from merge_readiness.circuit_breaker import CircuitBreakerConfig
from merge_readiness.github import GitHubPullRequestClient
from merge_readiness.github.constants import DEFAULT_API_URL
from merge_readiness.github.url import validate_repository
from merge_readiness.logging import get_log_level_value
from merge_readiness.polling import PollerConfig
from merge_readiness.quality import QualityGateConfig, RecommendedRules, RequiredRules

ENV_PREFIX = "MERGE_READINESS_"

MergeStrategy = Literal["merge", "squash", "rebase"]


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class EngineSettings(BaseSettings):
    """Environment-driven settings for the merge readiness engine."""

    model_config = prefixed_settings_config(ENV_PREFIX)

    breaker_failure_threshold: int = 3
    breaker_success_threshold: int = 2
    breaker_reset_timeout_seconds: float = 300.0
    breaker_failure_window_seconds: float = 600.0

    poller_initial_interval_seconds: float = 10.0
    poller_max_interval_seconds: float = 60.0
    poller_backoff_multiplier: float = 1.5
    poller_max_jitter_seconds: float = 1.0
    poller_max_polls: int = 60
    poller_fail_fast_on_terminal: bool = True

    quality_code_coverage: float | None = 80.0
    quality_new_lines_coverage: float | None = 90.0
    quality_max_complexity: float | None = 10.0
    quality_include_recommendations: bool = True

    github_token: str | None = None
    github_repository: str | None = None
    github_api_url: str = DEFAULT_API_URL
    github_retry_attempts: int = 3
    merge_strategy: MergeStrategy = "squash"
    delete_branch_on_merge: bool = True

    log_level: str = "INFO"

    @field_validator("merge_strategy", mode="before")
    @classmethod
    def _normalize_merge_strategy(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        get_log_level_value(value)
        return value.strip().upper()

    @field_validator("github_repository")
    @classmethod
    def _validate_repository(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return validate_repository(value)

    @field_validator(
        "quality_code_coverage",
        "quality_new_lines_coverage",
        mode="after",
    )
    @classmethod
    def _validate_percentage(
        cls, value: float | None, info: ValidationInfo
    ) -> float | None:
        if value is not None and not 0 <= value <= 100:
            raise ValueError(f"{info.field_name} must be between 0 and 100")
        return value

    @model_validator(mode="after")
    def _validate_engine_settings(self) -> EngineSettings:
        if self.breaker_failure_threshold < 1:
            raise ValueError("breaker_failure_threshold must be >= 1")
        if self.breaker_success_threshold < 1:
            raise ValueError("breaker_success_threshold must be >= 1")
        if self.breaker_reset_timeout_seconds < 0:
            raise ValueError("breaker_reset_timeout_seconds must be >= 0")
        if self.breaker_failure_window_seconds < 0:
            raise ValueError("breaker_failure_window_seconds must be >= 0")
        if self.poller_initial_interval_seconds < 0:
            raise ValueError("poller_initial_interval_seconds must be >= 0")
        if self.poller_max_interval_seconds < self.poller_initial_interval_seconds:
            raise ValueError(
                "poller_max_interval_seconds must be >= poller_initial_interval_seconds"
            )
        if self.poller_backoff_multiplier < 1:
            raise ValueError("poller_backoff_multiplier must be >= 1")
        if self.poller_max_jitter_seconds < 0:
            raise ValueError("poller_max_jitter_seconds must be >= 0")
        if self.poller_max_polls < 1:
            raise ValueError("poller_max_polls must be >= 1")
        if self.quality_max_complexity is not None and self.quality_max_complexity < 0:
            raise ValueError("quality_max_complexity must be >= 0")
        if self.github_retry_attempts < 1:
            raise ValueError("github_retry_attempts must be >= 1")
        return self

    def circuit_breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            failure_threshold=self.breaker_failure_threshold,
            success_threshold=self.breaker_success_threshold,
            reset_timeout=self.breaker_reset_timeout_seconds,
            failure_window=self.breaker_failure_window_seconds,
        )

    def poller_config(self) -> PollerConfig:
        return PollerConfig(
            initial_interval=self.poller_initial_interval_seconds,
            max_interval=self.poller_max_interval_seconds,
            backoff_multiplier=self.poller_backoff_multiplier,
            max_jitter=self.poller_max_jitter_seconds,
            max_polls=self.poller_max_polls,
            fail_fast_on_terminal=self.poller_fail_fast_on_terminal,
        )

    def quality_gate_config(self) -> QualityGateConfig:
        return QualityGateConfig(
            required=RequiredRules(code_coverage=self.quality_code_coverage),
            recommended=RecommendedRules(
                new_lines_coverage=self.quality_new_lines_coverage,
                max_complexity=self.quality_max_complexity,
            ),
            include_recommendations=self.quality_include_recommendations,
        )

    def pull_request_client(self, client: httpx.AsyncClient) -> GitHubPullRequestClient:
        """Build a GitHub client from the ``github_*`` settings."""
        if self.github_repository is None:
            raise ValueError("github_repository is required to build a GitHub client")
        return GitHubPullRequestClient(
            client=client,
            repository=self.github_repository,
            token=self.github_token,
            api_url=self.github_api_url,
            merge_strategy=self.merge_strategy,
            delete_branch_on_merge=self.delete_branch_on_merge,
            retry_attempts=self.github_retry_attempts,
        )
