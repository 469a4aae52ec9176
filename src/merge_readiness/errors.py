"""Shared error types for merge_readiness."""

from __future__ import annotations

from dataclasses import dataclass


class MergeReadinessError(Exception):
    """Base exception for the merge_readiness package."""


class TransientError(RuntimeError):
    """Generic retry-safe transient dependency failure."""


@dataclass(frozen=True)
class FetchError:
    """Collaborator failure captured as a value instead of an exception.

    Attributes:
        operation: Name of the collaborator call that failed.
        error_type: Exception class name raised by the collaborator.
        message: Exception message text.
    """

    operation: str
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, operation: str, exc: Exception) -> FetchError:
        """Build a fetch error from a caught collaborator exception."""
        return cls(
            operation=operation,
            error_type=exc.__class__.__name__,
            message=str(exc),
        )

    def describe(self) -> str:
        """Return a one-line description suitable for logs."""
        return f"{self.operation}: {self.error_type}: {self.message}"
