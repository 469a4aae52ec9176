from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from merge_readiness.errors import FetchError

T = TypeVar("T")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Value of a collaborator call, or the error that replaced it."""

    value: T | None = None
    error: FetchError | None = None

    def __post_init__(self) -> None:
        if self.error is not None and self.value is not None:
            raise ValueError("FetchResult cannot carry both value and error")

    def unwrap_or(self, default: T) -> T:
        """Return the fetched value, or ``default`` when the fetch failed."""
        if self.error is not None or self.value is None:
            return default
        return self.value

    @classmethod
    async def capture(
        cls, operation: str, fetch: Callable[[], Awaitable[T]]
    ) -> FetchResult[T]:
        """Await ``fetch`` and wrap any ``Exception`` it raises."""
        try:
            value = await fetch()
        except Exception as exc:
            return cls(error=FetchError.from_exception(operation, exc))
        return cls(value=value)
