import pytest

from merge_readiness.errors import FetchError
from merge_readiness.merge import FetchResult

pytestmark = pytest.mark.asyncio


async def test_capture_wraps_value() -> None:
    async def _fetch() -> int:
        return 3

    result = await FetchResult.capture("count", _fetch)

    assert result.value == 3
    assert result.unwrap_or(0) == 3


async def test_capture_converts_exception_to_fetch_error() -> None:
    async def _fetch() -> int:
        raise ConnectionError("api down")

    result = await FetchResult.capture("count", _fetch)

    assert result.value is None
    assert result.unwrap_or(0) == 0
    assert result.error == FetchError(
        operation="count", error_type="ConnectionError", message="api down"
    )
    assert result.error.describe() == "count: ConnectionError: api down"


async def test_value_and_error_are_exclusive() -> None:
    with pytest.raises(ValueError, match="cannot carry both"):
        FetchResult(value=1, error=FetchError("op", "E", "m"))
