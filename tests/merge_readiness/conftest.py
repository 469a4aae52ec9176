from __future__ import annotations

import pytest

import merge_readiness.circuit_breaker.breaker as breaker_mod
from tests.merge_readiness.support.fakes import (
    FakeClock,
    FakeLogger,
    RecordingSleep,
)


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Provide an async sleep double that never waits."""
    return RecordingSleep()


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Freeze circuit breaker time at a settable instant."""
    clock = FakeClock()
    monkeypatch.setattr(breaker_mod, "_utcnow", clock.now)
    return clock
