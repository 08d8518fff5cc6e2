"""Shared fixtures for the quota scheduler test suite."""

import pytest

from quota_scheduler.observability.collector import (
    UnifiedMetricsCollector,
    reset_metrics_collector,
)


class FakeClock:
    """
    Deterministic monotonic clock.

    ``sleep`` advances time instead of waiting, so limiter and retry
    tests run instantly while still observing the requested delays.
    """

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)


@pytest.fixture
def fake_clock():
    """A FakeClock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def metrics():
    """Isolated dict-only metrics collector."""
    return UnifiedMetricsCollector(enable_prometheus=False)


@pytest.fixture(autouse=True)
def _reset_global_collector():
    yield
    reset_metrics_collector()
