"""
Shared fixtures for benchmark tests.
"""

import pytest

from quota_scheduler.config import AdaptiveDelayConfig, QueueConfig, RateLimiterConfig
from quota_scheduler.limiting.account import AccountRateLimiter


@pytest.fixture
def benchmark_queue_config():
    """Queue configuration with no inter-item delay."""
    return QueueConfig(
        resource_key="benchmark",
        adaptive=AdaptiveDelayConfig(min_delay=0.0, max_delay=0.0, initial_delay=0.0),
    )


@pytest.fixture
def unpaced_limiter():
    """Limiter that never waits, so only bookkeeping is measured."""
    return AccountRateLimiter(
        RateLimiterConfig(min_interval=0.0, max_requests_per_window=1_000_000)
    )
