# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Configuration for the quota-aware scheduler.

All durations are in seconds. Defaults are tuned for APIs that allow
roughly one call per second per credential and enforce a multi-minute
cooldown once their quota is exhausted.
"""

from dataclasses import dataclass, field

from .exceptions import ConfigurationError
from .resilience.retry import QUEUE_RETRY_POLICY, RetryPolicy


@dataclass
class AdaptiveDelayConfig:
    """
    Configuration for the adaptive delay between work items.
    """

    min_delay: float = 1.5
    """Lower bound for the delay between work items."""

    max_delay: float = 5.0
    """Upper bound for the delay between work items."""

    initial_delay: float = 1.5
    """Delay used before any outcome has been reported."""

    increase_factor: float = 1.5
    """Multiplier applied on every failure (> 1)."""

    decrease_factor: float = 0.95
    """Multiplier applied once a success streak is reached (< 1)."""

    success_streak_threshold: int = 5
    """Consecutive successes required before the delay starts shrinking."""

    duration_window: int = 20
    """Number of recent request durations kept for the ETA estimate."""

    default_request_time: float = 3.0
    """Assumed request duration before any request has completed."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.min_delay < 0:
            raise ConfigurationError("min_delay must be non-negative")
        if self.max_delay < self.min_delay:
            raise ConfigurationError("max_delay must be >= min_delay")
        if not self.min_delay <= self.initial_delay <= self.max_delay:
            raise ConfigurationError(
                "initial_delay must be between min_delay and max_delay"
            )
        if self.increase_factor <= 1.0:
            raise ConfigurationError("increase_factor must be greater than 1.0")
        if not 0 < self.decrease_factor < 1.0:
            raise ConfigurationError("decrease_factor must be between 0 and 1.0")
        if self.success_streak_threshold < 1:
            raise ConfigurationError("success_streak_threshold must be at least 1")
        if self.duration_window < 1:
            raise ConfigurationError("duration_window must be at least 1")
        if self.default_request_time < 0:
            raise ConfigurationError("default_request_time must be non-negative")


@dataclass
class RateLimiterConfig:
    """
    Configuration for per-account rate limiting.
    """

    min_interval: float = 1.1
    """Minimum spacing between two calls for the same key."""

    window: float = 60.0
    """Length of the rolling request-count window."""

    max_requests_per_window: int = 60
    """Maximum calls per key within one window."""

    default_cooldown_minutes: float = 5.0
    """Cooldown applied by mark_exhausted() when none is given."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.min_interval < 0:
            raise ConfigurationError("min_interval must be non-negative")
        if self.window <= 0:
            raise ConfigurationError("window must be positive")
        if self.max_requests_per_window < 1:
            raise ConfigurationError("max_requests_per_window must be at least 1")
        if self.default_cooldown_minutes < 0:
            raise ConfigurationError("default_cooldown_minutes must be non-negative")


@dataclass
class QueueConfig:
    """
    Configuration for a RequestQueue.
    """

    resource_key: str = "default"
    """Resource key the queue drives; used for metric labels and logs."""

    quota_cooldown: float = 300.0
    """Pause length after a quota error that carries no retry_after."""

    retry_policy: RetryPolicy = QUEUE_RETRY_POLICY
    """Decides which item failures are requeued and how many times."""

    progress_step: str = "Fetching keywords..."
    """Step label reported for the current item in Progress."""

    metrics_enabled: bool = False
    """Record metrics on the global collector when no collector is given."""

    adaptive: AdaptiveDelayConfig = field(default_factory=AdaptiveDelayConfig)
    """Adaptive delay tuning."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.resource_key:
            raise ConfigurationError("resource_key must not be empty")
        if self.quota_cooldown < 0:
            raise ConfigurationError("quota_cooldown must be non-negative")


__all__ = [
    "AdaptiveDelayConfig",
    "QueueConfig",
    "RateLimiterConfig",
]
