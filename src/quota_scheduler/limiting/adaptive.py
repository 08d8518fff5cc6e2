# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Adaptive delay controller.

Holds the spacing the request queue enforces between work items: it grows
on every failure and shrinks slowly once a streak of successes builds up,
always staying within the configured bounds. It also keeps the trailing
window of request durations used for ETA estimates.

The controller only tunes pacing; pausing on quota exhaustion is the
request queue's job.
"""

import logging
from collections import deque

from ..config import AdaptiveDelayConfig

logger = logging.getLogger(__name__)


class AdaptiveDelayController:
    """
    Bounded delay tuned by reported outcomes.

    Example:
        >>> controller = AdaptiveDelayController()
        >>> controller.report_failure(is_quota_error=False)
        >>> controller.delay
        2.25
    """

    def __init__(self, config: AdaptiveDelayConfig | None = None):
        self.config = config or AdaptiveDelayConfig()
        self._delay = self.config.initial_delay
        self._durations: deque[float] = deque(maxlen=self.config.duration_window)
        self.consecutive_successes = 0
        self.consecutive_failures = 0

    @property
    def delay(self) -> float:
        """Current delay in seconds, always within [min_delay, max_delay]."""
        return self._delay

    @property
    def recent_durations(self) -> list[float]:
        return list(self._durations)

    @property
    def average_duration(self) -> float:
        """Mean of recent successful durations, or the configured default."""
        if not self._durations:
            return self.config.default_request_time
        return sum(self._durations) / len(self._durations)

    def report_success(self, duration: float) -> None:
        """
        Record a successful request.

        Args:
            duration: How long the request took, in seconds
        """
        self._durations.append(max(0.0, duration))
        self.consecutive_successes += 1
        self.consecutive_failures = 0

        if self.consecutive_successes >= self.config.success_streak_threshold:
            self._delay = self._clamp(self._delay * self.config.decrease_factor)
            logger.debug(
                f"Decreased delay to {self._delay:.3f}s after "
                f"{self.consecutive_successes} successes"
            )

    def report_failure(self, is_quota_error: bool = False) -> None:
        """
        Record a failed request.

        Args:
            is_quota_error: Whether the failure was a quota exhaustion
                (logged only; the increase is the same)
        """
        self.consecutive_failures += 1
        self.consecutive_successes = 0
        self._delay = self._clamp(self._delay * self.config.increase_factor)
        logger.debug(
            f"Increased delay to {self._delay:.3f}s after "
            f"{'quota ' if is_quota_error else ''}failure"
        )

    def estimate_remaining(self, pending: int) -> float:
        """
        Estimate seconds needed to drain ``pending`` items.

        Each pending item costs one average request plus one inter-item delay.
        """
        if pending <= 0:
            return 0.0
        return pending * self.average_duration + pending * self._delay

    def reset(self) -> None:
        """Restore the initial delay and forget all history."""
        self._delay = self.config.initial_delay
        self._durations.clear()
        self.consecutive_successes = 0
        self.consecutive_failures = 0

    def _clamp(self, value: float) -> float:
        return min(max(value, self.config.min_delay), self.config.max_delay)


__all__ = ["AdaptiveDelayController"]
