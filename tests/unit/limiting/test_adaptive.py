"""
Unit tests for AdaptiveDelayController.
"""

import random

import pytest

from quota_scheduler.config import AdaptiveDelayConfig
from quota_scheduler.limiting.adaptive import AdaptiveDelayController


@pytest.fixture
def controller():
    return AdaptiveDelayController()


class TestInitialState:
    def test_defaults(self, controller):
        assert controller.delay == 1.5
        assert controller.consecutive_successes == 0
        assert controller.consecutive_failures == 0
        assert controller.recent_durations == []

    def test_average_falls_back_to_default(self, controller):
        assert controller.average_duration == 3.0


class TestReportFailure:
    def test_increases_delay(self, controller):
        controller.report_failure()
        assert controller.delay == pytest.approx(2.25)

    def test_resets_success_streak(self, controller):
        controller.report_success(1.0)
        controller.report_failure(is_quota_error=True)

        assert controller.consecutive_successes == 0
        assert controller.consecutive_failures == 1

    def test_failures_are_monotonic_and_clamp_at_max(self, controller):
        """Consecutive failures never decrease the delay and stop at the maximum."""
        delays = []
        for _ in range(10):
            controller.report_failure()
            delays.append(controller.delay)

        assert delays == sorted(delays)
        assert delays[-1] == 5.0
        assert max(delays) == 5.0


class TestReportSuccess:
    def test_no_decrease_before_streak(self, controller):
        controller.report_failure()
        for _ in range(4):
            controller.report_success(1.0)

        assert controller.delay == pytest.approx(2.25)

    def test_decreases_once_streak_reached(self, controller):
        controller.report_failure()
        for _ in range(5):
            controller.report_success(1.0)

        assert controller.delay == pytest.approx(2.25 * 0.95)

    def test_clamps_at_min(self, controller):
        for _ in range(50):
            controller.report_success(1.0)

        assert controller.delay == 1.5

    def test_duration_window_is_bounded(self):
        controller = AdaptiveDelayController(AdaptiveDelayConfig(duration_window=3))
        for duration in (1.0, 2.0, 3.0, 4.0):
            controller.report_success(duration)

        assert controller.recent_durations == [2.0, 3.0, 4.0]
        assert controller.average_duration == pytest.approx(3.0)


class TestBounds:
    def test_delay_always_within_bounds(self, controller):
        """Any mix of outcomes keeps the delay in [min_delay, max_delay]."""
        rng = random.Random(7)
        for _ in range(500):
            if rng.random() < 0.5:
                controller.report_success(rng.uniform(0.1, 5.0))
            else:
                controller.report_failure(is_quota_error=rng.random() < 0.1)
            assert 1.5 <= controller.delay <= 5.0


class TestEstimateAndReset:
    def test_estimate_remaining(self, controller):
        controller.report_success(2.0)
        assert controller.estimate_remaining(4) == pytest.approx(4 * 2.0 + 4 * 1.5)

    def test_estimate_with_nothing_pending(self, controller):
        assert controller.estimate_remaining(0) == 0.0

    def test_reset(self, controller):
        controller.report_failure()
        controller.report_success(1.0)

        controller.reset()

        assert controller.delay == 1.5
        assert controller.recent_durations == []
        assert controller.consecutive_successes == 0
        assert controller.consecutive_failures == 0
