# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Per-account rate limiter with quota-exhaustion cooldowns.

Each resource key (an account or credential id) gets its own
RateLimitState, created lazily on first use. acquire() enforces two limits
by sleeping: a minimum interval between calls and a cap on calls per
rolling window. A key marked quota-exhausted is denied immediately,
without sleeping, until its cooldown ends.

The limiter never infers exhaustion from HTTP semantics; the caller marks
a key exhausted when the remote API says so.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from ..config import RateLimiterConfig
from ..observability.constants import (
    LIMITER_DENIALS_TOTAL,
    LIMITER_WAITS_TOTAL,
    QUOTA_EXHAUSTIONS_TOTAL,
)
from ..types.rate_limit import (
    QUOTA_EXHAUSTED_REASON,
    AcquireResult,
    RateLimitState,
    RateLimitStatus,
)

if TYPE_CHECKING:
    from ..observability.protocols import MetricsCollectorProtocol

logger = logging.getLogger(__name__)


class AccountRateLimiter:
    """
    Sliding-window plus minimum-interval pacing per resource key.

    Calls for the same key are serialized by a per-key lock, so concurrent
    acquire() calls never both slip through the same gap. Independent keys
    never wait on each other.

    Example:
        >>> limiter = AccountRateLimiter()
        >>> result = await limiter.acquire("3515012934")
        >>> if not result.allowed:
        ...     raise QuotaExhaustedError(retry_after=result.retry_after)
    """

    def __init__(
        self,
        config: RateLimiterConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        metrics_collector: "MetricsCollectorProtocol | None" = None,
    ):
        """
        Initialize the limiter.

        Args:
            config: Pacing limits (defaults to RateLimiterConfig())
            clock: Monotonic clock returning seconds
            sleep: Coroutine used to wait (injectable for tests)
            metrics_collector: Optional collector for limiter metrics
        """
        self.config = config or RateLimiterConfig()
        self._clock = clock
        self._sleep = sleep
        self._metrics = metrics_collector
        self._states: dict[str, RateLimitState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_state(self, key: str) -> RateLimitState:
        state = self._states.get(key)
        if state is None:
            state = RateLimitState(window_start=self._clock())
            self._states[key] = state
        return state

    def _refresh(self, state: RateLimitState, now: float) -> None:
        """Apply lazy window rollover and cooldown expiry."""
        if now - state.window_start > self.config.window:
            state.reset_window(now)
        if (
            state.quota_exhausted
            and state.quota_reset_at is not None
            and now >= state.quota_reset_at
        ):
            state.clear_exhaustion()
            logger.info("Quota cooldown elapsed, calls allowed again")

    def _denial(self, key: str, state: RateLimitState) -> AcquireResult | None:
        """Refresh ``state`` and return a denial if ``key`` is quota-exhausted."""
        now = self._clock()
        self._refresh(state, now)
        if not state.quota_exhausted:
            return None

        retry_after = max(0.0, (state.quota_reset_at or now) - now)
        logger.debug(
            f"Denied call for {key}: quota exhausted, {retry_after:.1f}s until reset"
        )
        self._count(LIMITER_DENIALS_TOTAL, key)
        return AcquireResult(
            allowed=False,
            reason=QUOTA_EXHAUSTED_REASON,
            retry_after=retry_after,
            request_count=state.request_count,
        )

    async def acquire(self, key: str) -> AcquireResult:
        """
        Wait until a call for ``key`` is allowed, or deny it during a cooldown.

        Exhaustion is checked again after every wait, so a key marked
        exhausted while a caller sleeps is denied once the sleep ends.

        Args:
            key: Resource key (account or credential id)

        Returns:
            AcquireResult with allowed=True once pacing has been respected,
            or allowed=False with reason and retry_after while the key is
            quota-exhausted
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            state = self._get_state(key)
            denial = self._denial(key, state)
            if denial is not None:
                return denial

            if state.request_count >= self.config.max_requests_per_window:
                wait_time = max(
                    0.0, state.window_start + self.config.window - self._clock()
                )
                logger.info(
                    f"Window cap of {self.config.max_requests_per_window} reached "
                    f"for {key}, waiting {wait_time:.2f}s for the window to roll over"
                )
                self._count(LIMITER_WAITS_TOTAL, key, reason="window")
                await self._sleep(wait_time)
                denial = self._denial(key, state)
                if denial is not None:
                    return denial
                state.reset_window(self._clock())

            if state.last_call_time is not None:
                wait_time = self.config.min_interval - (
                    self._clock() - state.last_call_time
                )
                if wait_time > 0:
                    logger.debug(f"Rate limiting {key}: waiting {wait_time:.3f}s")
                    self._count(LIMITER_WAITS_TOTAL, key, reason="interval")
                    await self._sleep(wait_time)
                    denial = self._denial(key, state)
                    if denial is not None:
                        return denial

            state.last_call_time = self._clock()
            state.request_count += 1
            return AcquireResult(allowed=True, request_count=state.request_count)

    def mark_exhausted(
        self, key: str, cooldown_minutes: float | None = None
    ) -> datetime:
        """
        Mark ``key`` quota-exhausted for a cooldown period.

        Args:
            key: Resource key reported exhausted by the remote API
            cooldown_minutes: Cooldown length (config default when None)

        Returns:
            UTC datetime at which calls will be allowed again
        """
        if cooldown_minutes is None:
            cooldown_minutes = self.config.default_cooldown_minutes
        cooldown = max(0.0, cooldown_minutes * 60.0)

        state = self._get_state(key)
        state.quota_exhausted = True
        state.quota_reset_at = self._clock() + cooldown
        self._count(QUOTA_EXHAUSTIONS_TOTAL, key)

        logger.warning(
            f"Quota exhausted for {key}, calls blocked for {cooldown_minutes:g} minutes"
        )
        return datetime.now(timezone.utc) + timedelta(seconds=cooldown)

    def is_exhausted(self, key: str) -> bool:
        """Check whether ``key`` is currently inside a quota cooldown."""
        state = self._states.get(key)
        if state is None:
            return False
        self._refresh(state, self._clock())
        return state.quota_exhausted

    def get_status(self, key: str) -> RateLimitStatus:
        """Snapshot of the rate limit state for ``key``."""
        state = self._states.get(key)
        if state is None:
            return RateLimitStatus(resource_key=key, window_remaining=self.config.window)

        now = self._clock()
        self._refresh(state, now)
        quota_reset_in = (
            max(0.0, state.quota_reset_at - now)
            if state.quota_exhausted and state.quota_reset_at is not None
            else None
        )
        return RateLimitStatus(
            resource_key=key,
            request_count=state.request_count,
            quota_exhausted=state.quota_exhausted,
            quota_reset_in=quota_reset_in,
            window_remaining=max(0.0, self.config.window - (now - state.window_start)),
        )

    def get_all_statuses(self) -> list[RateLimitStatus]:
        """Snapshots for every key seen so far."""
        return [self.get_status(key) for key in list(self._states)]

    def reset(self, key: str) -> bool:
        """
        Forget all state for ``key``.

        Returns:
            True if the key had state, False otherwise
        """
        self._locks.pop(key, None)
        return self._states.pop(key, None) is not None

    def reset_all(self) -> int:
        """
        Forget all state for every key.

        Returns:
            Number of keys cleared
        """
        count = len(self._states)
        self._states.clear()
        self._locks.clear()
        logger.info(f"Reset rate limit state for {count} keys")
        return count

    def _count(self, name: str, key: str, reason: str | None = None) -> None:
        if self._metrics is None:
            return
        labels = {"resource_key": key}
        if reason is not None:
            labels["reason"] = reason
        self._metrics.inc_counter(name, labels=labels)


__all__ = ["AccountRateLimiter"]
