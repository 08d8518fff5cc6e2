# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Rate limit types for per-account pacing.

RateLimitState is the mutable per-key record kept by AccountRateLimiter;
AcquireResult is what acquire() hands back; RateLimitStatus is the
serializable view used by dashboards and debug endpoints.
"""

from dataclasses import dataclass

from pydantic import BaseModel, Field

QUOTA_EXHAUSTED_REASON = "quota_exhausted"


@dataclass
class RateLimitState:
    """
    Rate limit bookkeeping for one resource key.

    All instants are readings of the limiter's monotonic clock.

    Attributes:
        last_call_time: When the last call was allowed through (None before any)
        request_count: Calls allowed in the current window
        window_start: Start of the current window
        quota_exhausted: Whether the remote API reported quota exhaustion
        quota_reset_at: When the exhaustion cooldown ends
    """

    window_start: float
    last_call_time: float | None = None
    request_count: int = 0
    quota_exhausted: bool = False
    quota_reset_at: float | None = None

    def reset_window(self, now: float) -> None:
        self.window_start = now
        self.request_count = 0

    def clear_exhaustion(self) -> None:
        self.quota_exhausted = False
        self.quota_reset_at = None


@dataclass
class AcquireResult:
    """
    Outcome of AccountRateLimiter.acquire().

    Attributes:
        allowed: True when the caller may make its call now
        reason: Why the call was denied (only set when allowed is False)
        retry_after: Seconds until the denial lifts (only set on denial)
        request_count: Calls made in the current window, including this one
    """

    allowed: bool
    reason: str | None = None
    retry_after: float | None = None
    request_count: int = 0


class RateLimitStatus(BaseModel):
    """Point-in-time view of one resource key's rate limit state."""

    resource_key: str
    request_count: int = 0
    quota_exhausted: bool = False
    quota_reset_in: float | None = Field(
        default=None, description="Seconds until the quota cooldown ends"
    )
    window_remaining: float = Field(
        default=0.0, description="Seconds until the current window rolls over"
    )


__all__ = [
    "QUOTA_EXHAUSTED_REASON",
    "AcquireResult",
    "RateLimitState",
    "RateLimitStatus",
]
