# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Type definitions and constants."""

from .events import PauseReason, QueueEvent, QueueEventType
from .progress import (
    CurrentItem,
    Progress,
    QueuePhase,
    QueueState,
    format_time_remaining,
)
from .rate_limit import (
    QUOTA_EXHAUSTED_REASON,
    AcquireResult,
    RateLimitState,
    RateLimitStatus,
)
from .work_item import TERMINAL_STATUSES, WorkItem, WorkItemStatus

__all__ = [
    "QUOTA_EXHAUSTED_REASON",
    "TERMINAL_STATUSES",
    # Rate limit types
    "AcquireResult",
    # Progress types
    "CurrentItem",
    # Event types
    "PauseReason",
    "Progress",
    "QueueEvent",
    "QueueEventType",
    "QueuePhase",
    "QueueState",
    "RateLimitState",
    "RateLimitStatus",
    # Work items
    "WorkItem",
    "WorkItemStatus",
    "format_time_remaining",
]
