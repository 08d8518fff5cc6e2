# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Event types pushed by the request queue to its subscribers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class QueueEventType(Enum):
    """Kinds of events emitted by RequestQueue."""

    PROGRESS = "progress"
    REQUEST_START = "request_start"
    REQUEST_COMPLETE = "request_complete"
    REQUEST_ERROR = "request_error"
    PAUSED = "paused"
    RESUMED = "resumed"
    COMPLETED = "completed"
    QUOTA_EXHAUSTED = "quota_exhausted"


class PauseReason(Enum):
    """Why the queue is paused."""

    QUOTA_EXHAUSTED = "quota_exhausted"
    USER_PAUSED = "user_paused"
    ERROR = "error"


@dataclass(frozen=True)
class QueueEvent:
    """
    A single queue event.

    Attributes:
        type: What happened
        data: Event payload. A Progress snapshot for PROGRESS and COMPLETED,
            a WorkItem snapshot for the REQUEST_* events, and a dict with
            "reason" and "resume_at" keys for PAUSED, RESUMED and
            QUOTA_EXHAUSTED.
        timestamp: UTC timestamp when the event was emitted
    """

    type: QueueEventType
    data: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = ["PauseReason", "QueueEvent", "QueueEventType"]
