# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Progress and state snapshots of the request queue.

Progress is the compact, serializable summary a UI or logger renders;
QueueState is the full internal snapshot returned by get_state().
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from .events import PauseReason
from .work_item import WorkItem


class QueuePhase(Enum):
    """Coarse phase of a queue run.

    - IDLE: nothing has been processed yet
    - PROCESSING: the loop is running
    - PAUSED: the loop is running but blocked until resumed
    - COMPLETED: the last run finished with at least one success
    - ERROR: the last run finished with failures only
    - CANCELLED: the last run was cancelled
    """

    IDLE = "idle"
    PROCESSING = "processing"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class CurrentItem(BaseModel):
    """The work item currently being processed, as shown to a user."""

    subject_id: str
    subject_name: str
    step: str


class Progress(BaseModel):
    """UI-facing summary of a queue run."""

    phase: QueuePhase = QueuePhase.IDLE
    current: CurrentItem | None = None
    completed: int = 0
    total: int = 0
    failed: int = 0
    estimated_time_remaining: float = 0.0
    is_paused: bool = False
    pause_reason: PauseReason | None = None
    resume_at: datetime | None = None


@dataclass
class QueueState:
    """Full snapshot of a RequestQueue's internal state.

    The items are copies; mutating them does not affect the queue.
    """

    is_paused: bool
    pause_reason: PauseReason | None
    paused_at: datetime | None
    resume_at: datetime | None
    total_requests: int
    completed_requests: int
    failed_requests: int
    current_request: WorkItem | None
    average_request_time: float
    estimated_time_remaining: float
    adaptive_delay: float
    consecutive_successes: int
    consecutive_failures: int
    queue: list[WorkItem] = field(default_factory=list)


def format_time_remaining(seconds: float) -> str:
    """
    Render a remaining duration the way progress displays show it.

    Examples:
        >>> format_time_remaining(3900)
        '1h 5m'
        >>> format_time_remaining(150)
        '2m 30s'
        >>> format_time_remaining(0)
        '0s'
    """
    if seconds <= 0:
        return "0s"

    total_seconds = int(seconds)
    minutes, secs = divmod(total_seconds, 60)
    hours, minutes = divmod(minutes, 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


__all__ = [
    "CurrentItem",
    "Progress",
    "QueuePhase",
    "QueueState",
    "format_time_remaining",
]
