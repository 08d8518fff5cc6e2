# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Work item types for the request queue.

A work item is one unit of scheduled work: a single external call the
caller wants made on behalf of some subject (a course, a campaign, ...).
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class WorkItemStatus(Enum):
    """Lifecycle status of a work item.

    Transitions: PENDING -> PROCESSING -> {COMPLETED, FAILED, CANCELLED}.
    A retryable failure moves PROCESSING back to PENDING.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {WorkItemStatus.COMPLETED, WorkItemStatus.FAILED, WorkItemStatus.CANCELLED}
)


def _generate_item_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


@dataclass
class WorkItem:
    """
    One scheduled call and its processing history.

    Owned by the RequestQueue once enqueued; only the processing loop (and
    cancel()) mutates status, timestamps, error and retry_count.

    Attributes:
        subject_id: Identifier of what the call is for (e.g. a course id)
        subject_name: Human-readable name of the subject, used in progress
        kind: Kind of call to make (free-form, e.g. "fetch_keywords")
        priority: Scheduling priority (higher numbers run first)
        payload: Arbitrary data the operation needs to perform the call
        item_id: Unique identifier, generated when not supplied
        added_at: UTC timestamp when the item was created
        started_at: UTC timestamp of the most recent processing start
        completed_at: UTC timestamp when the item reached a terminal status
        status: Current lifecycle status
        error: Message of the last error seen, if any
        retry_count: Number of retryable failures consumed so far
    """

    subject_id: str
    subject_name: str = ""
    kind: str = "fetch_keywords"
    priority: int = 0
    payload: dict[str, Any] = field(default_factory=dict)
    item_id: str = field(default_factory=_generate_item_id)
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: datetime | None = None
    completed_at: datetime | None = None
    status: WorkItemStatus = WorkItemStatus.PENDING
    error: str | None = None
    retry_count: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def duration(self) -> float | None:
        """Seconds between the last start and completion, if both are known."""
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


__all__ = ["TERMINAL_STATUSES", "WorkItem", "WorkItemStatus"]
