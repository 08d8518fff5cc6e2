# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for caller-supplied work operations."""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..types.work_item import WorkItem

if TYPE_CHECKING:
    from ..cancellation import CancellationToken


@runtime_checkable
class WorkOperation(Protocol):
    """
    The unit of work a RequestQueue runs for each item.

    The queue knows nothing about the request or response shape. The
    operation is responsible for acquiring the rate limiter before any
    network call, running the request, and marking the resource key
    exhausted when the remote API reports a quota condition.
    ResourceScheduler.build_operation() produces one that does all three.
    """

    async def __call__(self, item: WorkItem, token: "CancellationToken") -> None:
        """
        Process one work item.

        Args:
            item: The item being processed (status is already PROCESSING)
            token: Cancellation token for the current run; long calls should
                check it and abort themselves

        Raises:
            Exception: Any failure; the queue classifies it to decide between
                pausing, requeueing and failing the item
        """
        ...
