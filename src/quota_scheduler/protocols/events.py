# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for queue event subscribers."""

from typing import Protocol, runtime_checkable

from ..types.events import QueueEvent


@runtime_checkable
class EventCallback(Protocol):
    """
    Synchronous listener registered with RequestQueue.subscribe().

    Callbacks run inline on the processing loop, so they should be quick.
    Exceptions raised by a callback are logged and otherwise ignored.
    """

    def __call__(self, event: QueueEvent) -> None: ...
