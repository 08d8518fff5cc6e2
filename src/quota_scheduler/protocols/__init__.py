# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Protocol definitions for pluggable scheduler components.

Available protocols:
- WorkOperation: Caller-supplied coroutine that processes one work item
- EventCallback: Listener for queue events
"""

from .events import EventCallback
from .operation import WorkOperation

__all__ = [
    "EventCallback",
    "WorkOperation",
]
