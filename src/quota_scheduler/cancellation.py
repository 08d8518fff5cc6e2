# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Cooperative cancellation token.

A token is created per queue run and threaded into every suspension point
of the scheduler as well as into the caller-supplied operation, so that
long-running calls can observe cancellation and abort themselves.
Cancellation never interrupts a coroutine from outside; it is observed at
the points that check or wait on the token.
"""

import asyncio
import logging

from .exceptions import OperationCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    One-shot cancellation signal backed by an asyncio.Event.

    Example:
        >>> token = CancellationToken()
        >>> async def fetch(item, token):
        ...     for page in range(5):
        ...         token.raise_if_cancelled()
        ...         await fetch_page(item, page)
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation. Idempotent; the first reason wins."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.debug(f"Cancellation requested: {reason}")

    def raise_if_cancelled(self) -> None:
        """
        Raise OperationCancelledError if the token has been cancelled.

        Raises:
            OperationCancelledError: If cancel() was called
        """
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "cancelled")

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    async def sleep(self, delay: float) -> bool:
        """
        Sleep for up to ``delay`` seconds, waking early on cancellation.

        Args:
            delay: Seconds to sleep

        Returns:
            True if the full delay elapsed, False if cancellation cut it short
        """
        if self._event.is_set():
            return False
        if delay <= 0:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False


__all__ = ["CancellationToken"]
