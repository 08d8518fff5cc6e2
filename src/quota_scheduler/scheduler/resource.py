# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Per-resource scheduler wiring the limiter, retry executor and queue together.

A ResourceScheduler owns one resource key. It turns a plain request
function into a queue operation that paces every attempt through the
AccountRateLimiter, retries transient failures, and marks the key
exhausted when the remote API reports a quota condition. The queue then
pauses itself for the cooldown.

One limiter can be shared by schedulers of different keys; each key keeps
independent state inside it.
"""

import asyncio
import dataclasses
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any

from typing_extensions import Self

from ..cancellation import CancellationToken
from ..config import QueueConfig, RateLimiterConfig
from ..exceptions import ConfigurationError, QuotaExhaustedError
from ..limiting.account import AccountRateLimiter
from ..queue.request_queue import RequestQueue
from ..resilience.classification import is_quota_error
from ..resilience.retry import (
    DEFAULT_RETRY_POLICY,
    DEFAULT_RETRYABLE_ERRORS,
    RetryExecutor,
)
from ..types.events import PauseReason, QueueEvent
from ..types.progress import Progress, QueueState
from ..types.work_item import WorkItem

if TYPE_CHECKING:
    from ..observability.protocols import MetricsCollectorProtocol
    from ..protocols.events import EventCallback
    from ..protocols.operation import WorkOperation

logger = logging.getLogger(__name__)

RequestFunc = Callable[[WorkItem, CancellationToken], Awaitable[Any]]

# Quota signals must reach the queue instead of being retried in place.
REQUEST_RETRY_POLICY = dataclasses.replace(
    DEFAULT_RETRY_POLICY,
    retryable_errors=tuple(
        signature
        for signature in DEFAULT_RETRYABLE_ERRORS
        if signature != "resource_exhausted"
    ),
)


class ResourceScheduler:
    """
    Scheduler for one resource key.

    Example:
        >>> async def fetch_keywords(item, token):
        ...     await client.generate_keyword_ideas(customer_id, item.payload["seeds"])
        >>> scheduler = create_scheduler("3515012934")
        >>> scheduler.enqueue(WorkItem(subject_id="c1", subject_name="Python 101"))
        >>> await scheduler.run(fetch_keywords)
    """

    def __init__(
        self,
        resource_key: str,
        limiter: AccountRateLimiter | None = None,
        queue_config: QueueConfig | None = None,
        retry_executor: RetryExecutor | None = None,
        metrics_collector: "MetricsCollectorProtocol | None" = None,
    ):
        """
        Initialize the scheduler.

        Args:
            resource_key: Account or credential id this scheduler drives
            limiter: Rate limiter, possibly shared with other schedulers
            queue_config: Queue configuration; its resource_key is replaced
                by ``resource_key``
            retry_executor: Executor for per-request retries
            metrics_collector: Optional collector passed to owned components
        """
        self.resource_key = resource_key
        self.limiter = limiter or AccountRateLimiter(metrics_collector=metrics_collector)
        self.retry_executor = retry_executor or RetryExecutor(
            REQUEST_RETRY_POLICY, metrics_collector=metrics_collector
        )

        queue_config = queue_config or QueueConfig()
        if queue_config.resource_key != resource_key:
            queue_config = dataclasses.replace(queue_config, resource_key=resource_key)
        self.queue = RequestQueue(queue_config, metrics_collector=metrics_collector)

        self._run_task: asyncio.Task[None] | None = None

    def build_operation(self, request_func: RequestFunc) -> "WorkOperation":
        """
        Wrap ``request_func`` into a queue operation.

        Every attempt acquires the limiter first. A denied acquire raises
        QuotaExhaustedError carrying the remaining cooldown. A quota error
        from the request itself marks the key exhausted before propagating.
        """
        key = self.resource_key

        async def attempt(item: WorkItem, token: CancellationToken) -> Any:
            token.raise_if_cancelled()
            result = await self.limiter.acquire(key)
            if not result.allowed:
                raise QuotaExhaustedError(
                    f"Quota exhausted for {key}",
                    resource_key=key,
                    retry_after=result.retry_after,
                )
            return await request_func(item, token)

        async def operation(item: WorkItem, token: CancellationToken) -> None:
            try:
                await self.retry_executor.execute(
                    lambda: attempt(item, token),
                    token=token,
                    description=f"{item.kind} for {item.subject_name or item.subject_id}",
                )
            except Exception as e:
                if is_quota_error(e) and not self.limiter.is_exhausted(key):
                    retry_after = getattr(e, "retry_after", None)
                    self.limiter.mark_exhausted(
                        key,
                        cooldown_minutes=retry_after / 60 if retry_after else None,
                    )
                raise

        return operation

    async def run(self, request_func: RequestFunc) -> None:
        """Process the queue with ``request_func`` until it drains or is cancelled."""
        await self.queue.start(self.build_operation(request_func))

    def start(self, request_func: RequestFunc) -> "asyncio.Task[None]":
        """
        Run the queue in a background task.

        Returns:
            The task; calling start() again while it runs returns the same task
        """
        if self._run_task is not None and not self._run_task.done():
            return self._run_task
        self._run_task = asyncio.create_task(self.run(request_func))
        return self._run_task

    async def stop(self) -> None:
        """Cancel the queue and wait for a background run to finish."""
        if self.queue.is_processing:
            self.queue.cancel()
        if self._run_task is not None:
            await self._run_task
            self._run_task = None
        logger.info(f"Scheduler for {self.resource_key} stopped")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.stop()

    def enqueue(self, item: WorkItem) -> str:
        return self.queue.enqueue(item)

    def enqueue_all(self, items: Iterable[WorkItem]) -> list[str]:
        return self.queue.enqueue_all(items)

    def pause(self, reason: PauseReason = PauseReason.USER_PAUSED) -> None:
        self.queue.pause(reason)

    def resume(self) -> None:
        self.queue.resume()

    def cancel(self) -> None:
        self.queue.cancel()

    def get_progress(self) -> Progress:
        return self.queue.get_progress()

    def get_state(self) -> QueueState:
        return self.queue.get_state()

    def subscribe(self, callback: "EventCallback") -> Callable[[], None]:
        return self.queue.subscribe(callback)

    def events(self) -> AsyncIterator[QueueEvent]:
        return self.queue.events()


def create_scheduler(
    resource_key: str,
    limiter: AccountRateLimiter | None = None,
    limiter_config: RateLimiterConfig | None = None,
    queue_config: QueueConfig | None = None,
    metrics_collector: "MetricsCollectorProtocol | None" = None,
    **kwargs: Any,
) -> ResourceScheduler:
    """
    Factory function to create a ResourceScheduler.

    Args:
        resource_key: Account or credential id to schedule calls for
        limiter: Existing limiter to share; a new one is built from
            ``limiter_config`` when omitted
        limiter_config: Limits for a newly built limiter
        queue_config: Queue configuration
        metrics_collector: Optional metrics collector
        **kwargs: Additional arguments passed to ResourceScheduler

    Returns:
        Configured ResourceScheduler

    Raises:
        ConfigurationError: If resource_key is empty, or both ``limiter``
            and ``limiter_config`` are given
    """
    if not resource_key:
        raise ConfigurationError("resource_key must not be empty")
    if limiter is not None and limiter_config is not None:
        raise ConfigurationError("Pass either limiter or limiter_config, not both")

    if limiter is None:
        limiter = AccountRateLimiter(limiter_config, metrics_collector=metrics_collector)

    return ResourceScheduler(
        resource_key,
        limiter=limiter,
        queue_config=queue_config,
        metrics_collector=metrics_collector,
        **kwargs,
    )


__all__ = ["REQUEST_RETRY_POLICY", "ResourceScheduler", "create_scheduler"]
