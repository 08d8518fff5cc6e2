# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Single-flight priority request queue.

RequestQueue runs one work item at a time against a caller-supplied
operation, highest priority first. Between items it sleeps the adaptive
delay. Failures are classified: a quota error pauses the whole queue and
puts the item back, other retryable errors requeue the item a bounded
number of times, and everything else fails the item while the rest of
the batch carries on.

Pausing blocks the loop on an asyncio.Event, so resume() (or the auto-resume
timer) wakes it directly. Cancellation is cooperative: a CancellationToken
is created for every run and handed to the operation.
"""

import asyncio
import bisect
import dataclasses
import logging
import time
from collections.abc import AsyncIterator, Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from ..cancellation import CancellationToken
from ..config import QueueConfig
from ..exceptions import DuplicateWorkItemError, QuotaExhaustedError
from ..limiting.adaptive import AdaptiveDelayController
from ..observability.collector import get_metrics_collector
from ..observability.constants import (
    ADAPTIVE_DELAY_SECONDS,
    ITEM_DURATION_SECONDS,
    ITEMS_COMPLETED_TOTAL,
    ITEMS_ENQUEUED_TOTAL,
    ITEMS_FAILED_TOTAL,
    ITEMS_RETRIED_TOTAL,
    QUEUE_DEPTH,
    QUEUE_PAUSES_TOTAL,
)
from ..resilience.classification import ErrorCategory, classify_error
from ..types.events import PauseReason, QueueEvent, QueueEventType
from ..types.progress import CurrentItem, Progress, QueuePhase, QueueState
from ..types.work_item import WorkItem, WorkItemStatus

if TYPE_CHECKING:
    from ..observability.protocols import MetricsCollectorProtocol
    from ..protocols.events import EventCallback
    from ..protocols.operation import WorkOperation

logger = logging.getLogger(__name__)


class RequestQueue:
    """
    Priority queue of work items processed one at a time.

    Example:
        >>> queue = RequestQueue(QueueConfig(resource_key="3515012934"))
        >>> queue.enqueue_all(
        ...     WorkItem(subject_id=c.id, subject_name=c.name, priority=c.priority)
        ...     for c in courses
        ... )
        >>> unsubscribe = queue.subscribe(render_event)
        >>> await queue.start(fetch_keywords)
    """

    def __init__(
        self,
        config: QueueConfig | None = None,
        metrics_collector: "MetricsCollectorProtocol | None" = None,
    ):
        """
        Initialize the queue.

        Args:
            config: Queue configuration (defaults to QueueConfig())
            metrics_collector: Optional collector; when None and
                config.metrics_enabled is set, the global collector is used
        """
        self.config = config or QueueConfig()
        if metrics_collector is None and self.config.metrics_enabled:
            metrics_collector = get_metrics_collector()
        self._metrics = metrics_collector
        self._labels = {"resource_key": self.config.resource_key}

        self._items: list[WorkItem] = []
        self._delay = AdaptiveDelayController(self.config.adaptive)

        self._subscribers: list["EventCallback"] = []
        self._channels: list[asyncio.Queue[QueueEvent]] = []

        self._is_processing = False
        self._cancelled = False
        self._token: CancellationToken | None = None
        self._current: WorkItem | None = None
        self._completed_count = 0
        self._failed_count = 0

        self._is_paused = False
        self._pause_reason: PauseReason | None = None
        self._paused_at: datetime | None = None
        self._resume_at: datetime | None = None
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self._resume_handle: asyncio.TimerHandle | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def is_paused(self) -> bool:
        return self._is_paused

    @property
    def delay_controller(self) -> AdaptiveDelayController:
        return self._delay

    @property
    def pending_count(self) -> int:
        return sum(1 for item in self._items if item.status is WorkItemStatus.PENDING)

    # ------------------------------------------------------------------
    # Enqueueing
    # ------------------------------------------------------------------

    def enqueue(self, item: WorkItem) -> str:
        """
        Add an item, keeping the queue in descending priority order.

        Items of equal priority keep their insertion order.

        Args:
            item: Item to schedule

        Returns:
            The item's id

        Raises:
            DuplicateWorkItemError: If an item with the same id is already queued
        """
        if any(existing.item_id == item.item_id for existing in self._items):
            raise DuplicateWorkItemError(item.item_id)

        bisect.insort(self._items, item, key=lambda queued: -queued.priority)
        self._count(ITEMS_ENQUEUED_TOTAL)
        logger.debug(
            f"Enqueued {item.item_id} ({item.subject_name or item.subject_id}) "
            f"with priority {item.priority}"
        )
        self._emit_progress()
        return item.item_id

    def enqueue_all(self, items: Iterable[WorkItem]) -> list[str]:
        """Add several items at once. Returns their ids in the given order."""
        return [self.enqueue(item) for item in items]

    def get_item(self, item_id: str) -> WorkItem | None:
        """Look up a queued item by id."""
        for item in self._items:
            if item.item_id == item_id:
                return item
        return None

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def start(self, operation: "WorkOperation") -> None:
        """
        Process pending items until none remain or the run is cancelled.

        Calling start() while a run is in progress is a no-op.

        Args:
            operation: Coroutine function called as ``operation(item, token)``
        """
        if self._is_processing:
            logger.info(f"Queue {self.config.resource_key} is already processing")
            return

        self._is_processing = True
        self._cancelled = False
        token = CancellationToken()
        self._token = token

        logger.info(
            f"Starting queue {self.config.resource_key} with "
            f"{self.pending_count} pending items"
        )
        self._emit_progress()

        try:
            await self._run(operation, token)
        finally:
            self._is_processing = False
            self._current = None
            self._clear_pause()
            self._emit(QueueEventType.COMPLETED, self.get_progress())
            logger.info(
                f"Queue {self.config.resource_key} finished. "
                f"Success: {self._completed_count}, Failed: {self._failed_count}"
            )

    async def _run(self, operation: "WorkOperation", token: CancellationToken) -> None:
        while not token.cancelled:
            while self._is_paused and not token.cancelled:
                logger.info(f"Queue {self.config.resource_key} paused, waiting for resume")
                await self._resume_event.wait()
            if token.cancelled:
                break

            item = self._next_pending()
            if item is None:
                break

            await self._process(item, operation, token)

            if self.pending_count and not token.cancelled:
                delay = self._delay.delay
                logger.debug(f"Waiting {delay:.2f}s before next request")
                await token.sleep(delay)

    def _next_pending(self) -> WorkItem | None:
        for item in self._items:
            if item.status is WorkItemStatus.PENDING:
                return item
        return None

    async def _process(
        self,
        item: WorkItem,
        operation: "WorkOperation",
        token: CancellationToken,
    ) -> None:
        item.status = WorkItemStatus.PROCESSING
        item.started_at = datetime.now(timezone.utc)
        self._current = item
        self._emit(QueueEventType.REQUEST_START, dataclasses.replace(item))
        self._emit_progress()

        started = time.monotonic()
        try:
            await operation(item, token)
        except asyncio.CancelledError:
            if item.status is WorkItemStatus.PROCESSING:
                item.status = WorkItemStatus.PENDING
            raise
        except Exception as e:
            self._handle_failure(item, e)
        else:
            self._handle_success(item, time.monotonic() - started)
        finally:
            self._current = None
            self._emit_progress()

    def _handle_success(self, item: WorkItem, duration: float) -> None:
        if item.status is WorkItemStatus.CANCELLED:
            logger.debug(f"{item.item_id} finished after cancellation, keeping cancelled")
            return

        item.status = WorkItemStatus.COMPLETED
        item.completed_at = datetime.now(timezone.utc)
        self._completed_count += 1
        self._delay.report_success(duration)

        self._count(ITEMS_COMPLETED_TOTAL)
        self._observe_delay()
        if self._metrics is not None:
            self._metrics.observe_histogram(
                ITEM_DURATION_SECONDS, duration, labels=self._labels
            )

        self._emit(QueueEventType.REQUEST_COMPLETE, dataclasses.replace(item))
        logger.info(
            f"Completed {item.subject_name or item.subject_id} in {duration:.2f}s"
        )

    def _handle_failure(self, item: WorkItem, error: Exception) -> None:
        if item.status is WorkItemStatus.CANCELLED:
            logger.debug(f"{item.item_id} failed after cancellation: {error}")
            return

        item.error = str(error) or type(error).__name__
        category = classify_error(error)

        if category is ErrorCategory.QUOTA_EXHAUSTED:
            self._handle_quota_error(item, error)
            return

        label = item.subject_name or item.subject_id
        if (
            self.config.retry_policy.is_retryable(error)
            and item.retry_count < self.config.retry_policy.max_retries
        ):
            item.retry_count += 1
            item.status = WorkItemStatus.PENDING
            self._delay.report_failure(is_quota_error=False)
            self._count(ITEMS_RETRIED_TOTAL, reason=category.value)
            self._observe_delay()
            logger.warning(
                f"Retrying {label} (attempt {item.retry_count + 1}) after: {item.error}"
            )
            return

        item.status = WorkItemStatus.FAILED
        item.completed_at = datetime.now(timezone.utc)
        self._failed_count += 1
        self._delay.report_failure(is_quota_error=False)
        self._count(ITEMS_FAILED_TOTAL, reason=category.value)
        self._observe_delay()
        self._emit(QueueEventType.REQUEST_ERROR, dataclasses.replace(item))
        logger.error(f"Failed {label}: {item.error}")

    def _handle_quota_error(self, item: WorkItem, error: Exception) -> None:
        """Put the item back and pause the whole queue for the cooldown."""
        item.status = WorkItemStatus.PENDING
        self._delay.report_failure(is_quota_error=True)
        self._observe_delay()

        cooldown = self.config.quota_cooldown
        if isinstance(error, QuotaExhaustedError) and error.retry_after is not None:
            cooldown = error.retry_after

        logger.warning(
            f"Quota exhausted for {self.config.resource_key}, "
            f"pausing for {cooldown:.0f}s"
        )
        self._emit(QueueEventType.REQUEST_ERROR, dataclasses.replace(item))
        self.pause(PauseReason.QUOTA_EXHAUSTED, auto_resume_after=cooldown)
        self._emit(
            QueueEventType.QUOTA_EXHAUSTED,
            {"reason": PauseReason.QUOTA_EXHAUSTED.value, "resume_at": self._resume_at},
        )

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def pause(
        self,
        reason: PauseReason = PauseReason.USER_PAUSED,
        auto_resume_after: float | None = None,
    ) -> None:
        """
        Pause processing after the current item.

        Ignored when the queue is not processing. A pause on top of an
        existing one is ignored too, except a quota pause: it takes over the
        reason and the auto-resume timer.

        Args:
            reason: Why the queue is paused
            auto_resume_after: Seconds after which the queue resumes by itself
        """
        if not self._is_processing:
            return
        if self._is_paused and reason is not PauseReason.QUOTA_EXHAUSTED:
            return

        now = datetime.now(timezone.utc)
        if not self._is_paused:
            self._paused_at = now
        self._is_paused = True
        self._pause_reason = reason
        self._resume_event.clear()

        if auto_resume_after is not None:
            self._resume_at = now + timedelta(seconds=auto_resume_after)
            self._schedule_auto_resume(auto_resume_after)

        self._count(QUEUE_PAUSES_TOTAL, reason=reason.value)
        logger.info(
            f"Paused queue {self.config.resource_key}: {reason.value}"
            + (
                f", will resume in {auto_resume_after:.0f}s"
                if auto_resume_after is not None
                else ""
            )
        )
        self._emit(
            QueueEventType.PAUSED,
            {"reason": reason.value, "resume_at": self._resume_at},
        )

    def resume(self) -> None:
        """Resume a paused queue. Ignored when not paused."""
        self._resume("user_resumed")

    def _resume(self, reason: str) -> None:
        if not self._is_paused:
            return

        self._clear_pause()
        logger.info(f"Resumed queue {self.config.resource_key} ({reason})")
        self._emit(QueueEventType.RESUMED, {"reason": reason, "resume_at": None})

    def _schedule_auto_resume(self, delay: float) -> None:
        self._cancel_auto_resume()
        loop = asyncio.get_running_loop()
        self._resume_handle = loop.call_later(delay, self._auto_resume)

    def _auto_resume(self) -> None:
        self._resume_handle = None
        logger.info("Auto-resuming after cooldown")
        self._resume("auto_resumed")

    def _cancel_auto_resume(self) -> None:
        if self._resume_handle is not None:
            self._resume_handle.cancel()
            self._resume_handle = None

    def _clear_pause(self) -> None:
        self._is_paused = False
        self._pause_reason = None
        self._paused_at = None
        self._resume_at = None
        self._cancel_auto_resume()
        self._resume_event.set()

    def cancel(self) -> None:
        """
        Cancel the current run and every unfinished item.

        Pending items and the item in flight are marked cancelled; an
        operation that completes after this point leaves its item cancelled.
        """
        if self._token is not None:
            self._token.cancel("queue cancelled")

        now = datetime.now(timezone.utc)
        for item in self._items:
            if item.status in (WorkItemStatus.PENDING, WorkItemStatus.PROCESSING):
                item.status = WorkItemStatus.CANCELLED
                item.completed_at = now

        self._cancelled = True
        self._clear_pause()
        logger.info(f"Cancelled queue {self.config.resource_key}")
        self._emit_progress()

    def clear(self) -> None:
        """Cancel everything, drop all items and reset counters and pacing."""
        self.cancel()
        self._items = []
        self._completed_count = 0
        self._failed_count = 0
        self._cancelled = False
        self._delay.reset()
        logger.info(f"Cleared queue {self.config.resource_key}")
        self._emit_progress()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def get_state(self) -> QueueState:
        """Full snapshot of the queue, with copies of every item."""
        return QueueState(
            is_paused=self._is_paused,
            pause_reason=self._pause_reason,
            paused_at=self._paused_at,
            resume_at=self._resume_at,
            total_requests=len(self._items),
            completed_requests=self._completed_count,
            failed_requests=self._failed_count,
            current_request=(
                dataclasses.replace(self._current) if self._current is not None else None
            ),
            average_request_time=self._delay.average_duration,
            estimated_time_remaining=self._delay.estimate_remaining(self.pending_count),
            adaptive_delay=self._delay.delay,
            consecutive_successes=self._delay.consecutive_successes,
            consecutive_failures=self._delay.consecutive_failures,
            queue=[dataclasses.replace(item) for item in self._items],
        )

    def get_progress(self) -> Progress:
        """Compact progress summary for display."""
        if self._cancelled:
            phase = QueuePhase.CANCELLED
        elif self._is_processing:
            phase = QueuePhase.PAUSED if self._is_paused else QueuePhase.PROCESSING
        elif self._completed_count or self._failed_count:
            phase = (
                QueuePhase.ERROR
                if self._failed_count and not self._completed_count
                else QueuePhase.COMPLETED
            )
        else:
            phase = QueuePhase.IDLE

        current = None
        if self._current is not None:
            current = CurrentItem(
                subject_id=self._current.subject_id,
                subject_name=self._current.subject_name,
                step=self.config.progress_step,
            )

        return Progress(
            phase=phase,
            current=current,
            completed=self._completed_count,
            total=len(self._items),
            failed=self._failed_count,
            estimated_time_remaining=self._delay.estimate_remaining(self.pending_count),
            is_paused=self._is_paused,
            pause_reason=self._pause_reason,
            resume_at=self._resume_at,
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, callback: "EventCallback") -> Callable[[], None]:
        """
        Register a listener for queue events.

        Returns:
            A function that removes the listener
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def events(self) -> AsyncIterator[QueueEvent]:
        """
        Stream queue events as an async iterator.

        The channel is registered immediately, so events emitted between
        this call and the first iteration are not lost. The iterator ends
        after the next COMPLETED event.

        Example:
            >>> stream = queue.events()
            >>> task = asyncio.create_task(queue.start(operation))
            >>> async for event in stream:
            ...     print(event.type.value)
        """
        channel: asyncio.Queue[QueueEvent] = asyncio.Queue()
        self._channels.append(channel)
        return self._drain(channel)

    async def _drain(self, channel: "asyncio.Queue[QueueEvent]") -> AsyncIterator[QueueEvent]:
        try:
            while True:
                event = await channel.get()
                yield event
                if event.type is QueueEventType.COMPLETED:
                    return
        finally:
            if channel in self._channels:
                self._channels.remove(channel)

    def _emit(self, event_type: QueueEventType, data: Any) -> None:
        event = QueueEvent(type=event_type, data=data)

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Queue event subscriber failed on {event_type.value}")

        for channel in self._channels:
            channel.put_nowait(event)

    def _emit_progress(self) -> None:
        if self._metrics is not None:
            self._metrics.set_gauge(QUEUE_DEPTH, self.pending_count, labels=self._labels)
        self._emit(QueueEventType.PROGRESS, self.get_progress())

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _count(self, name: str, reason: str | None = None) -> None:
        if self._metrics is None:
            return
        labels = dict(self._labels)
        if reason is not None:
            labels["reason"] = reason
        self._metrics.inc_counter(name, labels=labels)

    def _observe_delay(self) -> None:
        if self._metrics is not None:
            self._metrics.set_gauge(
                ADAPTIVE_DELAY_SECONDS, self._delay.delay, labels=self._labels
            )


__all__ = ["RequestQueue"]
