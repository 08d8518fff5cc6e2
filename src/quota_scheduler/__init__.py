# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Quota-Aware Scheduler - Paced, single-flight request scheduling for quota-limited APIs.

This library schedules calls to external APIs that enforce per-credential
rate limits and hard quota ceilings, keeping the caller inside those limits
instead of reacting after the fact.

Key Features:
    - Per-account rate limiting (minimum interval, rolling window cap)
    - Quota-exhaustion cooldowns that pause the whole queue and auto-resume
    - Priority queue processing one item at a time with an adaptive delay
    - Retry with exponential backoff and jitter, driven by error classification
    - Progress snapshots, event subscribers and an async event stream
    - Cooperative cancellation threaded into every suspension point

Quick Start:
    >>> from quota_scheduler import WorkItem, create_scheduler
    >>>
    >>> async def fetch_keywords(item, token):
    ...     await client.generate_keyword_ideas(customer_id, item.payload["seeds"])
    >>>
    >>> scheduler = create_scheduler("3515012934")
    >>> scheduler.enqueue_all(
    ...     WorkItem(subject_id=c.id, subject_name=c.name, priority=c.priority)
    ...     for c in courses
    ... )
    >>> async with scheduler:
    ...     await scheduler.run(fetch_keywords)

Main Exports:
    - ResourceScheduler, create_scheduler: One scheduler per resource key
    - RequestQueue: The single-flight priority queue
    - AccountRateLimiter, AdaptiveDelayController: Pacing components
    - RetryExecutor, RetryPolicy, with_retry: Retry execution
    - CancellationToken: Cooperative cancellation

Note: Prometheus export requires the 'metrics' extra. Install with:
    pip install quota-aware-scheduler[metrics]

Version: 1.0.0
"""

__version__ = "1.0.0"

from .cancellation import CancellationToken
from .config import AdaptiveDelayConfig, QueueConfig, RateLimiterConfig
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    DuplicateWorkItemError,
    OperationCancelledError,
    QuotaExhaustedError,
    RequestValidationError,
    SchedulerError,
    TransientError,
)
from .limiting import AccountRateLimiter, AdaptiveDelayController
from .observability import (
    PROMETHEUS_AVAILABLE,
    MetricsCollectorProtocol,
    UnifiedMetricsCollector,
    get_metrics_collector,
)
from .protocols import EventCallback, WorkOperation
from .queue import RequestQueue
from .resilience import (
    AUTH_RETRY_POLICY,
    DEFAULT_RETRY_POLICY,
    QUEUE_RETRY_POLICY,
    ErrorCategory,
    RetryExecutor,
    RetryPolicy,
    classify_error,
    is_quota_error,
    with_retry,
)
from .scheduler import ResourceScheduler, create_scheduler
from .types import (
    AcquireResult,
    CurrentItem,
    PauseReason,
    Progress,
    QueueEvent,
    QueueEventType,
    QueuePhase,
    QueueState,
    RateLimitState,
    RateLimitStatus,
    WorkItem,
    WorkItemStatus,
    format_time_remaining,
)

__all__ = [
    "AUTH_RETRY_POLICY",
    "DEFAULT_RETRY_POLICY",
    "PROMETHEUS_AVAILABLE",
    "QUEUE_RETRY_POLICY",
    # Limiting
    "AccountRateLimiter",
    "AcquireResult",
    "AdaptiveDelayConfig",
    "AdaptiveDelayController",
    # Exceptions
    "AuthenticationError",
    # Cancellation
    "CancellationToken",
    "ConfigurationError",
    "CurrentItem",
    "DuplicateWorkItemError",
    # Resilience
    "ErrorCategory",
    # Protocols
    "EventCallback",
    # Observability
    "MetricsCollectorProtocol",
    "OperationCancelledError",
    "PauseReason",
    "Progress",
    # Configuration
    "QueueConfig",
    "QueueEvent",
    "QueueEventType",
    "QueuePhase",
    "QueueState",
    "QuotaExhaustedError",
    "RateLimitState",
    "RateLimitStatus",
    "RateLimiterConfig",
    # Queue and scheduler
    "RequestQueue",
    "RequestValidationError",
    "ResourceScheduler",
    "RetryExecutor",
    "RetryPolicy",
    "SchedulerError",
    "TransientError",
    "UnifiedMetricsCollector",
    # Types
    "WorkItem",
    "WorkItemStatus",
    "WorkOperation",
    "__version__",
    "classify_error",
    "create_scheduler",
    "format_time_remaining",
    "get_metrics_collector",
    "is_quota_error",
    "with_retry",
]
