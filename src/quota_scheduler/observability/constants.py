# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

All metric names use the `quota_scheduler_` prefix.

Naming Conventions:
    - Counter metrics end with `_total`
    - Histogram metrics for time end with `_seconds`
    - Gauges use present-tense descriptive names

Label Best Practices:
    To prevent label cardinality explosion, use only:
    - `resource_key` - Account or credential the scheduler drives
    - `reason` - Failure reason (enum: transient, quota_exhausted, auth, ...)

    NEVER use:
    - `item_id` - Unique per work item (unbounded!)
    - `subject_id` - Unique per subject (unbounded!)
"""


METRIC_PREFIX = "quota_scheduler"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Queue Metrics (queue/request_queue.py)
# =============================================================================

ITEMS_ENQUEUED_TOTAL = f"{METRIC_PREFIX}_items_enqueued_total"
"""Total work items added to a queue."""

ITEMS_COMPLETED_TOTAL = f"{METRIC_PREFIX}_items_completed_total"
"""Total work items completed successfully."""

ITEMS_FAILED_TOTAL = f"{METRIC_PREFIX}_items_failed_total"
"""Total work items that failed terminally."""

ITEMS_RETRIED_TOTAL = f"{METRIC_PREFIX}_items_retried_total"
"""Total times a work item was returned to pending after a failure."""

QUEUE_PAUSES_TOTAL = f"{METRIC_PREFIX}_queue_pauses_total"
"""Total queue pauses, labelled by reason."""

QUEUE_DEPTH = f"{METRIC_PREFIX}_queue_depth"
"""Current number of pending work items."""

ADAPTIVE_DELAY_SECONDS = f"{METRIC_PREFIX}_adaptive_delay_seconds"
"""Current adaptive delay between work items."""

ITEM_DURATION_SECONDS = f"{METRIC_PREFIX}_item_duration_seconds"
"""Duration of successful work items."""


# =============================================================================
# Rate Limiter Metrics (limiting/account.py)
# =============================================================================

LIMITER_WAITS_TOTAL = f"{METRIC_PREFIX}_limiter_waits_total"
"""Total acquire() calls that had to sleep before being allowed."""

LIMITER_DENIALS_TOTAL = f"{METRIC_PREFIX}_limiter_denials_total"
"""Total acquire() calls denied because of quota exhaustion."""

QUOTA_EXHAUSTIONS_TOTAL = f"{METRIC_PREFIX}_quota_exhaustions_total"
"""Total times a resource key was marked quota-exhausted."""


# =============================================================================
# Retry Metrics (resilience/retry.py)
# =============================================================================

RETRY_ATTEMPTS_TOTAL = f"{METRIC_PREFIX}_retry_attempts_total"
"""Total retry attempts performed by the retry executor."""


# =============================================================================
# Histogram Bucket Definitions
# =============================================================================

DURATION_BUCKETS = [0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0]
"""Histogram buckets for external call durations (seconds)."""


__all__ = [
    "ADAPTIVE_DELAY_SECONDS",
    "DURATION_BUCKETS",
    "ITEMS_COMPLETED_TOTAL",
    "ITEMS_ENQUEUED_TOTAL",
    "ITEMS_FAILED_TOTAL",
    "ITEMS_RETRIED_TOTAL",
    "ITEM_DURATION_SECONDS",
    "LIMITER_DENIALS_TOTAL",
    "LIMITER_WAITS_TOTAL",
    "METRIC_PREFIX",
    "QUEUE_DEPTH",
    "QUEUE_PAUSES_TOTAL",
    "QUOTA_EXHAUSTIONS_TOTAL",
    "RETRY_ATTEMPTS_TOTAL",
]
