# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability and metrics for the quota-aware scheduler.

Classes:
    UnifiedMetricsCollector: Unified metrics collector supporting dict and Prometheus.

Protocols:
    MetricsCollectorProtocol: Protocol for metrics collection backends.

Functions:
    get_metrics_collector: Get the global metrics collector singleton.
    reset_metrics_collector: Reset the global metrics collector singleton.

Constants:
    PROMETHEUS_AVAILABLE: Whether prometheus_client is available.
    All metric name constants from constants module.
"""

from .collector import (
    METRIC_DEFINITIONS,
    PROMETHEUS_AVAILABLE,
    MetricDefinition,
    UnifiedMetricsCollector,
    get_metrics_collector,
    reset_metrics_collector,
)
from .constants import (
    ADAPTIVE_DELAY_SECONDS,
    DURATION_BUCKETS,
    ITEM_DURATION_SECONDS,
    ITEMS_COMPLETED_TOTAL,
    ITEMS_ENQUEUED_TOTAL,
    ITEMS_FAILED_TOTAL,
    ITEMS_RETRIED_TOTAL,
    LIMITER_DENIALS_TOTAL,
    LIMITER_WAITS_TOTAL,
    METRIC_PREFIX,
    QUEUE_DEPTH,
    QUEUE_PAUSES_TOTAL,
    QUOTA_EXHAUSTIONS_TOTAL,
    RETRY_ATTEMPTS_TOTAL,
)
from .protocols import MetricsCollectorProtocol

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
    "METRIC_DEFINITIONS",
    "METRIC_PREFIX",
    "PROMETHEUS_AVAILABLE",
    "QUEUE_DEPTH",
    "QUEUE_PAUSES_TOTAL",
    "QUOTA_EXHAUSTIONS_TOTAL",
    "RETRY_ATTEMPTS_TOTAL",
    "MetricDefinition",
    "MetricsCollectorProtocol",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
