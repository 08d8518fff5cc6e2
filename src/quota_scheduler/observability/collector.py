# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Unified metrics collector supporting both dict-based and Prometheus metrics.

The dict-based store is always populated and backs get_metrics(); when
prometheus_client is installed (the ``metrics`` extra), every update is
mirrored to a Prometheus metric registered on first use.

Usage:
    >>> from quota_scheduler.observability.collector import get_metrics_collector
    >>> collector = get_metrics_collector()
    >>> collector.inc_counter('quota_scheduler_items_completed_total',
    ...                       labels={'resource_key': '3515012934'})
    >>> metrics = collector.get_metrics()

Thread Safety:
    All dict updates are guarded by an RLock, so a collector may be shared
    with threads serving a metrics endpoint.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

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
    QUEUE_DEPTH,
    QUEUE_PAUSES_TOTAL,
    QUOTA_EXHAUSTIONS_TOTAL,
    RETRY_ATTEMPTS_TOTAL,
)

logger = logging.getLogger(__name__)

try:
    from prometheus_client import (
        REGISTRY as _REGISTRY,
        Counter as _Counter,
        Gauge as _Gauge,
        Histogram as _Histogram,
        start_http_server as _start_http_server,
    )

    Counter: Any = _Counter
    Gauge: Any = _Gauge
    Histogram: Any = _Histogram
    REGISTRY: Any = _REGISTRY
    start_http_server: Callable[..., Any] | None = _start_http_server
    PROMETHEUS_AVAILABLE = True
except ImportError:
    Counter = None
    Gauge = None
    Histogram = None
    REGISTRY = None
    start_http_server = None
    PROMETHEUS_AVAILABLE = False


@dataclass
class MetricDefinition:
    """Schema for a metric: type, description, labels and histogram buckets."""

    name: str
    metric_type: str  # 'counter', 'gauge', 'histogram'
    description: str
    label_names: tuple[str, ...] = ()
    buckets: list[float] | None = None


METRIC_DEFINITIONS: dict[str, MetricDefinition] = {
    ITEMS_ENQUEUED_TOTAL: MetricDefinition(
        ITEMS_ENQUEUED_TOTAL, "counter", "Total work items enqueued", ("resource_key",)
    ),
    ITEMS_COMPLETED_TOTAL: MetricDefinition(
        ITEMS_COMPLETED_TOTAL,
        "counter",
        "Total work items completed successfully",
        ("resource_key",),
    ),
    ITEMS_FAILED_TOTAL: MetricDefinition(
        ITEMS_FAILED_TOTAL,
        "counter",
        "Total work items failed terminally",
        ("resource_key", "reason"),
    ),
    ITEMS_RETRIED_TOTAL: MetricDefinition(
        ITEMS_RETRIED_TOTAL,
        "counter",
        "Total work items returned to pending",
        ("resource_key", "reason"),
    ),
    QUEUE_PAUSES_TOTAL: MetricDefinition(
        QUEUE_PAUSES_TOTAL, "counter", "Total queue pauses", ("resource_key", "reason")
    ),
    QUEUE_DEPTH: MetricDefinition(
        QUEUE_DEPTH, "gauge", "Pending work items", ("resource_key",)
    ),
    ADAPTIVE_DELAY_SECONDS: MetricDefinition(
        ADAPTIVE_DELAY_SECONDS,
        "gauge",
        "Current delay between work items",
        ("resource_key",),
    ),
    ITEM_DURATION_SECONDS: MetricDefinition(
        ITEM_DURATION_SECONDS,
        "histogram",
        "Duration of successful work items",
        ("resource_key",),
        buckets=DURATION_BUCKETS,
    ),
    LIMITER_WAITS_TOTAL: MetricDefinition(
        LIMITER_WAITS_TOTAL,
        "counter",
        "Total acquire calls that slept before proceeding",
        ("resource_key", "reason"),
    ),
    LIMITER_DENIALS_TOTAL: MetricDefinition(
        LIMITER_DENIALS_TOTAL,
        "counter",
        "Total acquire calls denied during quota cooldown",
        ("resource_key",),
    ),
    QUOTA_EXHAUSTIONS_TOTAL: MetricDefinition(
        QUOTA_EXHAUSTIONS_TOTAL,
        "counter",
        "Total quota exhaustion markings",
        ("resource_key",),
    ),
    RETRY_ATTEMPTS_TOTAL: MetricDefinition(
        RETRY_ATTEMPTS_TOTAL,
        "counter",
        "Total retry attempts",
        ("reason",),
    ),
}

_PROMETHEUS_TYPES = {"counter": "Counter", "gauge": "Gauge", "histogram": "Histogram"}


class UnifiedMetricsCollector:
    """
    Metrics collector keeping dict-based metrics and optional Prometheus mirrors.

    Cardinality Protection:
        At most MAX_LABEL_COMBINATIONS unique label combinations are tracked
        per metric; further combinations are dropped with a warning.

    Example:
        >>> collector = UnifiedMetricsCollector(enable_prometheus=False)
        >>> collector.inc_counter('quota_scheduler_items_enqueued_total',
        ...                       labels={'resource_key': 'flexi'})
        >>> collector.get_metrics()["counters"]
        {'quota_scheduler_items_enqueued_total': {'resource_key=flexi': 1}}
    """

    MAX_LABEL_COMBINATIONS: ClassVar[int] = 1000
    MAX_HISTOGRAM_OBSERVATIONS: ClassVar[int] = 10000

    def __init__(
        self,
        enable_prometheus: bool = True,
        registry: Any | None = None,
    ) -> None:
        """
        Initialize the metrics collector.

        Args:
            enable_prometheus: Whether to mirror metrics to Prometheus (if available)
            registry: Optional Prometheus CollectorRegistry, mainly for tests
        """
        self._enable_prometheus = enable_prometheus and PROMETHEUS_AVAILABLE
        self._registry = registry if registry is not None else REGISTRY

        self._counters: dict[str, dict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )
        self._gauges: dict[str, dict[str, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        self._histograms: dict[str, dict[str, list[float]]] = defaultdict(
            lambda: defaultdict(list)
        )
        self._lock = threading.RLock()

        self._prom_metrics: dict[str, Any] = {}
        self._label_combinations: dict[str, set[str]] = defaultdict(set)
        self._server_running = False

        logger.debug(
            f"UnifiedMetricsCollector initialized "
            f"(prometheus={'enabled' if self._enable_prometheus else 'disabled'})"
        )

    def _labels_to_key(self, labels: dict[str, str] | None) -> str:
        if not labels:
            return ""
        return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))

    def _check_cardinality(self, name: str, label_key: str) -> bool:
        if label_key in self._label_combinations[name]:
            return True
        if len(self._label_combinations[name]) >= self.MAX_LABEL_COMBINATIONS:
            logger.warning(
                f"Cardinality limit ({self.MAX_LABEL_COMBINATIONS}) reached "
                f"for metric {name}. Dropping label combination: {label_key}"
            )
            return False
        self._label_combinations[name].add(label_key)
        return True

    def _get_or_create_prom_metric(
        self, name: str, metric_type: str, labels: dict[str, str] | None
    ) -> Any | None:
        """Get or lazily register the Prometheus mirror of a metric."""
        if not self._enable_prometheus:
            return None

        if name not in self._prom_metrics:
            defn = METRIC_DEFINITIONS.get(name)
            if defn is None:
                defn = MetricDefinition(
                    name,
                    metric_type,
                    f"Dynamic {metric_type}: {name}",
                    tuple(sorted(labels or {})),
                )
            factory = {"counter": Counter, "gauge": Gauge, "histogram": Histogram}[
                defn.metric_type
            ]
            kwargs: dict[str, Any] = {"registry": self._registry}
            if defn.metric_type == "histogram":
                kwargs["buckets"] = defn.buckets or DURATION_BUCKETS
            try:
                self._prom_metrics[name] = factory(
                    name, defn.description, list(defn.label_names), **kwargs
                )
            except Exception as e:
                logger.warning(
                    f"Failed to create Prometheus "
                    f"{_PROMETHEUS_TYPES[defn.metric_type]} {name}: {e}"
                )
                return None

        return self._prom_metrics.get(name)

    def _mirror(
        self,
        name: str,
        metric_type: str,
        method: str,
        value: float,
        labels: dict[str, str] | None,
    ) -> None:
        prom_metric = self._get_or_create_prom_metric(name, metric_type, labels)
        if prom_metric is None:
            return
        try:
            target = prom_metric.labels(**labels) if labels else prom_metric
            getattr(target, method)(value)
        except Exception as e:
            logger.debug(f"Prometheus {metric_type} update failed for {name}: {e}")

    def inc_counter(
        self,
        name: str,
        value: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        """
        Increment a counter metric.

        Raises:
            ValueError: If value is negative
        """
        if value < 0:
            raise ValueError("Counter increment must be non-negative")

        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._counters[name][label_key] += value

        self._mirror(name, "counter", "inc", value, labels)

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to a specific value."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._gauges[name][label_key] = value

        self._mirror(name, "gauge", "set", value, labels)

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Record an observation in a histogram."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            observations = self._histograms[name][label_key]
            observations.append(value)
            if len(observations) > self.MAX_HISTOGRAM_OBSERVATIONS:
                del observations[: len(observations) // 2]

        self._mirror(name, "histogram", "observe", value, labels)

    def get_metrics(self) -> dict[str, Any]:
        """Get a JSON-serializable snapshot of all metrics."""
        with self._lock:
            counters = {
                name: dict(label_values)
                for name, label_values in self._counters.items()
            }
            gauges = {
                name: dict(label_values) for name, label_values in self._gauges.items()
            }
            histograms: dict[str, dict[str, dict[str, Any]]] = {}
            for name, label_values in self._histograms.items():
                histograms[name] = {}
                for label_key, observations in label_values.items():
                    if observations:
                        histograms[name][label_key] = {
                            "count": len(observations),
                            "sum": sum(observations),
                            "avg": sum(observations) / len(observations),
                            "min": min(observations),
                            "max": max(observations),
                        }

        return {"counters": counters, "gauges": gauges, "histograms": histograms}

    def reset(self) -> None:
        """Reset all dict-based metrics. Prometheus mirrors are left registered."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._label_combinations.clear()

        logger.debug("Metrics collector reset")

    def start_http_server(self, host: str = "127.0.0.1", port: int = 9090) -> bool:
        """
        Start the Prometheus HTTP server for metrics scraping.

        Returns:
            True if the server is running afterwards, False otherwise
        """
        if not PROMETHEUS_AVAILABLE or start_http_server is None:
            logger.warning(
                "Cannot start Prometheus server: prometheus_client not installed"
            )
            return False

        if self._server_running:
            logger.warning("Prometheus server already running")
            return True

        try:
            start_http_server(port, addr=host, registry=self._registry)
            self._server_running = True
            logger.info(f"Prometheus metrics server started on {host}:{port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start Prometheus server: {e}")
            return False

    @property
    def prometheus_enabled(self) -> bool:
        return self._enable_prometheus

    @property
    def server_running(self) -> bool:
        return self._server_running


_global_collector: UnifiedMetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics_collector(enable_prometheus: bool = True) -> UnifiedMetricsCollector:
    """
    Get or create the global metrics collector singleton.

    Args:
        enable_prometheus: Whether to enable Prometheus metrics
            (only used on first call)
    """
    global _global_collector

    if _global_collector is None:
        with _collector_lock:
            if _global_collector is None:
                _global_collector = UnifiedMetricsCollector(
                    enable_prometheus=enable_prometheus
                )

    return _global_collector


def reset_metrics_collector() -> None:
    """Drop the global collector so the next call creates a fresh one (tests)."""
    global _global_collector
    with _collector_lock:
        if _global_collector:
            _global_collector.reset()
        _global_collector = None


__all__ = [
    "METRIC_DEFINITIONS",
    "PROMETHEUS_AVAILABLE",
    "MetricDefinition",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
