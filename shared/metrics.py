"""
Shared metrics configuration for the order ingestion service.
"""

from typing import Dict, Any, Optional
import time
import threading
from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest


PROCESSING_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1, 2, 5)


class MetricsCollector:
    """
    Metrics collector owning its own registry.

    Each collector registers into a private ``CollectorRegistry`` so several
    instances (one per test, one per process) never collide on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up the metrics for the service."""

        self._metrics["service_info"] = Info(
            "service",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Order processing
        self._metrics["orders_processed_total"] = Counter(
            "orders_processed_total",
            "Total number of processed orders",
            ["source", "status"],
            registry=self.registry
        )

        self._metrics["order_processing_seconds"] = Histogram(
            "order_processing_seconds",
            "Time spent processing orders",
            ["source", "operation"],
            buckets=PROCESSING_BUCKETS,
            registry=self.registry
        )

        self._metrics["dead_letter_messages_total"] = Counter(
            "dead_letter_messages_total",
            "Messages forwarded to the dead-letter topic",
            ["reason"],
            registry=self.registry
        )

        # Storage
        self._metrics["cache_operations_total"] = Counter(
            "cache_operations_total",
            "Total cache operations",
            ["type", "result"],
            registry=self.registry
        )

        self._metrics["db_operations_total"] = Counter(
            "db_operations_total",
            "Total database operations",
            ["operation", "status"],
            registry=self.registry
        )

    def sample(self, name: str, **labels) -> float:
        """Current value of a sample in this collector's registry (0 when absent)."""
        value = self.registry.get_sample_value(name, labels)
        return value if value is not None else 0.0

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_order_processed(self, source: str, status: str):
        self._metrics["orders_processed_total"].labels(source=source, status=status).inc()

    def record_dead_letter(self, reason: str):
        self._metrics["dead_letter_messages_total"].labels(reason=reason).inc()

    def record_cache_operation(self, operation: str, result: str):
        self._metrics["cache_operations_total"].labels(type=operation, result=result).inc()

    def record_db_operation(self, operation: str, status: str):
        self._metrics["db_operations_total"].labels(operation=operation, status=status).inc()

    @contextmanager
    def time_operation(self, source: str, operation: str):
        """Context manager timing an order-processing operation."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start_time
            self._metrics["order_processing_seconds"].labels(
                source=source,
                operation=operation
            ).observe(duration)
