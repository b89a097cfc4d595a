"""
Shared metrics configuration for Userbase services.
"""

from typing import Dict, Any, List, Optional, Tuple, Type
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, Info, CollectorRegistry

# (type, name, documentation, label names)
MetricSpec = Tuple[Type, str, str, List[str]]

COMMON_METRICS: List[MetricSpec] = [
    (Counter, "http_requests_total", "Total HTTP requests", ["method", "endpoint", "status_code"]),
    (Histogram, "http_request_duration_seconds", "HTTP request duration in seconds", ["method", "endpoint"]),
    (Counter, "health_check_total", "Total health check requests", ["status"]),
    (Counter, "errors_total", "Total errors", ["error_type", "service"]),
]

USERS_METRICS: List[MetricSpec] = [
    (Counter, "cache_hits_total", "Total cache hits", ["cache_type"]),
    (Counter, "cache_misses_total", "Total cache misses", ["cache_type"]),
    (Counter, "cache_errors_total", "Total cache backend errors absorbed by the read path", ["cache_type", "operation"]),
    (Histogram, "store_operation_duration_seconds", "Relational store operation duration in seconds", ["operation"]),
]

SERVICE_METRICS: Dict[str, List[MetricSpec]] = {
    "users": USERS_METRICS,
}


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector owns its registry unless one is passed in, so several
    service instances can live in one process (tests, scripts).
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Register common metrics plus the service's own."""
        info = Info("service_info", "Service information", registry=self.registry)
        info.info({"service": self.service_name, "version": "1.0.0"})
        self._metrics["service_info"] = info

        for metric_type, name, documentation, labels in COMMON_METRICS + SERVICE_METRICS.get(self.service_name, []):
            self._metrics[name] = metric_type(name, documentation, labels, registry=self.registry)

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self.increment_counter("http_requests_total", method=method, endpoint=endpoint, status_code=str(status_code))
        self._metrics["http_request_duration_seconds"].labels(method=method, endpoint=endpoint).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self.increment_counter("health_check_total", status=status)

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        self.increment_counter("errors_total", error_type=error_type, service=service or self.service_name)

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Observe the duration of the enclosed block into a histogram."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            metric = self._metrics.get(operation_name)
            if metric is not None:
                metric.labels(**labels).observe(time.perf_counter() - start_time)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric; unknown names are ignored."""
        metric = self._metrics.get(metric_name)
        if metric is not None:
            metric.labels(**labels).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
