"""
Prometheus metrics for the Storefront Gateway.
"""

from typing import Any, Dict, Optional, Sequence, Tuple

from prometheus_client import CollectorRegistry, Counter, Histogram, Info

VERSION = "1.0.0"

# name -> (type, help text, label names)
METRIC_DEFINITIONS: Dict[str, Tuple[type, str, Sequence[str]]] = {
    "http_requests_total": (Counter, "Inbound HTTP requests", ("method", "endpoint", "status_code")),
    "http_request_duration_seconds": (Histogram, "Inbound HTTP request latency", ("method", "endpoint")),
    "health_check_total": (Counter, "Health check results", ("status",)),
    "errors_total": (Counter, "Errors returned to storefront clients", ("error_type",)),
    "cache_lookups_total": (Counter, "Cache lookups by endpoint and result", ("endpoint", "result")),
    "upstream_requests_total": (Counter, "Upstream calls by service and outcome", ("service", "outcome")),
    "upstream_request_duration_seconds": (Histogram, "Upstream call latency", ("service",)),
    "exchange_rate_refresh_total": (Counter, "Exchange rate refresh attempts", ("status",)),
    "credentials_issued_total": (Counter, "Signed marketplace credentials issued", ("method",)),
}


class MetricsCollector:
    """Owns the gateway's metrics and the registry they are exported from.

    Each collector gets its own ``CollectorRegistry`` so several service
    instances can live in one process (tests create many).
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        info = Info("service", "Gateway build information", registry=self.registry)
        info.info({"service": service_name, "version": VERSION})

        for name, (metric_type, description, labels) in METRIC_DEFINITIONS.items():
            self._metrics[name] = metric_type(name, description, list(labels), registry=self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self.increment_counter("http_requests_total", method=method, endpoint=endpoint, status_code=str(status_code))
        self.observe_histogram("http_request_duration_seconds", duration, method=method, endpoint=endpoint)

    def record_health_check(self, status: str):
        self.increment_counter("health_check_total", status=status)

    def record_error(self, error_type: str):
        self.increment_counter("errors_total", error_type=error_type)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter; unknown names are ignored."""
        metric = self._metrics.get(metric_name)
        if metric is not None:
            metric.labels(**labels).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        metric = self._metrics.get(metric_name)
        if metric is not None:
            metric.labels(**labels).observe(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Create the metrics collector for a service instance."""
    return MetricsCollector(service_name, registry)
