"""
Shared metrics configuration for the workspace access layer.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
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

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "workspaces":
            self._setup_workspaces_metrics()

    def _setup_workspaces_metrics(self):
        """Set up query cache and mutation metrics."""
        self._metrics["query_fetches_total"] = Counter(
            "query_fetches_total",
            "Total named query fetches",
            ["query", "result"],
            registry=self.registry
        )

        self._metrics["query_fetch_duration_seconds"] = Histogram(
            "query_fetch_duration_seconds",
            "Named query fetch duration in seconds",
            ["query"],
            registry=self.registry
        )

        self._metrics["query_coalesced_total"] = Counter(
            "query_coalesced_total",
            "Subscriptions attached to an in-flight fetch",
            ["query"],
            registry=self.registry
        )

        self._metrics["query_invalidations_total"] = Counter(
            "query_invalidations_total",
            "Total named query invalidations",
            ["query"],
            registry=self.registry
        )

        self._metrics["mutations_total"] = Counter(
            "mutations_total",
            "Total mutations by outcome",
            ["mutation", "result"],
            registry=self.registry
        )

        self._metrics["mutation_duration_seconds"] = Histogram(
            "mutation_duration_seconds",
            "Mutation duration in seconds",
            ["mutation"],
            registry=self.registry
        )

        self._metrics["mutation_rejections_total"] = Counter(
            "mutation_rejections_total",
            "Mutations rejected because the controller was pending",
            ["mutation"],
            registry=self.registry
        )

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

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)

    def sample_value(self, metric_name: str, **labels) -> Optional[float]:
        """Read the current value of a sample from this collector's registry."""
        return self.registry.get_sample_value(metric_name, labels)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
