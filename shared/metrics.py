"""
Shared metrics configuration for the messaging decisioning core.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional
import threading


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # A private registry keeps collectors from colliding when several
        # pipelines live in one process.
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
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

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_decisioning_metrics()

    def _setup_decisioning_metrics(self):
        """Set up decisioning-specific metrics."""
        self._metrics["decisions_processed_total"] = Counter(
            "decisions_processed_total",
            "Total decision batches processed",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["propositions_evaluated_total"] = Counter(
            "propositions_evaluated_total",
            "Total proposition items evaluated",
            ["result"],
            registry=self.registry
        )

        self._metrics["condition_diagnostics_total"] = Counter(
            "condition_diagnostics_total",
            "Total malformed condition diagnostics",
            ["code"],
            registry=self.registry
        )

        self._metrics["decision_duration_seconds"] = Histogram(
            "decision_duration_seconds",
            "Decision batch processing duration in seconds",
            registry=self.registry
        )

        self._metrics["store_scopes"] = Gauge(
            "store_scopes",
            "Number of surfaces holding qualified propositions",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def export(self) -> bytes:
        """Render the registry in Prometheus text format."""
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

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_decision(self, outcome: str, qualified: int, unqualified: int, duration: float):
        """Record the outcome of one decision batch."""
        with self._lock:
            self._metrics["decisions_processed_total"].labels(outcome=outcome).inc()
            if qualified:
                self._metrics["propositions_evaluated_total"].labels(result="qualified").inc(qualified)
            if unqualified:
                self._metrics["propositions_evaluated_total"].labels(result="unqualified").inc(unqualified)
            self._metrics["decision_duration_seconds"].observe(duration)

    def record_condition_diagnostic(self, code: str):
        """Record a malformed condition diagnostic."""
        self._metrics["condition_diagnostics_total"].labels(code=code).inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        if metric_name in self._metrics:
            metric = self._metrics[metric_name]
            if labels:
                metric = metric.labels(**labels)
            metric.set(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
