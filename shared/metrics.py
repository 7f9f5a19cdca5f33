"""
Shared metrics configuration for the Professional Fees layer.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
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

        # Business metrics
        self._metrics["business_events_total"] = Counter(
            "business_events_total",
            "Total business events",
            ["event_type", "service"],
            registry=self.registry
        )

        # Service-specific metrics
        if self.service_name == "payments":
            self._setup_payments_metrics()

    def _setup_payments_metrics(self):
        """Set up payments-specific metrics."""
        self._metrics["payment_evaluations_total"] = Counter(
            "payment_evaluations_total",
            "Total payment rule evaluations",
            ["outcome", "policy"],
            registry=self.registry
        )

        self._metrics["payment_evaluation_duration_seconds"] = Histogram(
            "payment_evaluation_duration_seconds",
            "Payment rule evaluation duration in seconds",
            registry=self.registry
        )

        self._metrics["payment_candidates"] = Histogram(
            "payment_candidates",
            "Number of candidate rules per evaluation",
            buckets=(0, 1, 2, 3, 5, 10, 25, 50, 100),
            registry=self.registry
        )

        self._metrics["rule_conflicts_detected_total"] = Counter(
            "rule_conflicts_detected_total",
            "Total rule conflicts reported by the auditor",
            ["code"],
            registry=self.registry
        )

        self._metrics["loaded_rules"] = Gauge(
            "loaded_rules",
            "Number of active rules loaded from the repository",
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

    def record_business_event(self, event_type: str, service: Optional[str] = None):
        """Record business event metrics."""
        service_name = service or self.service_name
        self._metrics["business_events_total"].labels(event_type=event_type, service=service_name).inc()

    def record_evaluation(self, outcome: str, policy: str, candidates: int, duration: float):
        """Record one payment rule evaluation."""
        self._metrics["payment_evaluations_total"].labels(outcome=outcome, policy=policy).inc()
        self._metrics["payment_evaluation_duration_seconds"].observe(duration)
        self._metrics["payment_candidates"].observe(candidates)

    def record_conflicts(self, codes):
        """Record conflict reports by code."""
        for code in codes:
            self._metrics["rule_conflicts_detected_total"].labels(code=code).inc()

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
