"""
Observability helpers for the Professional Fees layer.
Integrates structured logging and metrics.
"""

from typing import Optional
from contextlib import contextmanager

from .logging import configure_logging, get_logger, set_request_id, set_evaluation_id
from .metrics import MetricsCollector, get_metrics_collector


class ObservabilityManager:
    """Centralized observability manager for services."""

    def __init__(self, service_name: str, log_level: str = "info",
                 metrics: Optional[MetricsCollector] = None):
        self.service_name = service_name
        self.log_level = log_level

        configure_logging(service_name, log_level)
        self.metrics = metrics or get_metrics_collector(service_name)

        self.logger = get_logger(f"{service_name}.observability")
        self.logger.info("Observability initialized",
                         service=service_name,
                         log_level=log_level)

    def trace_request(self, request_id: Optional[str] = None,
                      evaluation_id: Optional[str] = None):
        """Set up request context for log correlation."""
        if request_id:
            set_request_id(request_id)
        if evaluation_id:
            set_evaluation_id(evaluation_id)

    def log_error(self, error_type: str, error_message: str, **kwargs):
        """Log error with full context."""
        self.logger.error(
            "Error occurred",
            error_type=error_type,
            error_message=error_message,
            **kwargs
        )
        self.metrics.record_error(error_type)

    def log_business_event(self, event_type: str, **kwargs):
        """Log business event with full context."""
        self.logger.info(
            "Business event",
            event_type=event_type,
            **kwargs
        )
        self.metrics.record_business_event(event_type)

    @contextmanager
    def observe_operation(self, operation_name: str, **kwargs):
        """Log the start and the outcome of an operation."""
        self.logger.debug("Operation started", operation=operation_name, **kwargs)
        try:
            yield
        except Exception as e:
            self.log_error(type(e).__name__, str(e), operation=operation_name, **kwargs)
            raise
        self.logger.debug("Operation completed", operation=operation_name, **kwargs)


def get_observability_manager(service_name: str, log_level: str = "info",
                              metrics: Optional[MetricsCollector] = None) -> ObservabilityManager:
    """Get an observability manager for a service."""
    return ObservabilityManager(service_name, log_level=log_level, metrics=metrics)
