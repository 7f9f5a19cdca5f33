"""
Unit tests for the shared metrics, error and logging helpers used by the service.
"""

from prometheus_client import CollectorRegistry

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import RepositoryError, RuleDefinitionError, ServiceError, ValidationError
from shared.logging import clear_context, request_id_var, set_request_id
from shared.metrics import MetricsCollector
from shared.observability import ObservabilityManager


class TestMetricsCollector:
    """Test cases for MetricsCollector."""

    def test_record_evaluation(self):
        registry = CollectorRegistry()
        collector = MetricsCollector("payments", registry)

        collector.record_evaluation("selected", "specificity", candidates=2, duration=0.01)

        assert registry.get_sample_value(
            "payment_evaluations_total", {"outcome": "selected", "policy": "specificity"}) == 1.0
        assert registry.get_sample_value("payment_candidates_count") == 1.0

    def test_record_conflicts(self):
        registry = CollectorRegistry()
        collector = MetricsCollector("payments", registry)

        collector.record_conflicts(["overlap", "overlap", "percentage_sum_exceeds_100"])

        assert registry.get_sample_value("rule_conflicts_detected_total", {"code": "overlap"}) == 2.0

    def test_set_gauge(self):
        registry = CollectorRegistry()
        MetricsCollector("payments", registry).set_gauge("loaded_rules", 7)
        assert registry.get_sample_value("loaded_rules") == 7.0

    def test_other_services_have_no_payment_metrics(self):
        registry = CollectorRegistry()
        MetricsCollector("other", registry)
        assert registry.get_sample_value("loaded_rules") is None


class TestObservabilityManager:
    """Test cases for ObservabilityManager."""

    def test_business_event_counted(self):
        registry = CollectorRegistry()
        manager = ObservabilityManager("payments", metrics=MetricsCollector("payments", registry))

        manager.log_business_event("payment_evaluated", outcome="selected")

        assert registry.get_sample_value(
            "business_events_total", {"event_type": "payment_evaluated", "service": "payments"}) == 1.0

    def test_observe_operation_records_errors(self):
        registry = CollectorRegistry()
        manager = ObservabilityManager("payments", metrics=MetricsCollector("payments", registry))

        try:
            with manager.observe_operation("payment_evaluation"):
                raise ValidationError("Event date is required")
        except ValidationError:
            pass

        assert registry.get_sample_value(
            "errors_total", {"error_type": "ValidationError", "service": "payments"}) == 1.0


class TestErrors:
    """Test cases for the error hierarchy."""

    def test_status_codes(self):
        assert ValidationError().status_code == 400
        assert RuleDefinitionError().status_code == 422
        assert RepositoryError().status_code == 503
        assert ServiceError().status_code == 500

    def test_response_carries_request_id(self):
        set_request_id("req-123")
        try:
            response = RepositoryError("rules file missing", details={"path": "rules.yaml"}).to_response()
        finally:
            clear_context()

        assert response.request_id == "req-123"
        assert response.code == "REPOSITORY_ERROR"
        assert response.details == {"path": "rules.yaml"}
        assert request_id_var.get() is None
