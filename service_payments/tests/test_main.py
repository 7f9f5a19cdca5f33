"""
Unit tests for Payments main service.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_payments.app.main import PaymentsService, create_app
from service_payments.app.repository import InMemoryRuleRepository, YamlRuleRepository
from service_payments.app.rules.records import parse_rules
from shared.config import get_config
from shared.test_helpers import RecordFactory


EVENT = {
    "event_date": "2024-06-05",
    "base_amount": 100000,
    "attributes": {"specialty_id": "Cardiology", "doctor_id": "d-1"},
}


class TestPaymentsService:
    """Test cases for PaymentsService."""

    @pytest.fixture
    def repository(self):
        """Create repository with the cardiology rules."""
        return InMemoryRuleRepository(parse_rules(RecordFactory.cardiology_records()))

    @pytest.fixture
    def client(self, repository):
        """Create test client."""
        return TestClient(create_app(repository=repository))

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "payments"
        assert data["version"] == "1.0.0"

    def test_health_check(self, client):
        """Test health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "payments"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"rule_repository": "ok"}

    def test_health_degraded_without_rules_file(self, tmp_path):
        """Test an unreadable rules file degrades health."""
        repository = YamlRuleRepository(tmp_path / "missing.yaml")
        client = TestClient(create_app(repository=repository))

        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["dependencies"]["rule_repository"] == "error"

    def test_health_error_when_check_raises(self):
        """Test an unexpected dependency failure answers 503."""
        repository = MagicMock()
        repository.list_active_rules.side_effect = RuntimeError("disk gone")
        client = TestClient(create_app(repository=repository))

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json() == {"service": "payments", "status": "error", "error": "disk gone"}

    def test_request_id_is_echoed(self, client):
        """Test the caller request id comes back on the response."""
        response = client.get("/health", headers={"x-request-id": "req-42"})
        assert response.headers["x-request-id"] == "req-42"

    def test_evaluate_from_repository(self, client):
        """Test evaluation against the configured repository."""
        response = client.post("/payments/evaluate", json={"context": EVENT})

        assert response.status_code == 200
        data = response.json()
        assert data["selected_rule_id"] == "card-doctor"
        assert Decimal(data["amount"]) == Decimal("40000")
        assert data["policy"] == "specificity"
        assert data["alternatives"] == ["card-general"]
        assert [step["stage"] for step in data["trace"]] == ["normalize", "filter", "resolve", "calculate"]
        assert "x-request-id" in response.headers

    def test_evaluate_inline_rules(self, client):
        """Test inline rules replace the repository."""
        rules = [RecordFactory.rule_record("inline", payment={"type": "percentage", "value": 33.33})]

        response = client.post("/payments/evaluate", json={"context": EVENT, "rules": rules})

        data = response.json()
        assert data["selected_rule_id"] == "inline"
        assert Decimal(data["amount"]) == Decimal("33330")

    def test_evaluate_without_match(self, client):
        """Test no applicable rule is a normal response."""
        event = dict(EVENT, event_date="2020-01-01")

        data = client.post("/payments/evaluate", json={"context": event}).json()

        assert data["selected_rule_id"] is None
        assert Decimal(data["amount"]) == 0
        assert data["explanation"].startswith("No applicable rule")

    def test_evaluate_missing_event_date(self, client):
        """Test structurally invalid calls are rejected."""
        response = client.post("/payments/evaluate", json={"context": {"base_amount": 100}})

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert data["details"]["field"] == "event_date"

    def test_evaluate_negative_amount(self, client):
        event = dict(EVENT, base_amount=-1)
        response = client.post("/payments/evaluate", json={"context": event})
        assert response.status_code == 400

    def test_evaluate_invalid_inline_rule(self, client):
        """Test malformed inline rules are rejected."""
        rules = [RecordFactory.rule_record("bad", payment={"type": "bogus"})]

        response = client.post("/payments/evaluate", json={"context": EVENT, "rules": rules})

        assert response.status_code == 422
        assert response.json()["code"] == "RULE_DEFINITION_ERROR"

    def test_audit_inline_rules(self, client):
        """Test conflict audit of inline rules."""
        rules = [
            RecordFactory.rule_record("a", specialty_id="cardiology", doctor_id="d-1"),
            RecordFactory.rule_record("b", specialty_id="cardiology", doctor_id="d-1"),
        ]

        data = client.post("/payments/audit", json={"rules": rules}).json()

        assert data["total"] == 1
        assert data["conflicts"][0]["rule_ids"] == ["a", "b"]
        assert data["conflicts"][0]["code"] == "overlap"

    def test_audit_repository(self, client):
        """Test conflict audit of the repository snapshot."""
        response = client.post("/payments/audit")
        assert response.status_code == 200
        assert response.json()["total"] == 0

    def test_audit_repository_error(self, tmp_path):
        """Test repository failures map to 503."""
        client = TestClient(create_app(repository=YamlRuleRepository(tmp_path / "missing.yaml")))

        response = client.post("/payments/audit", json={})

        assert response.status_code == 503
        assert response.json()["code"] == "REPOSITORY_ERROR"

    def test_stats(self, client):
        """Test statistics counters."""
        client.post("/payments/evaluate", json={"context": EVENT})
        client.post("/payments/audit")

        data = client.get("/payments/stats").json()

        assert data["counters"]["evaluations"] == 1
        assert data["counters"]["audits"] == 1
        assert data["repository"] == "InMemoryRuleRepository"

    def test_metrics_endpoint(self, client):
        """Test payment metrics are exported."""
        client.post("/payments/evaluate", json={"context": EVENT})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "payment_evaluations_total" in response.text


class TestServiceConfiguration:
    """Test cases for configuration-driven setup."""

    def test_rules_file_selects_yaml_repository(self, tmp_path):
        path = RecordFactory.write_rules_file(tmp_path / "rules.yaml", RecordFactory.cardiology_records())
        service = PaymentsService(config=get_config("payments", 8013, rules_file=path))
        assert isinstance(service.repository, YamlRuleRepository)

    def test_default_repository_is_empty(self):
        service = PaymentsService(config=get_config("payments", 8013, rules_file=None))
        assert isinstance(service.repository, InMemoryRuleRepository)
        assert service.repository.list_active_rules() == []

    def test_engine_uses_configured_reference_base(self):
        service = PaymentsService(config=get_config("payments", 8013, reference_base_amount="5000"))
        assert service.engine.reference_base_amount == Decimal("5000")
