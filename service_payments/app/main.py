"""
Payments service for the Professional Fees layer.
"""

import time
from datetime import datetime
from typing import Optional

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import PaymentsLayerException
from shared.observability import get_observability_manager

from .repository import InMemoryRuleRepository, RuleRepository, YamlRuleRepository
from .rules.engine import PaymentRuleEngine
from .rules.models import ReferenceData
from .rules.records import parse_rules
from .schemas import (
    AuditRequest, AuditResponse, ConflictReportResponse, DecisionResponse, EvaluateRequest,
)

SERVICE_NAME = "payments"
SERVICE_PORT = 8013


class PaymentsService(BaseService):
    """Payments service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 repository: Optional[RuleRepository] = None):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        self.observability = get_observability_manager(
            SERVICE_NAME,
            log_level=self.config.log_level,
            metrics=self.metrics,
        )

        self.repository = repository or self._build_repository()
        self.engine = PaymentRuleEngine(
            reference_base_amount=self.config.reference_base_amount,
            recency_max_points=self.config.recency_max_points,
            recency_decay_per_day=self.config.recency_decay_per_day,
            logger=self.logger,
        )
        self._stats = {"evaluations": 0, "no_rule": 0, "audits": 0, "conflicts": 0}

        self._setup_payments_routes()

    def _build_repository(self) -> RuleRepository:
        if self.config.rules_file:
            self.logger.info("Using YAML rule repository", path=self.config.rules_file)
            return YamlRuleRepository(self.config.rules_file)
        self.logger.warning("No rules file configured; repository is empty")
        return InMemoryRuleRepository()

    def _load_rules(self, records):
        """Inline records when given, otherwise the repository snapshot."""
        if records is not None:
            return parse_rules(records), ReferenceData()
        rules = self.repository.list_active_rules()
        if self.config.metrics_enabled:
            self.metrics.set_gauge("loaded_rules", len(rules))
        return rules, self.repository.reference_data()

    def _setup_payments_routes(self):
        """Set up payments-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Professional Fees - Payments Service",
                "version": "1.0.0",
                "capabilities": ["evaluation", "conflict_audit", "explanations"],
            }

        @self.app.post("/payments/evaluate", response_model=DecisionResponse)
        async def evaluate_payment(request: EvaluateRequest):
            """Select the payment rule for a billing event and compute the amount."""
            self.observability.trace_request(evaluation_id=request.evaluation_id)

            rules, reference = self._load_rules(request.rules)

            start_time = time.time()
            with self.observability.observe_operation("payment_evaluation", rules=len(rules)):
                result = self.engine.evaluate(
                    request.context.to_context(),
                    rules,
                    policy=request.policy,
                    reference_data=reference,
                )
            duration = time.time() - start_time

            outcome = "selected" if result.selected_rule else "no_rule"
            self._stats["evaluations"] += 1
            if result.selected_rule is None:
                self._stats["no_rule"] += 1
            if self.config.metrics_enabled:
                self.metrics.record_evaluation(
                    outcome=outcome,
                    policy=result.policy.value,
                    candidates=len(result.candidates),
                    duration=duration,
                )

            self.observability.log_business_event(
                "payment_evaluated",
                outcome=outcome,
                rule_id=result.selected_rule_id,
                amount=str(result.amount),
                candidates=len(result.candidates),
                warnings=len(result.warnings),
            )

            return DecisionResponse.from_result(result)

        @self.app.post("/payments/audit", response_model=AuditResponse)
        async def audit_rules(request: Optional[AuditRequest] = None):
            """Report ambiguous rule pairs."""
            if request is not None and request.rules is not None:
                reports = self.engine.audit_conflicts(parse_rules(request.rules))
            else:
                reports = self.engine.audit_repository(self.repository)

            self._stats["audits"] += 1
            self._stats["conflicts"] += len(reports)
            if self.config.metrics_enabled:
                self.metrics.record_conflicts(report.code for report in reports)

            self.observability.log_business_event("rules_audited", conflicts=len(reports))

            return AuditResponse(
                conflicts=[ConflictReportResponse.from_report(r) for r in reports],
                total=len(reports),
            )

        @self.app.get("/payments/stats")
        async def get_stats():
            """Get payments service statistics."""
            return {
                "counters": dict(self._stats),
                "repository": type(self.repository).__name__,
                "rules_file": self.config.rules_file,
                "reference_base_amount": str(self.engine.reference_base_amount),
                "timestamp": datetime.now().isoformat(),
            }

    async def _check_dependencies(self):
        """Check payments service dependencies."""
        dependencies = {}

        try:
            self.repository.list_active_rules()
            dependencies["rule_repository"] = "ok"
        except PaymentsLayerException as e:
            self.logger.warning("Rule repository check failed", code=e.code, error=e.message)
            dependencies["rule_repository"] = "error"

        return dependencies


def create_app(config: Optional[ServiceConfig] = None, repository: Optional[RuleRepository] = None):
    """Create payments service application."""
    service = PaymentsService(config=config, repository=repository)
    return service.app


if __name__ == "__main__":
    service = PaymentsService()
    service.run()
