"""
Payment rule engine for the Payments Service.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from shared.errors import ValidationError
from shared.logging import get_logger

from .applicability import find_candidates
from .auditor import audit_conflicts, audit_repository
from .calculator import ZERO, calculate, format_amount
from .context import normalize_context
from .explanation import explain_decision, explain_no_rule
from .models import (
    ConflictReport, Context, DecisionResult, REFERENCE_BASE_AMOUNT, ReferenceData,
    ResolutionPolicy, Rule, TraceStep, as_decimal,
)
from .resolver import build_candidates, infer_policy, resolve
from .scoring import RECENCY_DECAY_PER_DAY, RECENCY_MAX_POINTS


class PaymentRuleEngine:
    """Selects the best matching rule for a billing event and prices it.

    The engine holds configuration only. Every call works on the rule
    snapshot it is given, so one instance can serve concurrent requests.
    """

    def __init__(self, reference_data: Optional[ReferenceData] = None,
                 reference_base_amount: Decimal = REFERENCE_BASE_AMOUNT,
                 recency_max_points: float = RECENCY_MAX_POINTS,
                 recency_decay_per_day: float = RECENCY_DECAY_PER_DAY,
                 logger=None):
        self.logger = logger or get_logger("payments.rule_engine")
        self.reference_data = reference_data or ReferenceData()
        self.reference_base_amount = Decimal(reference_base_amount)
        self.score_tuning = {
            "recency_max_points": recency_max_points,
            "recency_decay_per_day": recency_decay_per_day,
        }

    def evaluate(self, context: Context, rules: Iterable[Rule],
                 policy: Optional[ResolutionPolicy] = None,
                 reference_data: Optional[ReferenceData] = None) -> DecisionResult:
        """Pick the winning rule for `context` and compute the payment."""
        base_amount = self._validate(context)
        rules = list(rules)
        reference = reference_data or self.reference_data
        trace: List[TraceStep] = []
        warnings: List[str] = []

        normalized = normalize_context(context)
        trace.append(TraceStep(
            "normalize",
            "Context normalized",
            {"event_date": normalized.event_date.isoformat(), "weekday": normalized.get("weekday")},
        ))

        applicability = find_candidates(normalized, rules)
        trace.append(TraceStep(
            "filter",
            f"{len(applicability.candidates)} of {len(rules)} rules are candidates",
            {
                "candidates": [rule.rule_id for _, rule in applicability.candidates],
                "excluded": {e.rule_id: e.reason.value for e in applicability.exclusions},
            },
        ))

        if policy is None:
            policy, mixed = infer_policy([rule for _, rule in applicability.candidates])
            if mixed:
                warnings.append(
                    f"Candidates mix calculation rules and conventions; resolved by {policy.value}")

        candidates = build_candidates(
            applicability.candidates, normalized, policy,
            reference_base=self.reference_base_amount,
            **self.score_tuning,
        )
        winner, runners_up = resolve(candidates, policy)
        ranked = [winner] + runners_up if winner else []
        trace.append(TraceStep(
            "resolve",
            f"Candidates ranked by {policy.value}",
            {
                "order": [c.rule.rule_id for c in ranked],
                "scores": {c.rule.rule_id: c.score for c in ranked if c.score is not None},
                "reference_values": {c.rule.rule_id: str(c.reference_value) for c in ranked},
            },
        ))

        if winner is None:
            explanation = explain_no_rule(
                applicability.exclusions, normalized.event_date,
                specialty=normalized.get("specialty_id"), reference=reference,
            )
            trace.append(TraceStep("select", "No applicable rule"))
            self.logger.debug("No applicable rule", rules=len(rules),
                              event_date=normalized.event_date.isoformat())
            return DecisionResult(
                selected_rule=None,
                amount=ZERO,
                policy=policy,
                base_amount=base_amount,
                explanation=explanation,
                warnings=tuple(warnings),
                trace=tuple(trace),
            )

        calculation = calculate(winner.rule, normalized)
        warnings.extend(calculation.warnings)
        trace.append(TraceStep(
            "calculate",
            calculation.formula,
            {"rule_id": winner.rule.rule_id, "amount": str(calculation.amount)},
        ))

        explanation = explain_decision(winner, ranked, calculation, policy, reference, normalized,
                                       score_tuning=self.score_tuning)

        self.logger.debug(
            "Rule selected",
            rule_id=winner.rule.rule_id,
            candidates=len(ranked),
            policy=policy.value,
            amount=format_amount(calculation.amount),
        )

        return DecisionResult(
            selected_rule=winner.rule,
            amount=calculation.amount,
            policy=policy,
            base_amount=calculation.base_amount,
            alternatives=tuple(c.rule for c in runners_up),
            candidates=tuple(ranked),
            explanation=explanation,
            warnings=tuple(warnings),
            bonuses=calculation.bonuses,
            trace=tuple(trace),
        )

    def audit_conflicts(self, rules: Iterable[Rule]) -> List[ConflictReport]:
        """Flag ambiguous rule pairs in a rule collection."""
        return audit_conflicts(rules)

    def audit_repository(self, repository) -> List[ConflictReport]:
        """Audit the active rules of `repository`."""
        return audit_repository(repository)

    def _validate(self, context: Context) -> Decimal:
        """Reject structurally invalid calls before any matching."""
        if not isinstance(context, Context):
            raise ValidationError("Context is required")

        event_date = context.event_date
        if event_date is None or not isinstance(event_date, (date, datetime)):
            raise ValidationError("Event date is required", details={"field": "event_date"})

        base_amount = as_decimal(context.base_amount)
        if base_amount is None:
            raise ValidationError(
                "Base amount must be a finite number",
                details={"field": "base_amount", "value": str(context.base_amount)},
            )
        if base_amount < 0:
            raise ValidationError(
                "Base amount must not be negative",
                details={"field": "base_amount", "value": str(context.base_amount)},
            )
        return base_amount
