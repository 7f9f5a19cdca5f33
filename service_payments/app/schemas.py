"""
Request and response models for the Payments Service API.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .rules.models import (
    Candidate, ConflictReport, Context, DecisionResult, ResolutionPolicy,
)


class EventContext(BaseModel):
    """Billing event to evaluate.

    A missing date or a non-numeric amount reaches the engine, which
    rejects it with a VALIDATION_ERROR body.
    """
    event_date: Optional[date] = None
    base_amount: Any = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    def to_context(self) -> Context:
        return Context(
            event_date=self.event_date,
            base_amount=self.base_amount,
            attributes=dict(self.attributes),
        )


class EvaluateRequest(BaseModel):
    """Evaluate request; inline `rules` replace the configured repository."""
    context: EventContext
    rules: Optional[List[Dict[str, Any]]] = None
    policy: Optional[ResolutionPolicy] = None
    evaluation_id: Optional[str] = None


class CandidateResponse(BaseModel):
    rule_id: str
    code: str
    name: str
    score: Optional[float] = None
    priority: int
    reference_value: Decimal

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "CandidateResponse":
        return cls(
            rule_id=candidate.rule.rule_id,
            code=candidate.rule.code,
            name=candidate.rule.name,
            score=candidate.score,
            priority=candidate.rule.priority,
            reference_value=candidate.reference_value,
        )


class BonusResponse(BaseModel):
    description: str
    percentage: Decimal
    amount: Decimal


class TraceStepResponse(BaseModel):
    stage: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class DecisionResponse(BaseModel):
    """Evaluation outcome."""
    selected_rule_id: Optional[str] = None
    selected_rule_code: Optional[str] = None
    amount: Decimal
    base_amount: Decimal
    policy: ResolutionPolicy
    alternatives: List[str] = Field(default_factory=list)
    candidates: List[CandidateResponse] = Field(default_factory=list)
    explanation: str
    warnings: List[str] = Field(default_factory=list)
    bonuses: List[BonusResponse] = Field(default_factory=list)
    trace: List[TraceStepResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: DecisionResult) -> "DecisionResponse":
        selected = result.selected_rule
        return cls(
            selected_rule_id=result.selected_rule_id,
            selected_rule_code=selected.code if selected else None,
            amount=result.amount,
            base_amount=result.base_amount,
            policy=result.policy,
            alternatives=[rule.rule_id for rule in result.alternatives],
            candidates=[CandidateResponse.from_candidate(c) for c in result.candidates],
            explanation=result.explanation,
            warnings=list(result.warnings),
            bonuses=[
                BonusResponse(description=b.description, percentage=b.percentage, amount=b.amount)
                for b in result.bonuses
            ],
            trace=[
                TraceStepResponse(stage=s.stage, message=s.message, details=dict(s.details))
                for s in result.trace
            ],
        )


class AuditRequest(BaseModel):
    """Audit request; inline `rules` replace the configured repository."""
    rules: Optional[List[Dict[str, Any]]] = None


class ConflictReportResponse(BaseModel):
    rule_ids: List[str]
    dimensions: List[str]
    reason: str
    code: str

    @classmethod
    def from_report(cls, report: ConflictReport) -> "ConflictReportResponse":
        return cls(
            rule_ids=list(report.rule_ids),
            dimensions=list(report.dimensions),
            reason=report.reason,
            code=report.code,
        )


class AuditResponse(BaseModel):
    conflicts: List[ConflictReportResponse]
    total: int
