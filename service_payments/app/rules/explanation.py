"""
Human-readable explanations of payment decisions.

Everything here is a pure function of its arguments. Display names come
from the caller-supplied ReferenceData lookups; raw ids are shown when a
lookup is missing or returns None.
"""

from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from .calculator import format_amount, format_percentage
from .models import (
    Calculation, Candidate, CriteriaTargeting, CumulativeBandedPayment, DirectTablePayment,
    DiscreteTargeting, Exclusion, ExclusionReason, FactorPayment, FixedPayment, PaymentModel,
    PercentagePayment, PercentagePlusFixedPayment, ReferenceData, ResolutionPolicy, Rule,
    TieredByAmountPayment, TieredByQuantityPayment,
)
from .scoring import score_breakdown

EXCLUSION_GUIDANCE = {
    ExclusionReason.INACTIVE: "inactive",
    ExclusionReason.OUTSIDE_VALIDITY: "outside their validity window (check valid_from / valid_to)",
    ExclusionReason.SPECIALTY_MISMATCH: "restricted to a different specialty",
    ExclusionReason.WEEKDAY_MISMATCH: "restricted to other days of the week",
    ExclusionReason.CRITERIA_NOT_MET: "with criteria the event does not meet",
}


def describe_payment(payment: PaymentModel) -> str:
    """One-line description of a payment model."""
    if isinstance(payment, FixedPayment):
        return f"fixed amount of {format_amount(payment.value)}"
    if isinstance(payment, PercentagePayment):
        return f"{format_percentage(payment.value)} of the base amount"
    if isinstance(payment, FactorPayment):
        return f"factor {format_amount(payment.value)}x of the base amount"
    if isinstance(payment, PercentagePlusFixedPayment):
        return (f"{format_percentage(payment.percentage)} of the base amount "
                f"plus {format_amount(payment.fixed)}")
    if isinstance(payment, TieredByAmountPayment):
        return f"amount-tiered percentage ({len(payment.bands)} bands)"
    if isinstance(payment, TieredByQuantityPayment):
        return f"quantity-tiered percentage ({len(payment.bands)} bands on '{payment.quantity_key}')"
    if isinstance(payment, CumulativeBandedPayment):
        return f"cumulative table ({len(payment.bands)} bands)"
    if isinstance(payment, DirectTablePayment):
        return f"direct table ({len(payment.bands)} bands)"
    return "unrecognized payment model"


def _display(reference: ReferenceData, dimension: str, value: Optional[str]) -> str:
    name = reference.name_of(dimension, value)
    return name if name else str(value)


def _rule_label(rule: Rule) -> str:
    return f'"{rule.name}" ({rule.code})'


def specific_dimensions(rule: Rule, reference: ReferenceData, context=None,
                        score_tuning: Optional[Dict[str, float]] = None) -> List[str]:
    """Descriptions of the dimensions that make a discrete rule specific.

    `score_tuning` carries the recency settings the score was computed with.
    """
    targeting = rule.targeting
    if not isinstance(targeting, DiscreteTargeting):
        return []

    earned = {c.dimension for c in score_breakdown(rule, context, **(score_tuning or {})) if c.points > 0}
    parts = []
    if "doctor" in earned:
        parts.append(f"doctor {_display(reference, 'doctor', targeting.doctor_id)}")
    if "service" in earned:
        parts.append(f"service {_display(reference, 'service', targeting.service_id)}")
    if "participation_type" in earned:
        parts.append(f"{targeting.participation_type} participation")
    if "schedule_type" in earned:
        parts.append(f"{targeting.schedule_type} schedule")
    if "applicable_days" in earned:
        parts.append("days " + ", ".join(sorted(targeting.applicable_days)))
    if "society" in earned:
        parts.append(f"society {_display(reference, 'society', targeting.society_id)}")
    if "recency" in earned:
        parts.append("recent creation")
    return parts


def _describe_criteria(targeting: CriteriaTargeting) -> str:
    if not targeting.criteria:
        return "it has no criteria and applies to every event"
    return "its criteria hold: " + "; ".join(
        f"{c.key} {c.operator} {c.operand!r}" for c in targeting.criteria
    )


def _runner_up(candidate: Candidate, policy: ResolutionPolicy) -> str:
    if policy == ResolutionPolicy.SPECIFICITY:
        key = f"score {format_amount(Decimal(str(candidate.score or 0)))}"
    else:
        key = f"priority {candidate.rule.priority}"
    return f"{_rule_label(candidate.rule)}, {key}, reference value {format_amount(candidate.reference_value)}"


def explain_decision(winner: Candidate, candidates: Sequence[Candidate], calculation: Calculation,
                     policy: ResolutionPolicy, reference: Optional[ReferenceData] = None,
                     context=None, score_tuning: Optional[Dict[str, float]] = None) -> str:
    """Explain why `winner` was chosen and how the amount was computed."""
    reference = reference or ReferenceData()
    rule = winner.rule
    sentences = []

    if len(candidates) > 1:
        sentences.append(f"Selected rule {_rule_label(rule)} among {len(candidates)} applicable rules.")
    else:
        sentences.append(f"Selected rule {_rule_label(rule)}, the only applicable rule.")

    targeting = rule.targeting
    if isinstance(targeting, DiscreteTargeting):
        dimensions = specific_dimensions(rule, reference, context, score_tuning)
        if dimensions:
            sentences.append("It is specific to: " + ", ".join(dimensions) + ".")
        else:
            sentences.append("It is a general rule with no specific dimensions.")
        if targeting.specialty_id:
            sentences.append(
                f"Specialty: {_display(reference, 'specialty', targeting.specialty_id)}.")
    else:
        sentences.append(f"It applies because {_describe_criteria(targeting)}.")

    if policy == ResolutionPolicy.SPECIFICITY:
        sentences.append(f"Specificity score {format_amount(Decimal(str(winner.score or 0)))}.")
    else:
        sentences.append(f"Priority {rule.priority}.")

    sentences.append(f"Payment: {calculation.formula}.")
    for bonus in calculation.bonuses:
        sentences.append(
            f"Bonus \"{bonus.description}\" added {format_percentage(bonus.percentage)} "
            f"({format_amount(bonus.amount)}).")

    others = [c for c in candidates if c.index != winner.index]
    if others:
        sentences.append("Other applicable rules: " + "; ".join(
            _runner_up(c, policy) for c in others) + ".")

    return " ".join(sentences)


def explain_no_rule(exclusions: Sequence[Exclusion], event_date: Optional[date],
                    specialty: Optional[str] = None,
                    reference: Optional[ReferenceData] = None) -> str:
    """Explain an evaluation that found no applicable rule."""
    reference = reference or ReferenceData()
    when = event_date.isoformat() if event_date else "the event date"
    if not exclusions:
        return f"No applicable rule for the event on {when}: no active rules were supplied."

    counts = Counter(exclusion.reason for exclusion in exclusions)
    causes = []
    for reason in ExclusionReason:
        if counts.get(reason):
            causes.append(f"{counts[reason]} {EXCLUSION_GUIDANCE[reason]}")

    text = (f"No applicable rule for the event on {when}. "
            f"Of {len(exclusions)} rules: " + "; ".join(causes) + ".")
    if counts.get(ExclusionReason.SPECIALTY_MISMATCH):
        shown = _display(reference, "specialty", specialty) if specialty else "none"
        text += f" Event specialty: {shown}."
    if counts.get(ExclusionReason.OUTSIDE_VALIDITY):
        text += " Review rule validity windows for this date."
    return text
