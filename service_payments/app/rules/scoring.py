"""
Specificity scoring for discrete-dimension rules.

A rule earns points for every dimension it pins down. When the event
carries a different value for a soft dimension (doctor, service, society,
schedule, participation) the same points count against the rule instead.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, List, Optional

from .models import Context, DiscreteTargeting, ParticipationType, Rule, ScheduleType, WEEKEND_DAYS

DOCTOR_POINTS = 1000
SERVICE_POINTS = 500
INDIVIDUAL_PARTICIPATION_POINTS = 200
SOCIETY_PARTICIPATION_POINTS = 150
SCHEDULE_POINTS = 100
NIGHT_SCHEDULE_POINTS = 50
APPLICABLE_DAYS_POINTS = 25
NARROW_DAYS_POINTS = 5
WEEKEND_DAYS_POINTS = 30
SOCIETY_POINTS = 75
RECENCY_MAX_POINTS = 30.0
RECENCY_DECAY_PER_DAY = 0.1

PARTICIPATION_POINTS = {
    ParticipationType.INDIVIDUAL.value: INDIVIDUAL_PARTICIPATION_POINTS,
    ParticipationType.SOCIETY.value: SOCIETY_PARTICIPATION_POINTS,
}


@dataclass(frozen=True)
class ScoreComponent:
    dimension: str
    points: float
    matched: Optional[bool] = None


def _same(rule_value: Any, context_value: Any, case_insensitive: bool) -> bool:
    if case_insensitive:
        return str(rule_value).lower() == str(context_value).lower()
    return str(rule_value) == str(context_value)


def _soft_component(dimension: str, points: float, rule_value: Any,
                    context: Optional[Context], context_key: str,
                    case_insensitive: bool = False) -> ScoreComponent:
    context_value = context.get(context_key) if context is not None else None
    if context_value is None:
        return ScoreComponent(dimension, points)
    if _same(rule_value, context_value, case_insensitive):
        return ScoreComponent(dimension, points, matched=True)
    return ScoreComponent(dimension, -points, matched=False)


def recency_points(created_at: Optional[date], reference_date: Optional[date],
                   max_points: float = RECENCY_MAX_POINTS,
                   decay_per_day: float = RECENCY_DECAY_PER_DAY) -> float:
    """Points for a recently created rule, decaying linearly to zero."""
    if created_at is None or reference_date is None:
        return 0.0
    age_days = max(0, (reference_date - created_at).days)
    return round(max(0.0, max_points - decay_per_day * age_days), 4)


def score_breakdown(rule: Rule, context: Optional[Context] = None,
                    reference_date: Optional[date] = None,
                    recency_max_points: float = RECENCY_MAX_POINTS,
                    recency_decay_per_day: float = RECENCY_DECAY_PER_DAY) -> List[ScoreComponent]:
    """Per-dimension contributions to a rule's specificity score."""
    targeting = rule.targeting
    if not isinstance(targeting, DiscreteTargeting):
        return []

    components: List[ScoreComponent] = []

    if targeting.doctor_id:
        components.append(_soft_component(
            "doctor", DOCTOR_POINTS, targeting.doctor_id, context, "doctor_id"))

    if targeting.service_id:
        components.append(_soft_component(
            "service", SERVICE_POINTS, targeting.service_id, context, "service_id"))

    participation = (targeting.participation_type or "").lower()
    if participation in PARTICIPATION_POINTS:
        components.append(_soft_component(
            "participation_type", PARTICIPATION_POINTS[participation], participation,
            context, "participation_type", case_insensitive=True))

    if targeting.targets_schedule:
        points = SCHEDULE_POINTS
        if targeting.schedule_type.lower() == ScheduleType.NIGHT.value:
            points += NIGHT_SCHEDULE_POINTS
        components.append(_soft_component(
            "schedule_type", points, targeting.schedule_type, context, "schedule_type",
            case_insensitive=True))

    if targeting.applicable_days:
        days = {day.lower() for day in targeting.applicable_days}
        points = APPLICABLE_DAYS_POINTS + NARROW_DAYS_POINTS * max(0, 7 - len(days))
        if days & WEEKEND_DAYS:
            points += WEEKEND_DAYS_POINTS
        components.append(ScoreComponent("applicable_days", points))

    if targeting.society_id:
        components.append(_soft_component(
            "society", SOCIETY_POINTS, targeting.society_id, context, "society_id"))

    if reference_date is None and context is not None:
        reference_date = context.event_date
    recency = recency_points(rule.created_at, reference_date,
                             recency_max_points, recency_decay_per_day)
    if recency:
        components.append(ScoreComponent("recency", recency))

    return components


def specificity_score(rule: Rule, context: Optional[Context] = None,
                      reference_date: Optional[date] = None, **tuning) -> float:
    """How narrowly `rule` targets the event; higher is more specific."""
    return float(sum(c.points for c in score_breakdown(rule, context, reference_date, **tuning)))
