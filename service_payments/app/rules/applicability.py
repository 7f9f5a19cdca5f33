"""
Applicability filter: turns the active-rule collection into candidates.

Discrete rules: specialty and weekday restrictions are hard exclusions;
doctor, service, society, schedule and participation only affect the
specificity score. Convention rules: every criterion must hold.
"""

from typing import Iterable, List, NamedTuple, Tuple

from .criteria import evaluate_all
from .models import Context, CriteriaTargeting, DiscreteTargeting, Exclusion, ExclusionReason, Rule


class Applicability(NamedTuple):
    candidates: List[Tuple[int, Rule]]
    exclusions: List[Exclusion]


def specialty_matches(targeting: DiscreteTargeting, context: Context) -> bool:
    if not targeting.specialty_id:
        return True
    value = context.get("specialty_id")
    if value is None:
        return False
    return str(value).lower() == targeting.specialty_id.lower()


def weekday_matches(targeting: DiscreteTargeting, context: Context) -> bool:
    if not targeting.applicable_days:
        return True
    weekday = context.get("weekday")
    if not weekday:
        return False
    return str(weekday).lower() in {day.lower() for day in targeting.applicable_days}


def exclusion_reason(rule: Rule, context: Context):
    """Return why `rule` is not a candidate for `context`, or None."""
    if not rule.active:
        return ExclusionReason.INACTIVE
    if not rule.is_valid_on(context.event_date):
        return ExclusionReason.OUTSIDE_VALIDITY

    targeting = rule.targeting
    if isinstance(targeting, DiscreteTargeting):
        if not specialty_matches(targeting, context):
            return ExclusionReason.SPECIALTY_MISMATCH
        if not weekday_matches(targeting, context):
            return ExclusionReason.WEEKDAY_MISMATCH
    elif isinstance(targeting, CriteriaTargeting):
        if not evaluate_all(targeting.criteria, context):
            return ExclusionReason.CRITERIA_NOT_MET
    return None


def find_candidates(context: Context, rules: Iterable[Rule]) -> Applicability:
    """Split `rules` into candidates (with collection index) and exclusions."""
    candidates: List[Tuple[int, Rule]] = []
    exclusions: List[Exclusion] = []

    for index, rule in enumerate(rules):
        reason = exclusion_reason(rule, context)
        if reason is None:
            candidates.append((index, rule))
        else:
            exclusions.append(Exclusion(rule_id=rule.rule_id, reason=reason))

    return Applicability(candidates=candidates, exclusions=exclusions)
