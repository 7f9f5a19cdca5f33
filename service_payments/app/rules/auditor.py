"""
Offline conflict audit over the active-rule collection.

Pairs of calculation rules for the same specialty whose validity windows
overlap are flagged when they pin down the same doctor, service,
participation type or schedule. The report is for human review and does
not influence evaluation.
"""

from itertools import combinations
from typing import Iterable, List, Optional

from shared.logging import get_logger

from .models import ConflictReport, DiscreteTargeting, PercentagePayment, Rule, ScheduleType

logger = get_logger("payments.auditor")

OVERLAP = "overlap"
PERCENTAGE_SUM_EXCEEDS_100 = "percentage_sum_exceeds_100"

AUDITED_DIMENSIONS = (
    ("doctor", "doctor_id"),
    ("service", "service_id"),
    ("participation_type", "participation_type"),
    ("schedule_type", "schedule_type"),
)


def _dimension_value(targeting: DiscreteTargeting, attribute: str) -> Optional[str]:
    value = getattr(targeting, attribute)
    if not value:
        return None
    if attribute in ("participation_type", "schedule_type"):
        value = value.lower()
        if value == ScheduleType.ALL.value:
            return None
    return value


def shared_dimensions(first: DiscreteTargeting, second: DiscreteTargeting) -> List[str]:
    """Dimensions on which both rules target the same non-null value."""
    shared = []
    for name, attribute in AUDITED_DIMENSIONS:
        value = _dimension_value(first, attribute)
        if value is not None and value == _dimension_value(second, attribute):
            shared.append(name)
    return shared


def _same_specialty(first: DiscreteTargeting, second: DiscreteTargeting) -> bool:
    return (first.specialty_id or "").lower() == (second.specialty_id or "").lower()


def _percentage_sum_report(first: Rule, second: Rule) -> Optional[ConflictReport]:
    if not (isinstance(first.payment, PercentagePayment) and isinstance(second.payment, PercentagePayment)):
        return None
    total = first.payment.value + second.payment.value
    if total <= 100:
        return None
    return ConflictReport(
        rule_ids=(first.rule_id, second.rule_id),
        dimensions=("payment",),
        reason=f"Percentages of {first.code} and {second.code} add up to {total}%",
        code=PERCENTAGE_SUM_EXCEEDS_100,
    )


def audit_conflicts(rules: Iterable[Rule]) -> List[ConflictReport]:
    """Flag ambiguous pairs among active calculation rules."""
    audited = [rule for rule in rules if rule.active and rule.is_discrete]
    reports: List[ConflictReport] = []

    for first, second in combinations(audited, 2):
        if not _same_specialty(first.targeting, second.targeting):
            continue
        if not first.overlaps(second):
            continue

        dimensions = shared_dimensions(first.targeting, second.targeting)
        if not dimensions:
            continue

        reports.append(ConflictReport(
            rule_ids=(first.rule_id, second.rule_id),
            dimensions=tuple(dimensions),
            reason=(f"Rules {first.code} and {second.code} share {', '.join(dimensions)} "
                    f"for the same specialty with overlapping validity"),
            code=OVERLAP,
        ))

        extra = _percentage_sum_report(first, second)
        if extra is not None:
            reports.append(extra)

    logger.debug("Conflict audit finished", rules=len(audited), conflicts=len(reports))
    return reports


def audit_repository(repository) -> List[ConflictReport]:
    """Audit the repository's active rules; repository errors propagate."""
    return audit_conflicts(repository.list_active_rules())
