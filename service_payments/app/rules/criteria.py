"""
Generic criterion evaluation for convention rules.

Every failure mode (missing field, unknown operator, unparsable operand,
bad pattern) evaluates to False so one malformed criterion never aborts
an evaluation.
"""

import json
import re
from typing import Any, Iterable, Optional

from shared.logging import get_logger

from .models import Context, Criterion, CriterionOperator, as_decimal

logger = get_logger("payments.criteria")


def _as_sequence(operand: Any) -> Optional[list]:
    if isinstance(operand, str):
        try:
            operand = json.loads(operand)
        except ValueError:
            return None
    if isinstance(operand, (list, tuple, set, frozenset)):
        return list(operand)
    return None


def _matches_in(value: Any, operand: Any) -> bool:
    members = _as_sequence(operand)
    if members is None:
        return False
    return value in members


def _matches_between(value: Any, operand: Any) -> bool:
    bounds = _as_sequence(operand)
    if bounds is None or len(bounds) != 2:
        return False
    number = as_decimal(value)
    low, high = as_decimal(bounds[0]), as_decimal(bounds[1])
    if number is None or low is None or high is None:
        return False
    return low <= number <= high


def _compare(value: Any, operand: Any, operator: str) -> bool:
    number, limit = as_decimal(value), as_decimal(operand)
    if number is None or limit is None:
        return False
    if operator == CriterionOperator.GTE.value:
        return number >= limit
    return number <= limit


def _matches_regex(value: Any, operand: Any) -> bool:
    try:
        pattern = re.compile(str(operand), re.IGNORECASE)
    except re.error:
        return False
    return pattern.search(str(value)) is not None


def evaluate_criterion(criterion: Criterion, context: Context) -> bool:
    """Evaluate one criterion against a normalized context."""
    value = context.get(criterion.key)
    if value is None:
        return False

    operator = str(criterion.operator).lower()
    operand = criterion.operand

    if operator == CriterionOperator.EQ.value:
        return value == operand
    if operator == CriterionOperator.IN.value:
        return _matches_in(value, operand)
    if operator == CriterionOperator.LIKE.value:
        return str(operand).lower() in str(value).lower()
    if operator in (CriterionOperator.GTE.value, CriterionOperator.LTE.value):
        return _compare(value, operand, operator)
    if operator == CriterionOperator.BETWEEN.value:
        return _matches_between(value, operand)
    if operator == CriterionOperator.REGEX.value:
        return _matches_regex(value, operand)

    logger.debug("Unknown criterion operator", key=criterion.key, operator=criterion.operator)
    return False


def evaluate_all(criteria: Iterable[Criterion], context: Context) -> bool:
    """Logical AND over `criteria`; an empty list always holds."""
    return all(evaluate_criterion(criterion, context) for criterion in criteria)
