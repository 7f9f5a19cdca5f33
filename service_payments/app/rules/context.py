"""
Billing-event normalization.
"""

from datetime import date, datetime
from typing import Any, Dict

from .models import Context, WEEKDAYS

# Attributes compared case-insensitively by the matchers.
CATEGORICAL_FIELDS = (
    "specialty_id",
    "specialty",
    "schedule_type",
    "participation_type",
    "weekday",
    "service_type",
    "patient_role",
    "day_type",
)


def weekday_of(day: date) -> str:
    """English weekday name of a calendar date."""
    return WEEKDAYS[day.weekday()]


def normalize_context(context: Context) -> Context:
    """Return a canonical copy of `context`.

    Categorical strings are lower-cased and `weekday` is derived from the
    event date unless the caller supplied one. The input is not modified.
    """
    attributes: Dict[str, Any] = dict(context.attributes)

    for key in CATEGORICAL_FIELDS:
        value = attributes.get(key)
        if isinstance(value, str):
            attributes[key] = value.strip().lower()

    event_date = context.event_date
    if isinstance(event_date, datetime):
        event_date = event_date.date()

    if not attributes.get("weekday") and isinstance(event_date, date):
        attributes["weekday"] = weekday_of(event_date)

    return Context(
        event_date=event_date,
        base_amount=context.base_amount,
        attributes=attributes,
    )
