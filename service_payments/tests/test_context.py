"""
Unit tests for billing-event normalization.
"""

from datetime import date, datetime

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_payments.app.rules.context import normalize_context, weekday_of
from service_payments.app.rules.models import Context


class TestNormalizeContext:
    """Test cases for normalize_context."""

    def test_lower_cases_categorical_fields(self):
        """Test categorical attributes are lower-cased and trimmed."""
        context = Context(date(2024, 6, 5), 1000, {
            "specialty_id": " Cardiology ",
            "schedule_type": "NIGHT",
            "participation_type": "Individual",
        })

        normalized = normalize_context(context)

        assert normalized.get("specialty_id") == "cardiology"
        assert normalized.get("schedule_type") == "night"
        assert normalized.get("participation_type") == "individual"

    def test_identifiers_are_untouched(self):
        """Test non-categorical attributes keep their value."""
        context = Context(date(2024, 6, 5), 1000, {"doctor_id": "D-1"})
        assert normalize_context(context).get("doctor_id") == "D-1"

    def test_derives_weekday(self):
        """Test weekday is derived from the event date."""
        normalized = normalize_context(Context(date(2024, 6, 5), 1000, {}))
        assert normalized.get("weekday") == "wednesday"

    def test_keeps_supplied_weekday(self):
        """Test a caller-supplied weekday wins over the derived one."""
        normalized = normalize_context(Context(date(2024, 6, 5), 1000, {"weekday": "Sunday"}))
        assert normalized.get("weekday") == "sunday"

    def test_datetime_is_reduced_to_date(self):
        """Test datetimes are compared as calendar dates."""
        normalized = normalize_context(Context(datetime(2024, 6, 8, 23, 30), 1000, {}))
        assert normalized.event_date == date(2024, 6, 8)
        assert normalized.get("weekday") == "saturday"

    def test_input_is_not_modified(self):
        """Test normalization returns a copy."""
        attributes = {"specialty_id": "Cardiology"}
        context = Context(date(2024, 6, 5), 1000, attributes)

        normalize_context(context)

        assert attributes == {"specialty_id": "Cardiology"}
        assert context.get("weekday") is None


def test_weekday_of():
    """Test English weekday names."""
    assert weekday_of(date(2024, 6, 3)) == "monday"
    assert weekday_of(date(2024, 6, 9)) == "sunday"
