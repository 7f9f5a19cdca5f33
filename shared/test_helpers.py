"""
Test helper functions and factory methods for the Professional Fees layer.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import yaml

from service_payments.app.rules.models import (
    Band, Bonus, Context, CriteriaTargeting, Criterion, DiscreteTargeting, FixedPayment,
    PercentagePayment, RateKind, Rule,
)


DEFAULT_VALID_FROM = date(2024, 1, 1)


class RuleFactory:
    """Factory for rules and billing events."""

    @staticmethod
    def discrete(rule_id: str, payment=None, valid_from: date = DEFAULT_VALID_FROM,
                 valid_to: Optional[date] = None, active: bool = True,
                 created_at: Optional[date] = None, value_base: Optional[str] = None,
                 **targeting) -> Rule:
        """Calculation rule; keyword arguments are DiscreteTargeting fields."""
        if "applicable_days" in targeting:
            targeting["applicable_days"] = frozenset(targeting["applicable_days"])
        return Rule(
            rule_id=rule_id,
            code=rule_id.upper(),
            name=f"Rule {rule_id}",
            valid_from=valid_from,
            valid_to=valid_to,
            active=active,
            created_at=created_at,
            value_base=value_base,
            payment=payment or PercentagePayment(Decimal("10")),
            targeting=DiscreteTargeting(**targeting),
        )

    @staticmethod
    def convention(rule_id: str, criteria=(), payment=None, priority: int = 100,
                   bonuses=(), valid_from: date = DEFAULT_VALID_FROM,
                   valid_to: Optional[date] = None) -> Rule:
        """Convention rule from (key, operator, operand) triples."""
        return Rule(
            rule_id=rule_id,
            code=rule_id.upper(),
            name=f"Convention {rule_id}",
            valid_from=valid_from,
            valid_to=valid_to,
            priority=priority,
            payment=payment or PercentagePayment(Decimal("10")),
            targeting=CriteriaTargeting(
                criteria=tuple(Criterion(key, op, operand) for key, op, operand in criteria),
                bonuses=tuple(bonuses),
            ),
        )

    @staticmethod
    def bonus(description: str, percentage: str, criteria=()) -> Bonus:
        return Bonus(
            description=description,
            percentage=Decimal(percentage),
            criteria=tuple(Criterion(key, op, operand) for key, op, operand in criteria),
        )

    @staticmethod
    def band(lower, upper, value, rate_kind: RateKind = RateKind.PERCENTAGE) -> Band:
        return Band(
            lower=Decimal(str(lower)),
            upper=None if upper is None else Decimal(str(upper)),
            value=Decimal(str(value)),
            rate_kind=rate_kind,
        )

    @staticmethod
    def fixed(value) -> FixedPayment:
        return FixedPayment(Decimal(str(value)))

    @staticmethod
    def percentage(value) -> PercentagePayment:
        return PercentagePayment(Decimal(str(value)))

    @staticmethod
    def context(event_date: Optional[date] = date(2024, 6, 5), base_amount: Any = 100000,
                **attributes) -> Context:
        """Billing event; 2024-06-05 is a Wednesday."""
        return Context(event_date=event_date, base_amount=base_amount, attributes=attributes)


class RecordFactory:
    """Factory for persisted rule records (YAML / JSON shape)."""

    @staticmethod
    def rule_record(rule_id: str, **overrides) -> Dict[str, Any]:
        record = {
            "id": rule_id,
            "code": rule_id.upper(),
            "name": f"Rule {rule_id}",
            "valid_from": "2024-01-01",
            "payment": {"type": "percentage", "value": 10},
        }
        record.update(overrides)
        return record

    @staticmethod
    def cardiology_records() -> List[Dict[str, Any]]:
        """A general specialty rule and a doctor-specific one."""
        return [
            RecordFactory.rule_record(
                "card-general",
                name="Cardiology general",
                specialty_id="cardiology",
                payment={"type": "percentage", "value": 30},
            ),
            RecordFactory.rule_record(
                "card-doctor",
                name="Cardiology Dr. Soto",
                specialty_id="cardiology",
                doctor_id="d-1",
                payment={"type": "percentage", "value": 40},
            ),
        ]

    @staticmethod
    def reference_section() -> Dict[str, Dict[str, str]]:
        return {
            "doctors": {"d-1": "Dr. Ana Soto"},
            "services": {"s-1": "Consultation"},
            "specialties": {"cardiology": "Cardiology"},
            "societies": {"soc-1": "Heart Partners"},
        }

    @staticmethod
    def write_rules_file(path, records: List[Dict[str, Any]],
                         reference: Optional[Dict[str, Any]] = None) -> str:
        """Write a YAML rules document and return its path."""
        document: Dict[str, Any] = {"rules": records}
        if reference is not None:
            document["reference"] = reference
        with open(path, "w", encoding="utf-8") as stream:
            yaml.safe_dump(document, stream, sort_keys=False)
        return str(path)
