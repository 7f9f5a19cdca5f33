"""
Validation of persisted rule records.

Rule records arrive as loosely-typed mappings (YAML documents, JSON request
bodies). They are validated here, at the repository boundary, so a
malformed payment model fails fast instead of silently paying a fallback.
Criterion operators are not checked here: an unknown operator
only makes its own criterion false at evaluation time.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Iterable, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from shared.errors import RuleDefinitionError

from .models import (
    Band, Bonus, CriteriaTargeting, Criterion, CumulativeBandedPayment, DEFAULT_PRIORITY,
    DirectTablePayment, DiscreteTargeting, FactorPayment, FixedPayment, ParticipationType,
    PercentagePayment, PercentagePlusFixedPayment, RateKind, Rule, ScheduleType,
    TieredByAmountPayment, TieredByQuantityPayment, WEEKDAYS,
)


class BandRecord(BaseModel):
    """One band of a payment table: `[from, to)`."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    lower: Decimal = Field(..., alias="from", ge=0)
    upper: Optional[Decimal] = Field(None, alias="to")
    value: Decimal = Field(..., ge=0)
    rate_kind: RateKind = RateKind.PERCENTAGE

    @model_validator(mode="after")
    def check_range(self):
        if self.upper is not None and self.upper <= self.lower:
            raise ValueError("band 'to' must be greater than 'from'")
        return self

    def to_band(self) -> Band:
        return Band(lower=self.lower, upper=self.upper, value=self.value, rate_kind=self.rate_kind)


def _check_bands(bands: List[BandRecord]) -> List[BandRecord]:
    if not bands:
        raise ValueError("at least one band is required")
    ordered = sorted(bands, key=lambda band: band.lower)
    for previous, current in zip(ordered, ordered[1:]):
        if previous.upper is None or previous.upper > current.lower:
            raise ValueError(f"bands overlap at {current.lower}")
    return bands


class _BandedRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bands: List[BandRecord]

    @field_validator("bands")
    @classmethod
    def check_bands(cls, bands):
        return _check_bands(bands)

    def _bands(self):
        return tuple(sorted((band.to_band() for band in self.bands), key=lambda band: band.lower))


class FixedRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["fixed"]
    value: Decimal = Field(..., ge=0)

    def to_payment(self):
        return FixedPayment(value=self.value)


class PercentageRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["percentage"]
    value: Decimal = Field(..., ge=0, le=100)

    def to_payment(self):
        return PercentagePayment(value=self.value)


class FactorRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["factor"]
    value: Decimal = Field(..., ge=0)

    def to_payment(self):
        return FactorPayment(value=self.value)


class PercentagePlusFixedRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["percentage_plus_fixed"]
    percentage: Decimal = Field(..., ge=0, le=100)
    fixed: Decimal = Field(..., ge=0)

    def to_payment(self):
        return PercentagePlusFixedPayment(percentage=self.percentage, fixed=self.fixed)


class TieredByAmountRecord(_BandedRecord):
    type: Literal["tiered_by_amount"]
    default_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)

    def to_payment(self):
        return TieredByAmountPayment(bands=self._bands(), default_percentage=self.default_percentage)


class TieredByQuantityRecord(_BandedRecord):
    type: Literal["tiered_by_quantity"]
    default_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    quantity_key: str = "quantity"

    def to_payment(self):
        return TieredByQuantityPayment(
            bands=self._bands(),
            default_percentage=self.default_percentage,
            quantity_key=self.quantity_key,
        )


class CumulativeBandedRecord(_BandedRecord):
    type: Literal["cumulative_banded"]

    def to_payment(self):
        return CumulativeBandedPayment(bands=self._bands())


class DirectTableRecord(_BandedRecord):
    type: Literal["direct_table"]

    def to_payment(self):
        return DirectTablePayment(bands=self._bands())


PaymentRecord = Annotated[
    Union[
        FixedRecord,
        PercentageRecord,
        FactorRecord,
        PercentagePlusFixedRecord,
        TieredByAmountRecord,
        TieredByQuantityRecord,
        CumulativeBandedRecord,
        DirectTableRecord,
    ],
    Field(discriminator="type"),
]


class CriterionRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str = Field(..., min_length=1)
    operator: str = "eq"
    value: Any = None
    description: Optional[str] = None

    def to_criterion(self) -> Criterion:
        operand = self.value
        if isinstance(operand, list):
            operand = tuple(operand)
        return Criterion(key=self.key, operator=self.operator, operand=operand,
                         description=self.description)


class BonusRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str
    percentage: Decimal = Field(..., ge=0, le=100)
    criteria: List[CriterionRecord] = Field(default_factory=list)

    def to_bonus(self) -> Bonus:
        return Bonus(
            description=self.description,
            percentage=self.percentage,
            criteria=tuple(c.to_criterion() for c in self.criteria),
        )


class RuleRecord(BaseModel):
    """Persisted shape of a rule (calculation rule or convention)."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    name: str
    description: Optional[str] = None
    valid_from: date
    valid_to: Optional[date] = None
    active: bool = True
    priority: int = DEFAULT_PRIORITY
    created_at: Optional[date] = None
    value_base: Optional[str] = None
    payment: PaymentRecord

    # Calculation-rule dimensions
    doctor_id: Optional[str] = None
    service_id: Optional[str] = None
    specialty_id: Optional[str] = None
    society_id: Optional[str] = None
    schedule_type: Optional[ScheduleType] = None
    applicable_days: List[str] = Field(default_factory=list)
    participation_type: Optional[ParticipationType] = None

    # Convention criteria
    criteria: Optional[List[CriterionRecord]] = None
    bonuses: List[BonusRecord] = Field(default_factory=list)

    @field_validator("schedule_type", "participation_type", mode="before")
    @classmethod
    def lower_case_enum(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("applicable_days")
    @classmethod
    def check_days(cls, days):
        normalized = [str(day).strip().lower() for day in days]
        unknown = [day for day in normalized if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"unknown weekdays: {', '.join(unknown)}")
        return normalized

    @model_validator(mode="after")
    def check_rule(self):
        if self.valid_to is not None and self.valid_from > self.valid_to:
            raise ValueError("valid_from must not be after valid_to")
        if self.is_convention and self._discrete_fields():
            raise ValueError(
                "a rule uses either criteria or discrete dimensions, not both: "
                + ", ".join(self._discrete_fields())
            )
        return self

    @property
    def is_convention(self) -> bool:
        return self.criteria is not None or bool(self.bonuses)

    def _discrete_fields(self) -> List[str]:
        names = ("doctor_id", "service_id", "specialty_id", "society_id",
                 "schedule_type", "applicable_days", "participation_type")
        return [name for name in names if getattr(self, name)]

    def _targeting(self):
        if self.is_convention:
            return CriteriaTargeting(
                criteria=tuple(c.to_criterion() for c in self.criteria or ()),
                bonuses=tuple(b.to_bonus() for b in self.bonuses),
            )
        return DiscreteTargeting(
            doctor_id=self.doctor_id,
            service_id=self.service_id,
            specialty_id=self.specialty_id,
            society_id=self.society_id,
            schedule_type=self.schedule_type.value if self.schedule_type else None,
            applicable_days=frozenset(self.applicable_days),
            participation_type=self.participation_type.value if self.participation_type else None,
        )

    def to_rule(self) -> Rule:
        return Rule(
            rule_id=self.id,
            code=self.code,
            name=self.name,
            description=self.description,
            valid_from=self.valid_from,
            valid_to=self.valid_to,
            active=self.active,
            priority=self.priority,
            created_at=self.created_at,
            value_base=self.value_base,
            payment=self.payment.to_payment(),
            targeting=self._targeting(),
        )


def _error_details(error: ValidationError) -> List[dict]:
    return [
        {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
        for err in error.errors()
    ]


def parse_rule(data: Mapping[str, Any]) -> Rule:
    """Validate one rule record; raises RuleDefinitionError."""
    if isinstance(data, RuleRecord):
        return data.to_rule()
    if not isinstance(data, Mapping):
        raise RuleDefinitionError("Rule record must be a mapping", details={"record": repr(data)})
    try:
        return RuleRecord.model_validate(dict(data)).to_rule()
    except ValidationError as e:
        raise RuleDefinitionError(
            f"Invalid rule record '{data.get('id', '?')}'",
            details={"rule_id": data.get("id"), "errors": _error_details(e)},
        ) from e


def parse_rules(records: Iterable[Mapping[str, Any]]) -> List[Rule]:
    """Validate a collection of rule records, failing on the first bad one."""
    return [parse_rule(record) for record in records]
