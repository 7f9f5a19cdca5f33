"""
Rule data models for the Payments Service.

Rules are immutable snapshots handed to the engine by a repository. A rule
pairs a targeting specification (discrete dimensions or generic criteria)
with exactly one payment model.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from shared.errors import RuleDefinitionError


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
WEEKEND_DAYS = frozenset({"saturday", "sunday"})

# Percentage rules are compared as if they were applied to this amount.
REFERENCE_BASE_AMOUNT = Decimal("100000")
DEFAULT_PRIORITY = 100


class PaymentKind(str, Enum):
    """Payment model variants."""
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    FACTOR = "factor"
    PERCENTAGE_PLUS_FIXED = "percentage_plus_fixed"
    TIERED_BY_AMOUNT = "tiered_by_amount"
    TIERED_BY_QUANTITY = "tiered_by_quantity"
    CUMULATIVE_BANDED = "cumulative_banded"
    DIRECT_TABLE = "direct_table"


class RateKind(str, Enum):
    """How a band value is applied."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ParticipationType(str, Enum):
    """How the professional takes part in the billed event."""
    INDIVIDUAL = "individual"
    SOCIETY = "society"
    MIXED = "mixed"


class ScheduleType(str, Enum):
    """Schedule the event happened in."""
    ALL = "all"
    REGULAR = "regular"
    IRREGULAR = "irregular"
    NIGHT = "night"


class CriterionOperator(str, Enum):
    """Generic criterion operators."""
    EQ = "eq"
    IN = "in"
    LIKE = "like"
    GTE = "gte"
    LTE = "lte"
    BETWEEN = "between"
    REGEX = "regex"


class ResolutionPolicy(str, Enum):
    """Ordering used to pick one rule among candidates."""
    SPECIFICITY = "specificity"
    PRIORITY = "priority"


class ExclusionReason(str, Enum):
    """Why a rule did not become a candidate."""
    INACTIVE = "inactive"
    OUTSIDE_VALIDITY = "outside_validity"
    SPECIALTY_MISMATCH = "specialty_mismatch"
    WEEKDAY_MISMATCH = "weekday_mismatch"
    CRITERIA_NOT_MET = "criteria_not_met"


def as_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a number or numeric string to Decimal; None when not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float, str)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not number.is_finite():
        return None
    return number


# ---------- Payment models ----------


@dataclass(frozen=True)
class Band:
    """A `[lower, upper)` range of a banded payment table.

    `upper` of None means unbounded. `value` is a percentage (percent units)
    or a flat amount depending on `rate_kind`.
    """
    lower: Decimal
    upper: Optional[Decimal]
    value: Decimal
    rate_kind: RateKind = RateKind.PERCENTAGE

    def contains(self, amount: Decimal) -> bool:
        return amount >= self.lower and (self.upper is None or amount < self.upper)

    def portion_of(self, amount: Decimal) -> Decimal:
        """Part of `amount` (counted from zero) that falls inside this band."""
        top = amount if self.upper is None else min(amount, self.upper)
        return max(Decimal("0"), top - self.lower)

    def label(self) -> str:
        upper = "inf" if self.upper is None else f"{self.upper:,}"
        return f"[{self.lower:,}, {upper})"


@dataclass(frozen=True)
class FixedPayment:
    kind: ClassVar[PaymentKind] = PaymentKind.FIXED
    value: Decimal


@dataclass(frozen=True)
class PercentagePayment:
    kind: ClassVar[PaymentKind] = PaymentKind.PERCENTAGE
    value: Decimal


@dataclass(frozen=True)
class FactorPayment:
    kind: ClassVar[PaymentKind] = PaymentKind.FACTOR
    value: Decimal


@dataclass(frozen=True)
class PercentagePlusFixedPayment:
    kind: ClassVar[PaymentKind] = PaymentKind.PERCENTAGE_PLUS_FIXED
    percentage: Decimal
    fixed: Decimal


@dataclass(frozen=True)
class TieredByAmountPayment:
    """Whole-amount banding: one band's percentage applies to the full base."""
    kind: ClassVar[PaymentKind] = PaymentKind.TIERED_BY_AMOUNT
    bands: Tuple[Band, ...]
    default_percentage: Decimal = Decimal("0")


@dataclass(frozen=True)
class TieredByQuantityPayment:
    """Same banding as TieredByAmountPayment keyed on a transaction count."""
    kind: ClassVar[PaymentKind] = PaymentKind.TIERED_BY_QUANTITY
    bands: Tuple[Band, ...]
    default_percentage: Decimal = Decimal("0")
    quantity_key: str = "quantity"


@dataclass(frozen=True)
class CumulativeBandedPayment:
    """Progressive banding: each band's rate applies to its own slice."""
    kind: ClassVar[PaymentKind] = PaymentKind.CUMULATIVE_BANDED
    bands: Tuple[Band, ...]


@dataclass(frozen=True)
class DirectTablePayment:
    kind: ClassVar[PaymentKind] = PaymentKind.DIRECT_TABLE
    bands: Tuple[Band, ...]


PaymentModel = Union[
    FixedPayment,
    PercentagePayment,
    FactorPayment,
    PercentagePlusFixedPayment,
    TieredByAmountPayment,
    TieredByQuantityPayment,
    CumulativeBandedPayment,
    DirectTablePayment,
]


# ---------- Targeting ----------


@dataclass(frozen=True)
class Criterion:
    """Generic predicate: context[key] <operator> operand.

    The operator is kept as a plain string so an unknown operator reaches the
    evaluator and fails only this criterion.
    """
    key: str
    operator: str
    operand: Any
    description: Optional[str] = None


@dataclass(frozen=True)
class Bonus:
    """Stackable convention bonus: extra percentage when its criteria match."""
    description: str
    percentage: Decimal
    criteria: Tuple[Criterion, ...] = ()


@dataclass(frozen=True)
class DiscreteTargeting:
    """Calculation-rule targeting; None on a dimension means any value."""
    doctor_id: Optional[str] = None
    service_id: Optional[str] = None
    specialty_id: Optional[str] = None
    society_id: Optional[str] = None
    schedule_type: Optional[str] = None
    applicable_days: FrozenSet[str] = frozenset()
    participation_type: Optional[str] = None

    @property
    def targets_schedule(self) -> bool:
        return bool(self.schedule_type) and self.schedule_type != ScheduleType.ALL.value


@dataclass(frozen=True)
class CriteriaTargeting:
    """Convention targeting: all criteria must hold."""
    criteria: Tuple[Criterion, ...] = ()
    bonuses: Tuple[Bonus, ...] = ()


Targeting = Union[DiscreteTargeting, CriteriaTargeting]


@dataclass(frozen=True)
class Rule:
    """Payment rule."""
    rule_id: str
    code: str
    name: str
    valid_from: date
    payment: PaymentModel
    targeting: Targeting = field(default_factory=DiscreteTargeting)
    valid_to: Optional[date] = None
    active: bool = True
    priority: int = DEFAULT_PRIORITY
    created_at: Optional[date] = None
    value_base: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if self.valid_to is not None and self.valid_from > self.valid_to:
            raise RuleDefinitionError(
                "valid_from must not be after valid_to",
                details={"rule_id": self.rule_id}
            )

    @property
    def is_discrete(self) -> bool:
        return isinstance(self.targeting, DiscreteTargeting)

    def is_valid_on(self, day: date) -> bool:
        if day < self.valid_from:
            return False
        return self.valid_to is None or day <= self.valid_to

    def overlaps(self, other: "Rule") -> bool:
        """Whether both validity windows share at least one day."""
        if self.valid_to is not None and self.valid_to < other.valid_from:
            return False
        if other.valid_to is not None and other.valid_to < self.valid_from:
            return False
        return True


# ---------- Evaluation context and results ----------


@dataclass(frozen=True)
class Context:
    """A billing event."""
    event_date: Optional[date]
    base_amount: Any
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)


@dataclass(frozen=True)
class ReferenceData:
    """Display-name lookups injected by the caller."""
    doctor_by_id: Any = None
    service_by_id: Any = None
    specialty_by_id: Any = None
    society_by_id: Any = None

    def name_of(self, dimension: str, value: Optional[str]) -> Optional[str]:
        lookup = getattr(self, f"{dimension}_by_id", None)
        if value is None or lookup is None:
            return None
        return lookup(value)


@dataclass(frozen=True)
class Exclusion:
    rule_id: str
    reason: ExclusionReason


@dataclass(frozen=True)
class Candidate:
    """A rule that passed the applicability filter, with its ordering keys."""
    rule: Rule
    index: int
    reference_value: Decimal
    score: Optional[float] = None


@dataclass(frozen=True)
class TraceStep:
    stage: str
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AppliedBonus:
    description: str
    percentage: Decimal
    amount: Decimal


@dataclass(frozen=True)
class Calculation:
    """Outcome of applying one payment model."""
    amount: Decimal
    base_amount: Decimal
    formula: str
    warnings: Tuple[str, ...] = ()
    bonuses: Tuple[AppliedBonus, ...] = ()


@dataclass(frozen=True)
class DecisionResult:
    """Result of one evaluation."""
    selected_rule: Optional[Rule]
    amount: Decimal
    policy: ResolutionPolicy
    base_amount: Decimal
    alternatives: Tuple[Rule, ...] = ()
    candidates: Tuple[Candidate, ...] = ()
    explanation: str = ""
    warnings: Tuple[str, ...] = ()
    bonuses: Tuple[AppliedBonus, ...] = ()
    trace: Tuple[TraceStep, ...] = ()

    @property
    def selected_rule_id(self) -> Optional[str]:
        return self.selected_rule.rule_id if self.selected_rule else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_rule_id": self.selected_rule_id,
            "amount": str(self.amount),
            "policy": self.policy.value,
            "alternatives": [r.rule_id for r in self.alternatives],
            "explanation": self.explanation,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ConflictReport:
    """Two rules whose targeting overlaps ambiguously."""
    rule_ids: Tuple[str, str]
    dimensions: Tuple[str, ...]
    reason: str
    code: str = "overlap"
