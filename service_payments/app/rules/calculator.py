"""
Payment calculation for the winning rule.

All arithmetic is decimal. Percentages are in percent units everywhere
(`10` means 10%). Results are floored at zero.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from .criteria import evaluate_all
from .models import (
    AppliedBonus, Band, Calculation, Context, CriteriaTargeting, CumulativeBandedPayment,
    DirectTablePayment, FactorPayment, FixedPayment, PaymentModel, PercentagePayment,
    PercentagePlusFixedPayment, RateKind, Rule, TieredByAmountPayment, TieredByQuantityPayment,
    as_decimal,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def format_amount(value: Decimal) -> str:
    """Render an amount with thousands separators and no float noise."""
    if value == value.to_integral_value():
        return f"{int(value):,}"
    return f"{value:,f}"


def format_percentage(value: Decimal) -> str:
    return f"{format_amount(value)}%"


def round_half_away(value: Decimal) -> Decimal:
    """Round to a whole unit, halves away from zero."""
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def _sorted_bands(bands) -> List[Band]:
    return sorted(bands, key=lambda band: band.lower)


def _find_band(bands, key: Decimal) -> Optional[Band]:
    for band in _sorted_bands(bands):
        if band.contains(key):
            return band
    return None


def _tiered(bands, default_percentage: Decimal, key: Optional[Decimal], base: Decimal,
            key_label: str) -> Tuple[Decimal, str, List[str]]:
    band = _find_band(bands, key) if key is not None else None
    if band is None:
        shown = "missing" if key is None else format_amount(key)
        warning = (f"No band matches {key_label} {shown}; "
                   f"default percentage {format_percentage(default_percentage)} applied")
        amount = base * default_percentage / HUNDRED
        formula = f"{format_amount(base)} x {format_percentage(default_percentage)} (default) = {format_amount(amount)}"
        return amount, formula, [warning]

    amount = base * band.value / HUNDRED
    formula = (f"{key_label} {format_amount(key)} in band {band.label()}: "
               f"{format_amount(base)} x {format_percentage(band.value)} = {format_amount(amount)}")
    return amount, formula, []


def _cumulative(payment: CumulativeBandedPayment, base: Decimal) -> Tuple[Decimal, str, List[str]]:
    total = ZERO
    allocated = ZERO
    parts: List[str] = []

    for band in _sorted_bands(payment.bands):
        portion = band.portion_of(base)
        if portion <= ZERO:
            continue
        if band.rate_kind == RateKind.FIXED:
            contribution = band.value
            parts.append(f"{band.label()} fixed {format_amount(band.value)}")
        else:
            contribution = portion * band.value / HUNDRED
            parts.append(f"{format_amount(portion)} x {format_percentage(band.value)}")
        total += contribution
        allocated += portion

    warnings = []
    if allocated < base:
        warnings.append(f"{format_amount(base - allocated)} of the base amount falls outside every band")

    formula = " + ".join(parts) if parts else "no band applies"
    return total, f"{formula} = {format_amount(total)}", warnings


def _direct(payment: DirectTablePayment, base: Decimal) -> Tuple[Decimal, str, List[str]]:
    band = _find_band(payment.bands, base)
    if band is None:
        return ZERO, f"no band contains {format_amount(base)}", [
            f"No table band contains base amount {format_amount(base)}"
        ]
    return band.value, f"{format_amount(base)} in band {band.label()} = {format_amount(band.value)}", []


def apply_payment(payment: PaymentModel, base: Decimal,
                  context: Optional[Context] = None) -> Tuple[Decimal, str, List[str]]:
    """Apply one payment model; returns (amount, formula, warnings)."""
    if isinstance(payment, FixedPayment):
        return payment.value, f"fixed amount {format_amount(payment.value)}", []

    if isinstance(payment, PercentagePayment):
        amount = round_half_away(base * payment.value / HUNDRED)
        return amount, (f"{format_amount(base)} x {format_percentage(payment.value)} "
                        f"= {format_amount(amount)} (rounded)"), []

    if isinstance(payment, FactorPayment):
        amount = base * payment.value
        return amount, f"{format_amount(base)} x {format_amount(payment.value)} = {format_amount(amount)}", []

    if isinstance(payment, PercentagePlusFixedPayment):
        amount = base * payment.percentage / HUNDRED + payment.fixed
        return amount, (f"{format_amount(base)} x {format_percentage(payment.percentage)} "
                        f"+ {format_amount(payment.fixed)} = {format_amount(amount)}"), []

    if isinstance(payment, TieredByAmountPayment):
        return _tiered(payment.bands, payment.default_percentage, base, base, "amount")

    if isinstance(payment, TieredByQuantityPayment):
        quantity = as_decimal(context.get(payment.quantity_key)) if context is not None else None
        return _tiered(payment.bands, payment.default_percentage, quantity, base, "quantity")

    if isinstance(payment, CumulativeBandedPayment):
        return _cumulative(payment, base)

    if isinstance(payment, DirectTablePayment):
        return _direct(payment, base)

    raise TypeError(f"Unsupported payment model: {type(payment).__name__}")


def resolve_base_amount(rule: Rule, context: Context) -> Tuple[Optional[Decimal], Optional[str]]:
    """Amount the rule's formula applies to, or (None, warning)."""
    if rule.value_base is None:
        return as_decimal(context.base_amount), None

    value = as_decimal(context.get(rule.value_base))
    if value is None or value < ZERO:
        return None, f"Invalid base amount in attribute '{rule.value_base}' for rule {rule.code}"
    return value, None


def reference_value(rule: Rule, context: Optional[Context], base: Decimal) -> Decimal:
    """Rule payout at a fixed reference base, used to break ties."""
    amount, _, _ = apply_payment(rule.payment, base, context)
    return max(ZERO, amount)


def _applied_bonuses(rule: Rule, context: Context, base: Decimal) -> List[AppliedBonus]:
    if not isinstance(rule.targeting, CriteriaTargeting):
        return []
    bonuses = []
    for bonus in rule.targeting.bonuses:
        if evaluate_all(bonus.criteria, context):
            bonuses.append(AppliedBonus(
                description=bonus.description,
                percentage=bonus.percentage,
                amount=base * bonus.percentage / HUNDRED,
            ))
    return bonuses


def calculate(rule: Rule, context: Context) -> Calculation:
    """Compute the payment owed under `rule` for a normalized context."""
    base, warning = resolve_base_amount(rule, context)
    if base is None:
        return Calculation(amount=ZERO, base_amount=ZERO, formula="no valid base amount",
                           warnings=(warning,))

    amount, formula, warnings = apply_payment(rule.payment, base, context)

    bonuses = _applied_bonuses(rule, context, base)
    for bonus in bonuses:
        amount += bonus.amount
        formula += f" + bonus {format_percentage(bonus.percentage)} ({format_amount(bonus.amount)})"

    if amount < ZERO:
        warnings.append(f"Computed amount {format_amount(amount)} floored at zero")
        amount = ZERO

    return Calculation(
        amount=amount,
        base_amount=base,
        formula=formula,
        warnings=tuple(warnings),
        bonuses=tuple(bonuses),
    )
