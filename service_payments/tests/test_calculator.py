"""
Unit tests for the payment calculator.
"""

from decimal import Decimal

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_payments.app.rules.calculator import (
    apply_payment, calculate, format_amount, reference_value, round_half_away,
)
from service_payments.app.rules.models import (
    CumulativeBandedPayment, DirectTablePayment, FactorPayment, PercentagePayment,
    PercentagePlusFixedPayment, RateKind, TieredByAmountPayment, TieredByQuantityPayment,
)
from shared.test_helpers import RuleFactory


def D(value):
    return Decimal(str(value))


class TestSimplePayments:
    """Test cases for non-banded payment models."""

    def test_fixed(self):
        """Test fixed amount ignores the base."""
        amount, formula, warnings = apply_payment(RuleFactory.fixed(50000), D(1))
        assert amount == D(50000)
        assert "fixed amount 50,000" in formula
        assert warnings == []

    def test_percentage_rounds_to_whole_units(self):
        """Test 33.33% of 100000 is 33330."""
        amount, _, _ = apply_payment(PercentagePayment(D("33.33")), D(100000))
        assert amount == D(33330)

    def test_percentage_rounds_half_away_from_zero(self):
        """Test halves round up."""
        amount, _, _ = apply_payment(PercentagePayment(D(50)), D(1005))
        assert amount == D(503)

    def test_factor(self):
        """Test multiplier."""
        amount, _, _ = apply_payment(FactorPayment(D("1.5")), D(2000))
        assert amount == D(3000)

    def test_percentage_plus_fixed(self):
        """Test percentage plus flat amount."""
        amount, formula, _ = apply_payment(PercentagePlusFixedPayment(D(10), D(2000)), D(50000))
        assert amount == D(7000)
        assert "+ 2,000" in formula

    def test_unknown_model(self):
        """Test unsupported payment objects are rejected."""
        with pytest.raises(TypeError):
            apply_payment(object(), D(1))


class TestBandedPayments:
    """Test cases for banded payment models."""

    @pytest.fixture
    def two_bands(self):
        """Create [0, 500000) @ 10% and [500000, inf) @ 20%."""
        return (
            RuleFactory.band(0, 500000, 10),
            RuleFactory.band(500000, None, 20),
        )

    def test_cumulative_banding(self, two_bands):
        """Test each band's rate applies to its own slice."""
        amount, formula, warnings = apply_payment(CumulativeBandedPayment(two_bands), D(700000))
        assert amount == D(90000)
        assert warnings == []
        assert "500,000 x 10%" in formula
        assert "200,000 x 20%" in formula

    def test_tiered_by_amount_uses_whole_base(self, two_bands):
        """Test whole-amount banding differs from cumulative banding."""
        amount, _, warnings = apply_payment(TieredByAmountPayment(two_bands), D(700000))
        assert amount == D(140000)
        assert warnings == []

    def test_tiered_by_amount_default(self):
        """Test the default percentage applies when no band matches."""
        payment = TieredByAmountPayment((RuleFactory.band(1000, 5000, 10),), default_percentage=D(5))
        amount, formula, warnings = apply_payment(payment, D(500))
        assert amount == D(25)
        assert "(default)" in formula
        assert len(warnings) == 1

    def test_tiered_by_quantity(self):
        """Test bands keyed on the transaction count."""
        payment = TieredByQuantityPayment((
            RuleFactory.band(0, 10, 5),
            RuleFactory.band(10, None, 8),
        ))
        context = RuleFactory.context(quantity=12)
        amount, formula, _ = apply_payment(payment, D(1000), context)
        assert amount == D(80)
        assert formula.startswith("quantity 12")

    def test_tiered_by_quantity_without_quantity(self):
        """Test a missing quantity falls back to the default percentage."""
        payment = TieredByQuantityPayment((RuleFactory.band(0, 10, 5),))
        amount, _, warnings = apply_payment(payment, D(1000), RuleFactory.context())
        assert amount == D(0)
        assert "missing" in warnings[0]

    def test_cumulative_fixed_band(self):
        """Test fixed-kind bands add their flat value."""
        payment = CumulativeBandedPayment((
            RuleFactory.band(0, 1000, 100, RateKind.FIXED),
            RuleFactory.band(1000, None, 10),
        ))
        amount, _, _ = apply_payment(payment, D(3000))
        assert amount == D(300)

    def test_cumulative_unallocated_remainder(self):
        """Test base above the last band is reported."""
        payment = CumulativeBandedPayment((RuleFactory.band(0, 1000, 10),))
        amount, _, warnings = apply_payment(payment, D(3000))
        assert amount == D(100)
        assert "2,000" in warnings[0]

    def test_direct_table(self):
        """Test the matching band's value is the payment."""
        payment = DirectTablePayment((
            RuleFactory.band(0, 1000, 50),
            RuleFactory.band(1000, None, 80),
        ))
        amount, _, warnings = apply_payment(payment, D(1500))
        assert amount == D(80)
        assert warnings == []

    def test_direct_table_without_band(self):
        """Test no matching band pays zero with a warning."""
        payment = DirectTablePayment((RuleFactory.band(1000, 2000, 50),))
        amount, _, warnings = apply_payment(payment, D(500))
        assert amount == D(0)
        assert len(warnings) == 1


class TestCalculate:
    """Test cases for calculate."""

    def test_convention_bonuses_stack(self):
        """Test each matching bonus adds its percentage of the base."""
        rule = RuleFactory.convention(
            "conv",
            payment=RuleFactory.percentage(10),
            bonuses=(
                RuleFactory.bonus("Holder bonus", "5", [("patient_role", "eq", "holder")]),
                RuleFactory.bonus("Night bonus", "3", [("schedule_type", "eq", "night")]),
            ),
        )
        calculation = calculate(rule, RuleFactory.context(patient_role="holder"))

        assert calculation.amount == D(15000)
        assert [b.description for b in calculation.bonuses] == ["Holder bonus"]
        assert calculation.bonuses[0].amount == D(5000)
        assert "bonus 5%" in calculation.formula

    def test_value_base_attribute(self):
        """Test a rule can price a different context amount."""
        rule = RuleFactory.discrete("gross", payment=RuleFactory.percentage(10), value_base="gross_amount")
        calculation = calculate(rule, RuleFactory.context(gross_amount="200000"))
        assert calculation.amount == D(20000)
        assert calculation.base_amount == D(200000)

    def test_invalid_value_base(self):
        """Test a missing value-base attribute pays zero with a warning."""
        rule = RuleFactory.discrete("gross", payment=RuleFactory.percentage(10), value_base="gross_amount")
        calculation = calculate(rule, RuleFactory.context())
        assert calculation.amount == D(0)
        assert "gross_amount" in calculation.warnings[0]

    def test_negative_result_floored(self):
        """Test results never go below zero."""
        rule = RuleFactory.discrete("neg", payment=PercentagePlusFixedPayment(D(10), D(-20000)))
        calculation = calculate(rule, RuleFactory.context())
        assert calculation.amount == D(0)
        assert any("floored" in w for w in calculation.warnings)

    def test_reference_value(self):
        """Test payout at the reference base."""
        rule = RuleFactory.discrete("pct", payment=RuleFactory.percentage(60))
        assert reference_value(rule, None, D(100000)) == D(60000)


def test_format_amount():
    """Test amount rendering."""
    assert format_amount(D(1234567)) == "1,234,567"
    assert format_amount(D("1234.5")) == "1,234.5"


def test_round_half_away():
    """Test whole-unit rounding."""
    assert round_half_away(D("2.5")) == D(3)
    assert round_half_away(D("2.49")) == D(2)
