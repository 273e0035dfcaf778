"""Unit tests for PayrollCalculator.

The calculator is pure, so contexts are built by hand.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from hris_payroll.calculators.engine import (
    PayrollCalculator,
    applies_to_period,
    resolve_daily_rate,
)
from hris_payroll.calculators.formulas import (
    FormulaContext,
    registered_codes,
    resolve_formula,
)
from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.calculators.types import (
    CalculationMethod,
    CompensationRule,
    Frequency,
    ItemCalculationContext,
    LineType,
)
from hris_payroll.errors import ComputationError


def rule(code, method="Fixed", frequency="Semi-Monthly", **kwargs) -> CompensationRule:
    return CompensationRule(
        type_id=kwargs.pop("type_id", uuid4()),
        code=code,
        name=kwargs.pop("name", code),
        calculation_method=CalculationMethod(method),
        frequency=Frequency(frequency),
        **kwargs,
    )


def context(working_days=22, period_number=1, **kwargs) -> ItemCalculationContext:
    values = {
        "employee_id": uuid4(),
        "working_days": working_days,
        "period_number": period_number,
        "monthly_salary": Decimal("22000.00"),
        "daily_rate": Decimal("1000.00"),
    }
    values.update(kwargs)
    return ItemCalculationContext(**values)


class TestDailyRate:
    def test_stored_daily_rate_wins(self):
        assert resolve_daily_rate(Decimal("1200"), Decimal("22000")) == Decimal("1200.00")

    def test_derived_from_monthly_salary(self):
        assert resolve_daily_rate(None, Decimal("21000")) == Decimal("954.55")

    def test_no_salary(self):
        assert resolve_daily_rate(None, None) == Decimal("0.00")


class TestFrequency:
    def test_semi_monthly_applies_every_period(self):
        r = rule("X", frequency="Semi-Monthly")
        assert applies_to_period(r, 1) is True
        assert applies_to_period(r, 2) is True

    def test_monthly_applies_on_first_period_only(self):
        r = rule("X", frequency="Monthly")
        assert applies_to_period(r, 1) is True
        assert applies_to_period(r, 2) is False

    def test_annual_never_applies(self):
        assert applies_to_period(rule("X", frequency="Annual"), 1) is False


class TestFormulas:
    def _ctx(self, code, gross):
        return FormulaContext(
            rule=rule(code, method="Formula"),
            basic_pay=Decimal(gross),
            gross_pay=Decimal(gross),
            working_days=22,
        )

    def test_statutory_codes_registered(self):
        assert {"GSIS", "PAGIBIG", "PHILHEALTH", "WITHHOLDING_TAX"} <= set(registered_codes())

    def test_gsis_is_nine_percent(self):
        assert resolve_formula("GSIS")(self._ctx("GSIS", "22000")) == Decimal("1980.00")

    @pytest.mark.parametrize(
        "gross,expected",
        [("3000", "60.00"), ("5000", "100.00"), ("22000", "100.00")],
    )
    def test_pagibig_capped(self, gross, expected):
        assert resolve_formula("PAGIBIG")(self._ctx("PAGIBIG", gross)) == Decimal(expected)

    @pytest.mark.parametrize(
        "gross,expected",
        [("20000", "550.00"), ("100000", "1800.00")],
    )
    def test_philhealth_capped(self, gross, expected):
        assert resolve_formula("PHILHEALTH")(self._ctx("PHILHEALTH", gross)) == Decimal(expected)

    @pytest.mark.parametrize(
        "gross,expected",
        [("20833", "0.00"), ("15000", "0.00"), ("30833", "1500.00")],
    )
    def test_withholding_tax(self, gross, expected):
        ctx = self._ctx("WITHHOLDING_TAX", gross)
        assert resolve_formula("WITHHOLDING_TAX")(ctx) == Decimal(expected)

    def test_unknown_code_uses_prorated_default(self):
        ctx = FormulaContext(
            rule=rule("PERA", method="Formula", default_amount=Decimal("2000"), is_prorated=True),
            basic_pay=Decimal("11000"),
            gross_pay=Decimal("11000"),
            working_days=11,
        )
        assert resolve_formula("PERA")(ctx) == Decimal("1000.00")


class TestPayrollCalculator:
    """Test item calculation order and totals."""

    def test_basic_pay_only(self):
        result = PayrollCalculator().calculate(context(working_days=22))

        assert result.daily_rate == Decimal("1000.00")
        assert result.totals.basic_pay == Decimal("22000.00")
        assert result.totals.net_pay == Decimal("22000.00")
        assert result.lines == []

    def test_statutory_deductions_on_gross(self):
        ctx = context(
            working_days=22,
            allowance_rules=[rule("RATA", default_amount=Decimal("500"))],
            deduction_rules=[
                rule("GSIS", method="Formula"),
                rule("PAGIBIG", method="Formula", frequency="Monthly"),
            ],
        )

        result = PayrollCalculator().calculate(ctx)

        # gross before deductions = 22000 + 500
        amounts = {line.description: line.amount for line in result.lines}
        assert amounts == {
            "RATA": Decimal("500.00"),
            "GSIS": Decimal("2025.00"),
            "PAGIBIG": Decimal("100.00"),
        }
        assert result.totals.gross_pay == Decimal("22500.00")
        assert result.totals.total_deductions == Decimal("2125.00")
        assert result.totals.net_pay == Decimal("20375.00")

    def test_monthly_deduction_skipped_in_second_half(self):
        ctx = context(
            period_number=2,
            deduction_rules=[rule("PAGIBIG", method="Formula", frequency="Monthly")],
        )

        result = PayrollCalculator().calculate(ctx)

        assert result.lines == []

    def test_percentage_allowance_on_basic_pay_with_cap(self):
        ctx = context(
            working_days=10,
            allowance_rules=[
                rule("HAZ", method="Percentage", percentage=Decimal("25")),
                rule(
                    "SUB", method="Percentage", percentage=Decimal("10"), max_amount=Decimal("600")
                ),
            ],
        )

        result = PayrollCalculator().calculate(ctx)

        amounts = {line.description: line.amount for line in result.lines}
        assert amounts["HAZ"] == Decimal("2500.00")
        assert amounts["SUB"] == Decimal("600.00")
        assert "capped" in result.lines[1].calculation_basis

    def test_percentage_deduction_on_gross_before_deductions(self):
        ctx = context(
            working_days=10,
            allowance_rules=[rule("RATA", default_amount=Decimal("1000"))],
            deduction_rules=[rule("COOP", method="Percentage", percentage=Decimal("5"))],
        )

        result = PayrollCalculator().calculate(ctx)

        coop = [line for line in result.lines if line.line_type == LineType.DEDUCTION][0]
        assert coop.amount == Decimal("550.00")

    def test_override_replaces_computed_amount(self):
        gsis = rule("GSIS", method="Formula")
        ctx = context(deduction_rules=[gsis], deduction_overrides={gsis.type_id: Decimal("750")})

        result = PayrollCalculator().calculate(ctx)

        [line] = result.lines
        assert line.amount == Decimal("750.00")
        assert line.is_override is True
        assert line.calculation_basis == "Employee override"

    def test_zero_amount_lines_are_skipped(self):
        ctx = context(
            working_days=0,
            deduction_rules=[rule("GSIS", method="Formula"), rule("PAGIBIG", method="Formula")],
        )

        result = PayrollCalculator().calculate(ctx)

        assert result.lines == []
        assert result.totals.net_pay == Decimal("0.00")

    def test_manual_lines_are_carried_and_summed(self):
        manual = LineItemBuilder.create_manual_line("Adjustment", "Recovery", Decimal("-300"))
        ctx = context(working_days=22, manual_lines=[manual])

        result = PayrollCalculator().calculate(ctx)

        assert result.lines == [manual]
        assert result.computed_lines == []
        assert result.totals.total_deductions == Decimal("300.00")
        assert result.totals.net_pay == Decimal("21700.00")

    def test_same_context_gives_same_result(self):
        ctx = context(deduction_rules=[rule("GSIS", method="Formula")])
        calculator = PayrollCalculator()

        assert calculator.calculate(ctx).totals == calculator.calculate(ctx).totals

    def test_negative_working_days_rejected(self):
        with pytest.raises(ComputationError):
            PayrollCalculator().calculate(context(working_days=-1))
