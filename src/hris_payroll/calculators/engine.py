"""Payroll item calculator.

Pure computation: given an ItemCalculationContext, produce the item's lines
and totals. Loading employees, types and overrides is the caller's job
(see RateResolver and PayrollItemService).
"""

from __future__ import annotations

from decimal import Decimal

from hris_payroll.calculators.formulas import FormulaContext, resolve_formula
from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.calculators.types import (
    CalculationMethod,
    CompensationRule,
    Frequency,
    ItemCalculationContext,
    ItemCalculationResult,
    LineCandidate,
)
from hris_payroll.errors import ComputationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def resolve_daily_rate(
    daily_rate: Decimal | None,
    monthly_salary: Decimal | None,
    standard_working_days: int = 22,
) -> Decimal:
    """Stored daily rate, else monthly salary over the standard working month."""
    if daily_rate:
        return LineItemBuilder.round_to_cents(Decimal(daily_rate))
    if monthly_salary:
        return LineItemBuilder.round_to_cents(
            Decimal(monthly_salary) / Decimal(standard_working_days)
        )
    return Decimal("0.00")


def applies_to_period(rule: CompensationRule, period_number: int) -> bool:
    """Monthly types apply on the first half only; annual types never apply."""
    if rule.frequency == Frequency.SEMI_MONTHLY:
        return True
    if rule.frequency == Frequency.MONTHLY:
        return period_number == 1
    return False


class PayrollCalculator:
    """Computes one payroll item.

    Order per employee:
    1) daily rate and basic pay
    2) allowance lines (percentages on basic pay)
    3) deduction lines (percentages and formulas on gross so far)
    4) manual lines carried over unchanged
    5) totals re-summed from all lines and verified
    """

    def __init__(self, standard_working_days: int = 22):
        self.standard_working_days = standard_working_days

    def calculate(self, ctx: ItemCalculationContext) -> ItemCalculationResult:
        if ctx.working_days < 0:
            raise ComputationError(f"Negative working days for employee {ctx.employee_id}")

        daily_rate = resolve_daily_rate(
            ctx.daily_rate, ctx.monthly_salary, self.standard_working_days
        )
        basic_pay = LineItemBuilder.basic_pay(daily_rate, ctx.working_days)

        lines: list[LineCandidate] = []
        for rule in ctx.allowance_rules:
            if not applies_to_period(rule, ctx.period_number):
                continue
            override = ctx.allowance_overrides.get(rule.type_id)
            if override is not None:
                amount, basis = Decimal(override), "Employee override"
            else:
                amount, basis = self._rule_amount(rule, basic_pay, basic_pay, ctx.working_days)
            if amount > 0:
                lines.append(
                    LineItemBuilder.create_allowance_line(
                        rule.name,
                        amount,
                        allowance_type_id=rule.type_id,
                        is_override=override is not None,
                        calculation_basis=basis,
                    )
                )

        gross_before_deductions = basic_pay + LineItemBuilder.sum_allowances(lines)

        for rule in ctx.deduction_rules:
            if not applies_to_period(rule, ctx.period_number):
                continue
            override = ctx.deduction_overrides.get(rule.type_id)
            if override is not None:
                amount, basis = Decimal(override), "Employee override"
            else:
                amount, basis = self._rule_amount(
                    rule, basic_pay, gross_before_deductions, ctx.working_days
                )
            if amount > 0:
                lines.append(
                    LineItemBuilder.create_deduction_line(
                        rule.name,
                        amount,
                        deduction_type_id=rule.type_id,
                        is_override=override is not None,
                        calculation_basis=basis,
                    )
                )

        lines.extend(ctx.manual_lines)
        totals = LineItemBuilder.compute_totals(basic_pay, lines)

        return ItemCalculationResult(
            employee_id=ctx.employee_id,
            working_days=ctx.working_days,
            daily_rate=daily_rate,
            totals=totals,
            lines=lines,
        )

    def _rule_amount(
        self,
        rule: CompensationRule,
        basic_pay: Decimal,
        percentage_base: Decimal,
        working_days: int,
    ) -> tuple[Decimal, str]:
        """Amount and a human-readable basis for one rule."""
        if rule.calculation_method == CalculationMethod.FIXED:
            return LineItemBuilder.round_to_cents(rule.default_amount or ZERO), "Fixed amount"

        if rule.calculation_method == CalculationMethod.PERCENTAGE:
            pct = rule.percentage or ZERO
            amount = LineItemBuilder.round_to_cents(percentage_base * pct / HUNDRED)
            basis = f"{pct}% of {percentage_base}"
            if rule.max_amount is not None and amount > rule.max_amount:
                amount = LineItemBuilder.round_to_cents(rule.max_amount)
                basis += f" (capped at {rule.max_amount})"
            return amount, basis

        strategy = resolve_formula(rule.code)
        amount = strategy(
            FormulaContext(
                rule=rule,
                basic_pay=basic_pay,
                gross_pay=percentage_base,
                working_days=working_days,
                standard_working_days=self.standard_working_days,
            )
        )
        if rule.max_amount is not None and amount > rule.max_amount:
            amount = LineItemBuilder.round_to_cents(rule.max_amount)
        return amount, f"Formula {rule.code}"
