"""Line construction and total derivation for payroll items."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable
from uuid import UUID

from hris_payroll.calculators.types import ItemTotals, LineCandidate, LineType
from hris_payroll.errors import ComputationError

ZERO = Decimal("0")


class LineItemBuilder:
    """Builds item lines and derives item totals from them.

    Sign conventions:
    - ALLOWANCE: positive, counted in total_allowances
    - DEDUCTION: positive, counted in total_deductions
    - ADJUSTMENT: signed; positive adds to total_allowances, negative adds
      its absolute value to total_deductions

    Totals are always re-summed from the complete line set.
    """

    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return Decimal(amount).quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def create_allowance_line(
        description: str,
        amount: Decimal,
        allowance_type_id: UUID | None = None,
        is_override: bool = False,
        calculation_basis: str | None = None,
    ) -> LineCandidate:
        return LineCandidate(
            line_type=LineType.ALLOWANCE,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            description=description,
            is_override=is_override,
            calculation_basis=calculation_basis,
            allowance_type_id=allowance_type_id,
        )

    @staticmethod
    def create_deduction_line(
        description: str,
        amount: Decimal,
        deduction_type_id: UUID | None = None,
        is_override: bool = False,
        calculation_basis: str | None = None,
    ) -> LineCandidate:
        return LineCandidate(
            line_type=LineType.DEDUCTION,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            description=description,
            is_override=is_override,
            calculation_basis=calculation_basis,
            deduction_type_id=deduction_type_id,
        )

    @staticmethod
    def create_manual_line(
        line_type: LineType | str,
        description: str,
        amount: Decimal,
        reason: str | None = None,
    ) -> LineCandidate:
        """Create a manually entered line; only adjustments keep their sign."""
        line_type = LineType(line_type)
        amount = LineItemBuilder.round_to_cents(amount)
        if line_type != LineType.ADJUSTMENT:
            amount = abs(amount)
        return LineCandidate(
            line_type=line_type,
            amount=amount,
            description=description,
            is_manual=True,
            calculation_basis=f"Manual: {reason}" if reason else "Manual",
        )

    @staticmethod
    def basic_pay(daily_rate: Decimal, working_days: int) -> Decimal:
        return LineItemBuilder.round_to_cents(Decimal(daily_rate) * Decimal(working_days))

    @staticmethod
    def sum_allowances(lines: Iterable[LineCandidate]) -> Decimal:
        total = ZERO
        for line in lines:
            if line.line_type == LineType.ALLOWANCE:
                total += line.amount
            elif line.line_type == LineType.ADJUSTMENT and line.amount > 0:
                total += line.amount
        return LineItemBuilder.round_to_cents(total)

    @staticmethod
    def sum_deductions(lines: Iterable[LineCandidate]) -> Decimal:
        total = ZERO
        for line in lines:
            if line.line_type == LineType.DEDUCTION:
                total += line.amount
            elif line.line_type == LineType.ADJUSTMENT and line.amount < 0:
                total += -line.amount
        return LineItemBuilder.round_to_cents(total)

    @staticmethod
    def compute_totals(basic_pay: Decimal, lines: list[LineCandidate]) -> ItemTotals:
        """Derive all item totals from basic pay and the full line set.

        GROSS = basic_pay + total_allowances
        NET = GROSS - total_deductions
        """
        basic = LineItemBuilder.round_to_cents(basic_pay)
        allowances = LineItemBuilder.sum_allowances(lines)
        deductions = LineItemBuilder.sum_deductions(lines)
        gross = LineItemBuilder.round_to_cents(basic + allowances)
        net = LineItemBuilder.round_to_cents(gross - deductions)
        totals = ItemTotals(
            basic_pay=basic,
            total_allowances=allowances,
            total_deductions=deductions,
            gross_pay=gross,
            net_pay=net,
        )
        LineItemBuilder.verify_totals(totals, lines)
        return totals

    @staticmethod
    def check_totals(
        totals: ItemTotals,
        lines: list[LineCandidate],
        daily_rate: Decimal | None = None,
        working_days: int | None = None,
    ) -> list[str]:
        """Return every broken identity between totals and lines."""
        errors: list[str] = []
        if daily_rate is not None and working_days is not None:
            expected_basic = LineItemBuilder.basic_pay(daily_rate, working_days)
            if Decimal(totals.basic_pay) != expected_basic:
                errors.append(
                    f"basic_pay {totals.basic_pay} != daily_rate x working_days {expected_basic}"
                )
        allowances = LineItemBuilder.sum_allowances(lines)
        deductions = LineItemBuilder.sum_deductions(lines)
        if Decimal(totals.total_allowances) != allowances:
            errors.append(f"total_allowances {totals.total_allowances} != line sum {allowances}")
        if Decimal(totals.total_deductions) != deductions:
            errors.append(f"total_deductions {totals.total_deductions} != line sum {deductions}")
        gross = LineItemBuilder.round_to_cents(
            Decimal(totals.basic_pay) + Decimal(totals.total_allowances)
        )
        if Decimal(totals.gross_pay) != gross:
            errors.append(f"gross_pay {totals.gross_pay} != basic_pay + allowances {gross}")
        net = LineItemBuilder.round_to_cents(
            Decimal(totals.gross_pay) - Decimal(totals.total_deductions)
        )
        if Decimal(totals.net_pay) != net:
            errors.append(f"net_pay {totals.net_pay} != gross_pay - deductions {net}")
        return errors

    @staticmethod
    def verify_totals(totals: ItemTotals, lines: list[LineCandidate]) -> None:
        """Raise ComputationError if totals disagree with the lines."""
        errors = LineItemBuilder.check_totals(totals, lines)
        if errors:
            raise ComputationError("; ".join(errors), details={"errors": errors})
