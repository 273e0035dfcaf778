"""Validation of periods, employees and items before they change state.

Checks return lists of messages so callers can report every problem at once;
``raise_if_errors`` turns a non-empty list into a ValidationError.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.calculators.types import ItemTotals, LineCandidate
from hris_payroll.errors import ValidationError
from hris_payroll.models import Employee, PayrollItem, PayrollItemLine, PayrollPeriod
from hris_payroll.services.state_machine import PeriodStatus

MIN_YEAR = 2020
MAX_YEAR = 2050
MAX_WORKING_DAYS = 31


@dataclass
class FinalizationReport:
    """Problems that block finalizing a period."""

    errors: list[str] = field(default_factory=list)
    employee_ids: list[UUID] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, message: str, employee_id: UUID | None = None) -> None:
        self.errors.append(message)
        if employee_id is not None and employee_id not in self.employee_ids:
            self.employee_ids.append(employee_id)


def raise_if_errors(message: str, errors: list[str], employee_ids: list[UUID] | None = None) -> None:
    if errors:
        raise ValidationError(message, errors=errors, employee_ids=employee_ids)


class ValidationEngine:
    """Period-, employee- and finalization-level checks."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ----- pure checks -----

    @staticmethod
    def check_period_fields(
        year: int,
        month: int,
        period_number: int,
        start_date: date,
        end_date: date,
        pay_date: date,
    ) -> list[str]:
        errors: list[str] = []
        if not MIN_YEAR <= year <= MAX_YEAR:
            errors.append(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
        if not 1 <= month <= 12:
            errors.append("Month must be between 1 and 12")
        if period_number not in (1, 2):
            errors.append("Period number must be 1 or 2")
        if start_date >= end_date:
            errors.append("Start date must be before end date")
        if pay_date < end_date:
            errors.append("Pay date cannot be before the period end date")
        return errors

    @staticmethod
    def max_working_days(period: PayrollPeriod) -> int:
        """Upper bound for working days: days in the period's calendar month."""
        return min(calendar.monthrange(period.year, period.month)[1], MAX_WORKING_DAYS)

    @staticmethod
    def check_working_days(working_days: int, period: PayrollPeriod) -> list[str]:
        errors: list[str] = []
        if not isinstance(working_days, int) or isinstance(working_days, bool):
            errors.append("Working days must be a whole number")
            return errors
        if working_days < 0:
            errors.append("Working days cannot be negative")
        limit = ValidationEngine.max_working_days(period)
        if working_days > limit:
            errors.append(f"Working days cannot exceed {limit}")
        return errors

    @staticmethod
    def check_employee(employee: Employee | None, employee_id: UUID) -> list[str]:
        if employee is None or employee.deleted_at is not None:
            return [f"Employee {employee_id} not found"]
        if employee.employment_status != "Active":
            return [f"Employee {employee_id} is not active ({employee.employment_status})"]
        if not employee.current_daily_rate and not employee.current_monthly_salary:
            return [f"Employee {employee_id} has no salary information"]
        return []

    @staticmethod
    def check_item(item: PayrollItem, lines: list[LineCandidate]) -> list[str]:
        """Identity and sign checks for a single item."""
        totals = ItemTotals(
            basic_pay=item.basic_pay,
            total_allowances=item.total_allowances,
            total_deductions=item.total_deductions,
            gross_pay=item.gross_pay,
            net_pay=item.net_pay,
        )
        errors = LineItemBuilder.check_totals(totals, lines, item.daily_rate, item.working_days)
        if item.net_pay < 0:
            errors.insert(0, f"Negative net pay ({item.net_pay})")
        return errors

    # ----- database checks -----

    async def check_period_conflicts(
        self,
        year: int,
        month: int,
        period_number: int,
        start_date: date,
        end_date: date,
        exclude_id: UUID | None = None,
    ) -> list[str]:
        """Duplicate (year, month, number) and overlapping date ranges."""
        errors: list[str] = []
        base = [PayrollPeriod.deleted_at.is_(None)]
        if exclude_id is not None:
            base.append(PayrollPeriod.id != exclude_id)

        duplicate = await self.session.execute(
            select(PayrollPeriod.id).where(
                *base,
                PayrollPeriod.year == year,
                PayrollPeriod.month == month,
                PayrollPeriod.period_number == period_number,
            )
        )
        if duplicate.first() is not None:
            errors.append(
                f"Payroll period {year}-{month:02d} #{period_number} already exists"
            )

        overlap = await self.session.execute(
            select(PayrollPeriod).where(
                *base,
                and_(PayrollPeriod.start_date <= end_date, PayrollPeriod.end_date >= start_date),
            )
        )
        for other in overlap.scalars():
            if (other.year, other.month, other.period_number) == (year, month, period_number):
                continue
            errors.append(
                f"Date range overlaps payroll period {other.label} "
                f"({other.start_date} to {other.end_date})"
            )
        return errors

    async def check_period_for_finalization(self, period: PayrollPeriod) -> FinalizationReport:
        report = FinalizationReport()
        if period.status != PeriodStatus.PROCESSING:
            report.add(f"Payroll period must be Processing to finalize (current: {period.status})")
            return report

        items = (
            await self.session.execute(
                select(PayrollItem).where(PayrollItem.payroll_period_id == period.id)
            )
        ).scalars().all()
        if not items:
            report.add("Payroll period has no payroll items")
            return report

        line_rows = (
            await self.session.execute(
                select(PayrollItemLine).where(
                    PayrollItemLine.payroll_item_id.in_([i.id for i in items])
                )
            )
        ).scalars().all()
        lines_by_item: dict[UUID, list[LineCandidate]] = {}
        for row in line_rows:
            lines_by_item.setdefault(row.payroll_item_id, []).append(LineCandidate.from_model(row))

        for item in items:
            for problem in self.check_item(item, lines_by_item.get(item.id, [])):
                report.add(f"Employee {item.employee_id}: {problem}", item.employee_id)
        return report
