"""Resolution of compensation rules and employee overrides from the database."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.calculators.types import CompensationRule, ItemCalculationContext, LineCandidate
from hris_payroll.models import AllowanceType, DeductionType, Employee, EmployeeOverride


class RateResolver:
    """Builds calculation contexts from persisted configuration.

    Override selection:
    - override must be active and its [effective_date, end_date] range must
      include the as-of date (the period's end date)
    - when several match the same type, the latest effective_date wins
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._allowance_rules: list[CompensationRule] | None = None
        self._deduction_rules: list[CompensationRule] | None = None

    async def get_allowance_rules(self) -> list[CompensationRule]:
        if self._allowance_rules is None:
            result = await self.session.execute(
                select(AllowanceType)
                .where(AllowanceType.is_active.is_(True))
                .order_by(AllowanceType.code)
            )
            self._allowance_rules = [CompensationRule.from_model(t) for t in result.scalars()]
        return self._allowance_rules

    async def get_deduction_rules(self) -> list[CompensationRule]:
        if self._deduction_rules is None:
            result = await self.session.execute(
                select(DeductionType)
                .where(DeductionType.is_active.is_(True))
                .order_by(DeductionType.is_mandatory.desc(), DeductionType.code)
            )
            self._deduction_rules = [CompensationRule.from_model(t) for t in result.scalars()]
        return self._deduction_rules

    async def get_active_overrides(
        self, employee_id: UUID, as_of_date: date
    ) -> tuple[dict[UUID, Decimal], dict[UUID, Decimal]]:
        """Return (allowance overrides, deduction overrides) keyed by type id."""
        result = await self.session.execute(
            select(EmployeeOverride)
            .where(
                EmployeeOverride.employee_id == employee_id,
                EmployeeOverride.is_active.is_(True),
                EmployeeOverride.effective_date <= as_of_date,
                or_(EmployeeOverride.end_date.is_(None), EmployeeOverride.end_date >= as_of_date),
            )
            .order_by(EmployeeOverride.effective_date)
        )
        allowances: dict[UUID, Decimal] = {}
        deductions: dict[UUID, Decimal] = {}
        # Ascending order, so later rows replace earlier ones
        for override in result.scalars():
            if override.override_kind == "allowance":
                allowances[override.allowance_type_id] = override.amount
            else:
                deductions[override.deduction_type_id] = override.amount
        return allowances, deductions

    async def build_context(
        self,
        employee: Employee,
        working_days: int,
        period_number: int,
        as_of_date: date,
        manual_lines: list[LineCandidate] | None = None,
    ) -> ItemCalculationContext:
        allowance_overrides, deduction_overrides = await self.get_active_overrides(
            employee.id, as_of_date
        )
        return ItemCalculationContext(
            employee_id=employee.id,
            working_days=working_days,
            period_number=period_number,
            monthly_salary=employee.current_monthly_salary,
            daily_rate=employee.current_daily_rate,
            allowance_rules=await self.get_allowance_rules(),
            deduction_rules=await self.get_deduction_rules(),
            allowance_overrides=allowance_overrides,
            deduction_overrides=deduction_overrides,
            manual_lines=list(manual_lines or []),
        )
