"""Benefit calculators, registered by benefit type code.

Every calculator is pure: ``compute(employee, year, history)`` reads only
its arguments and the settings it was built with.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable

from hris_payroll.benefits.eligibility import (
    completed_years_of_service,
    service_months_in_year,
    service_reference_date,
)
from hris_payroll.benefits.types import (
    BenefitHistory,
    BenefitResult,
    BenefitType,
    EmployeeSnapshot,
    Eligibility,
)
from hris_payroll.calculators.engine import resolve_daily_rate
from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.config import Settings, get_settings
from hris_payroll.errors import ValidationError

ZERO = Decimal("0")
MIN_CONSTANT_FACTOR = Decimal("0.1")
MAX_CONSTANT_FACTOR = Decimal("2.0")

_REGISTRY: dict[BenefitType, type[BenefitCalculator]] = {}


def register_benefit(
    benefit_type: BenefitType,
) -> Callable[[type[BenefitCalculator]], type[BenefitCalculator]]:
    def decorator(cls: type[BenefitCalculator]) -> type[BenefitCalculator]:
        cls.benefit_type = benefit_type
        _REGISTRY[benefit_type] = cls
        return cls

    return decorator


def get_calculator(
    benefit_type: BenefitType | str, settings: Settings | None = None
) -> BenefitCalculator:
    try:
        cls = _REGISTRY[BenefitType(benefit_type)]
    except (KeyError, ValueError):
        raise ValidationError(f"Unknown benefit type: {benefit_type}") from None
    return cls(settings or get_settings())


def available_benefit_types() -> list[BenefitType]:
    return list(_REGISTRY)


class BenefitCalculator:
    """Base strategy."""

    benefit_type: BenefitType

    def __init__(self, settings: Settings):
        self.settings = settings

    def compute(
        self, employee: EmployeeSnapshot, year: int, history: BenefitHistory
    ) -> BenefitResult:
        raise NotImplementedError

    def _result(
        self,
        employee: EmployeeSnapshot,
        year: int,
        amount: Decimal,
        eligibility: Eligibility,
        **details,
    ) -> BenefitResult:
        return BenefitResult(
            benefit_type=self.benefit_type,
            employee_id=employee.employee_id,
            year=year,
            amount=LineItemBuilder.round_to_cents(amount),
            eligibility=eligibility,
            details=details,
        )

    def _ineligible(
        self, employee: EmployeeSnapshot, year: int, reason: str, **details
    ) -> BenefitResult:
        return self._result(employee, year, ZERO, Eligibility.denied(reason), **details)


@register_benefit(BenefitType.THIRTEENTH_MONTH)
class ThirteenthMonthCalculator(BenefitCalculator):
    """One twelfth of the basic pay earned in completed periods of the year."""

    def compute(
        self, employee: EmployeeSnapshot, year: int, history: BenefitHistory
    ) -> BenefitResult:
        total = Decimal(history.basic_pay_total or ZERO)
        if total <= 0:
            return self._ineligible(
                employee, year, "No basic pay recorded for the year", total_basic_pay=total
            )
        return self._result(
            employee,
            year,
            total / Decimal(12),
            Eligibility.ok(),
            total_basic_pay=total,
            divisor=12,
        )


@register_benefit(BenefitType.FOURTEENTH_MONTH)
class FourteenthMonthCalculator(ThirteenthMonthCalculator):
    """Same basis as the 13th month pay, released separately."""


@register_benefit(BenefitType.PBB)
class PerformanceBonusCalculator(BenefitCalculator):
    """Performance-based bonus: one month's salary after minimum service."""

    def compute(
        self, employee: EmployeeSnapshot, year: int, history: BenefitHistory
    ) -> BenefitResult:
        months = service_months_in_year(employee.appointment_date, year)
        minimum = self.settings.pbb_min_service_months
        if months < minimum:
            return self._ineligible(
                employee,
                year,
                f"Requires at least {minimum} months of service in {year}",
                service_months=months,
            )

        if employee.monthly_salary:
            amount = Decimal(employee.monthly_salary)
            basis = "monthly_salary"
        elif employee.daily_rate:
            amount = Decimal(employee.daily_rate) * self.settings.standard_working_days
            basis = "daily_rate"
        else:
            return self._ineligible(
                employee, year, "No salary information", service_months=months
            )

        return self._result(
            employee, year, amount, Eligibility.ok(), service_months=months, basis=basis
        )


@register_benefit(BenefitType.LOYALTY_AWARD)
class LoyaltyAwardCalculator(BenefitCalculator):
    """Base award at the first milestone, plus an increment every later milestone."""

    def compute(
        self, employee: EmployeeSnapshot, year: int, history: BenefitHistory
    ) -> BenefitResult:
        s = self.settings
        as_of = service_reference_date(year, employee.separation_date)
        years = completed_years_of_service(employee.appointment_date, as_of)

        if years < s.loyalty_base_years:
            return self._ineligible(
                employee,
                year,
                f"Requires {s.loyalty_base_years} years of service",
                years_of_service=years,
                next_eligible_in_years=s.loyalty_base_years - years,
            )

        extra = years - s.loyalty_base_years
        milestones = extra // s.loyalty_increment_years
        amount = s.loyalty_base_amount + s.loyalty_increment_amount * milestones
        return self._result(
            employee,
            year,
            amount,
            Eligibility.ok(),
            years_of_service=years,
            additional_milestones=milestones,
            next_eligible_in_years=s.loyalty_increment_years
            - (extra % s.loyalty_increment_years),
        )


@register_benefit(BenefitType.LEAVE_MONETIZATION)
class LeaveMonetizationCalculator(BenefitCalculator):
    """Converts monetizable leave days into cash, per-type day cap."""

    def compute(
        self, employee: EmployeeSnapshot, year: int, history: BenefitHistory
    ) -> BenefitResult:
        if not employee.is_active:
            return self._ineligible(employee, year, "Only active employees may monetize leave")

        cap = Decimal(self.settings.monetization_cap_days)
        leave_days = {}
        for credit in history.leave_credits:
            if credit.is_monetizable and credit.balance > 0:
                leave_days[credit.leave_type_id] = min(Decimal(credit.balance), cap)

        total_days = sum(leave_days.values(), ZERO)
        if total_days <= 0:
            return self._ineligible(employee, year, "No monetizable leave balance")

        daily_rate = resolve_daily_rate(
            employee.daily_rate, employee.monthly_salary, self.settings.standard_working_days
        )
        if daily_rate <= 0:
            return self._ineligible(employee, year, "No salary information")

        result = self._result(
            employee,
            year,
            total_days * daily_rate,
            Eligibility.ok(),
            daily_rate=daily_rate,
            days_by_leave_type={str(k): v for k, v in leave_days.items()},
            cap_days=cap,
        )
        result.days_used = total_days
        result.leave_days = leave_days
        return result


@register_benefit(BenefitType.TERMINAL_LEAVE)
class TerminalLeaveCalculator(BenefitCalculator):
    """Leave credits x highest monthly salary x factor over the daily factor."""

    def compute(
        self, employee: EmployeeSnapshot, year: int, history: BenefitHistory
    ) -> BenefitResult:
        factor = Decimal(
            history.constant_factor
            if history.constant_factor is not None
            else self.settings.tlb_constant_factor
        )
        if not MIN_CONSTANT_FACTOR <= factor <= MAX_CONSTANT_FACTOR:
            raise ValidationError(
                f"Constant factor must be between {MIN_CONSTANT_FACTOR} and {MAX_CONSTANT_FACTOR}"
            )

        if not employee.is_separated:
            return self._ineligible(
                employee, year, "Employee must be separated (resigned, retired or terminated)"
            )

        salary = employee.highest_monthly_salary or employee.monthly_salary
        if not salary:
            return self._ineligible(employee, year, "No salary information")

        credits = Decimal(history.total_leave_credits or ZERO)
        if credits <= 0:
            return self._ineligible(employee, year, "No leave credits", total_leave_credits=credits)

        daily_factor = Decimal(self.settings.tlb_daily_factor)
        amount = credits * Decimal(salary) * factor / daily_factor
        result = self._result(
            employee,
            year,
            amount,
            Eligibility.ok(),
            total_leave_credits=credits,
            highest_monthly_salary=Decimal(salary),
            constant_factor=factor,
            daily_factor=daily_factor,
        )
        result.days_used = credits
        return result
