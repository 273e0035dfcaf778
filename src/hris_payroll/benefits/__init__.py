"""Statutory benefit eligibility and calculators."""

from hris_payroll.benefits.calculators import (
    BenefitCalculator,
    available_benefit_types,
    get_calculator,
    register_benefit,
)
from hris_payroll.benefits.eligibility import (
    completed_years_of_service,
    prorated_months,
    service_months_in_year,
    service_reference_date,
)
from hris_payroll.benefits.types import (
    BenefitHistory,
    BenefitResult,
    BenefitType,
    Eligibility,
    EmployeeSnapshot,
    LeaveCredit,
)

__all__ = [
    "BenefitCalculator",
    "BenefitHistory",
    "BenefitResult",
    "BenefitType",
    "Eligibility",
    "EmployeeSnapshot",
    "LeaveCredit",
    "available_benefit_types",
    "completed_years_of_service",
    "get_calculator",
    "prorated_months",
    "register_benefit",
    "service_months_in_year",
    "service_reference_date",
]
