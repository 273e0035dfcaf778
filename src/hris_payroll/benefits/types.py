"""Value types shared by the benefit calculators."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from hris_payroll.models import jsonable
from hris_payroll.models.employee import SEPARATED_STATUSES


class BenefitType(str, Enum):
    """Benefit type codes."""

    THIRTEENTH_MONTH = "THIRTEENTH_MONTH"
    FOURTEENTH_MONTH = "FOURTEENTH_MONTH"
    PBB = "PBB"
    LOYALTY_AWARD = "LOYALTY_AWARD"
    LEAVE_MONETIZATION = "LEAVE_MONETIZATION"
    TERMINAL_LEAVE = "TERMINAL_LEAVE"


@dataclass(frozen=True)
class EmployeeSnapshot:
    """The employee fields benefit rules depend on."""

    employee_id: UUID
    appointment_date: date
    employment_status: str
    monthly_salary: Decimal | None = None
    daily_rate: Decimal | None = None
    highest_monthly_salary: Decimal | None = None
    separation_date: date | None = None

    @classmethod
    def from_model(cls, employee: Any) -> EmployeeSnapshot:
        return cls(
            employee_id=employee.id,
            appointment_date=employee.appointment_date,
            employment_status=employee.employment_status,
            monthly_salary=employee.current_monthly_salary,
            daily_rate=employee.current_daily_rate,
            highest_monthly_salary=employee.highest_monthly_salary,
            separation_date=employee.separation_date,
        )

    @property
    def is_active(self) -> bool:
        return self.employment_status == "Active"

    @property
    def is_separated(self) -> bool:
        return self.employment_status in SEPARATED_STATUSES or self.separation_date is not None


@dataclass(frozen=True)
class LeaveCredit:
    """Current balance of one leave type."""

    leave_type_id: UUID
    code: str
    balance: Decimal
    is_monetizable: bool = False


@dataclass
class BenefitHistory:
    """Payroll and leave history a calculator may read."""

    basic_pay_total: Decimal = Decimal("0")
    leave_credits: list[LeaveCredit] = field(default_factory=list)
    total_leave_credits: Decimal = Decimal("0")
    constant_factor: Decimal | None = None


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    reason: str

    @classmethod
    def ok(cls, reason: str = "Eligible") -> Eligibility:
        return cls(True, reason)

    @classmethod
    def denied(cls, reason: str) -> Eligibility:
        return cls(False, reason)


@dataclass
class BenefitResult:
    """Outcome of a benefit calculation; ineligibility is a normal result."""

    benefit_type: BenefitType
    employee_id: UUID
    year: int
    amount: Decimal
    eligibility: Eligibility
    details: dict[str, Any] = field(default_factory=dict)
    days_used: Decimal | None = None
    # leave_type_id -> days, for monetization debits
    leave_days: dict[UUID, Decimal] = field(default_factory=dict)

    @property
    def eligible(self) -> bool:
        return self.eligibility.eligible

    def to_dict(self) -> dict[str, Any]:
        return jsonable(
            {
                "benefit_type": self.benefit_type.value,
                "employee_id": self.employee_id,
                "year": self.year,
                "amount": self.amount,
                "eligibility": {
                    "eligible": self.eligibility.eligible,
                    "reason": self.eligibility.reason,
                },
                "details": self.details,
                "days_used": self.days_used,
            }
        )
