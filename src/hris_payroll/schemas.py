"""Pydantic models for engine inputs and report contracts."""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Inputs
# ============================================================================


class WorkingDaysEntry(BaseModel):
    """One employee's attendance for a bulk run."""

    employee_id: UUID
    working_days: int | None = None


class ManualAdjustmentInput(BaseModel):
    """A manually entered line on a payroll item."""

    line_type: str = Field(pattern="^(Allowance|Deduction|Adjustment)$")
    description: str = Field(min_length=1, max_length=200)
    amount: Decimal
    reason: str | None = None


# ============================================================================
# Payroll item breakdown (report contract)
# ============================================================================


class EmployeeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_number: str
    first_name: str
    last_name: str
    employment_status: str


class CalculationSummary(BaseModel):
    working_days: int
    daily_rate: Decimal
    basic_pay: Decimal
    total_allowances: Decimal
    total_deductions: Decimal
    gross_pay: Decimal
    net_pay: Decimal


class LineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    line_type: str
    description: str
    amount: Decimal
    is_override: bool
    is_manual: bool
    calculation_basis: str | None = None
    allowance_type_id: UUID | None = None
    deduction_type_id: UUID | None = None


class PayrollItemBreakdown(BaseModel):
    """Structure handed to payslip and report rendering."""

    payroll_item_id: UUID
    payroll_period_id: UUID
    status: str
    employee: EmployeeSummary
    calculation: CalculationSummary
    line_items: list[LineItemResponse]
    notes: str | None = None


# ============================================================================
# Bulk results
# ============================================================================


class BulkError(BaseModel):
    """A per-record failure inside a bulk operation."""

    employee_id: UUID | None
    entry_index: int | None = None
    code: str
    message: str
    errors: list[str] = []


class BulkProcessResult(BaseModel):
    payroll_period_id: UUID
    processed_count: int = 0
    failed_count: int = 0
    item_ids: list[UUID] = []
    errors: list[BulkError] = []

    @property
    def success(self) -> bool:
        return self.failed_count == 0


class BatchBenefitResult(BaseModel):
    benefit_type: str
    year: int
    processed_count: int = 0
    eligible_count: int = 0
    failed_count: int = 0
    total_amount: Decimal = Decimal("0")
    results: list[dict[str, Any]] = []
    errors: list[BulkError] = []


class AccrualJobResult(BaseModel):
    year: int
    month: int
    processed_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    messages: dict[str, str] = {}
    errors: list[BulkError] = []


class CarryForwardJobResult(BaseModel):
    from_year: int
    to_year: int
    processed_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    messages: dict[str, str] = {}
    errors: list[BulkError] = []


class TerminalLeaveStatistics(BaseModel):
    total_records: int = 0
    by_status: dict[str, int] = {}
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    average_amount: Decimal = Decimal("0")
    from_date: date | None = None
    to_date: date | None = None
