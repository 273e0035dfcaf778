"""Type definitions for the payroll item calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class LineType(str, Enum):
    """Payroll item line types."""

    ALLOWANCE = "Allowance"
    DEDUCTION = "Deduction"
    ADJUSTMENT = "Adjustment"


class CalculationMethod(str, Enum):
    """How an allowance or deduction type derives its amount."""

    FIXED = "Fixed"
    PERCENTAGE = "Percentage"
    FORMULA = "Formula"


class Frequency(str, Enum):
    """How often a compensation type applies."""

    MONTHLY = "Monthly"
    SEMI_MONTHLY = "Semi-Monthly"
    ANNUAL = "Annual"


@dataclass
class LineCandidate:
    """A candidate line before persistence.

    Allowance and deduction amounts are positive; adjustments are signed.
    """

    line_type: LineType
    amount: Decimal
    description: str
    is_override: bool = False
    is_manual: bool = False
    calculation_basis: str | None = None
    allowance_type_id: UUID | None = None
    deduction_type_id: UUID | None = None

    @classmethod
    def from_model(cls, line: Any) -> LineCandidate:
        """Build a candidate from a persisted PayrollItemLine."""
        return cls(
            line_type=LineType(line.line_type),
            amount=Decimal(line.amount),
            description=line.description,
            is_override=line.is_override,
            is_manual=line.is_manual,
            calculation_basis=line.calculation_basis,
            allowance_type_id=line.allowance_type_id,
            deduction_type_id=line.deduction_type_id,
        )


@dataclass(frozen=True)
class CompensationRule:
    """Snapshot of an AllowanceType or DeductionType used by the calculator."""

    type_id: UUID
    code: str
    name: str
    calculation_method: CalculationMethod
    frequency: Frequency
    default_amount: Decimal | None = None
    percentage: Decimal | None = None
    max_amount: Decimal | None = None
    is_prorated: bool = False

    @classmethod
    def from_model(cls, model: Any) -> CompensationRule:
        return cls(
            type_id=model.id,
            code=model.code,
            name=model.name,
            calculation_method=CalculationMethod(model.calculation_method),
            frequency=Frequency(model.frequency),
            default_amount=model.default_amount,
            percentage=model.percentage,
            max_amount=model.max_amount,
            is_prorated=model.is_prorated,
        )


@dataclass
class ItemTotals:
    """Derived monetary totals of a payroll item."""

    basic_pay: Decimal
    total_allowances: Decimal
    total_deductions: Decimal
    gross_pay: Decimal
    net_pay: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "basic_pay": self.basic_pay,
            "total_allowances": self.total_allowances,
            "total_deductions": self.total_deductions,
            "gross_pay": self.gross_pay,
            "net_pay": self.net_pay,
        }


@dataclass
class ItemCalculationContext:
    """Everything the calculator needs for one employee in one period."""

    employee_id: UUID
    working_days: int
    period_number: int
    monthly_salary: Decimal | None
    daily_rate: Decimal | None
    allowance_rules: list[CompensationRule] = field(default_factory=list)
    deduction_rules: list[CompensationRule] = field(default_factory=list)
    # type_id -> override amount
    allowance_overrides: dict[UUID, Decimal] = field(default_factory=dict)
    deduction_overrides: dict[UUID, Decimal] = field(default_factory=dict)
    manual_lines: list[LineCandidate] = field(default_factory=list)


@dataclass
class ItemCalculationResult:
    """Result of calculating one payroll item."""

    employee_id: UUID
    working_days: int
    daily_rate: Decimal
    totals: ItemTotals
    lines: list[LineCandidate]

    @property
    def computed_lines(self) -> list[LineCandidate]:
        return [line for line in self.lines if not line.is_manual]
