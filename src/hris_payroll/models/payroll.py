"""Payroll period, item, line and compensation type models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from hris_payroll.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin

# ===== Periods =====


class PayrollPeriod(Base, UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin):
    """Semi-monthly payroll period."""

    __tablename__ = "payroll_period"

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Draft")
    created_by: Mapped[UUID | None] = mapped_column()
    finalized_by: Mapped[UUID | None] = mapped_column()
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_by: Mapped[UUID | None] = mapped_column()
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reopen_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "status IN ('Draft', 'Processing', 'Completed', 'Paid')",
            name="payroll_period_status_check",
        ),
        CheckConstraint("period_number IN (1, 2)", name="payroll_period_number_check"),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_period_month_check"),
        CheckConstraint("end_date > start_date", name="payroll_period_dates_check"),
        Index(
            "payroll_period_active_unique",
            "year",
            "month",
            "period_number",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    @property
    def label(self) -> str:
        return f"{self.year}-{self.month:02d} #{self.period_number}"


# ===== Compensation types =====


class _CompensationTypeMixin:
    """Columns shared by allowance and deduction types."""

    code: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    calculation_method: Mapped[str] = mapped_column(String(20), nullable=False, default="Fixed")
    default_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 4))
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="Monthly")
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_prorated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class AllowanceType(Base, UUIDPrimaryKeyMixin, TimestampMixin, _CompensationTypeMixin):
    """Configurable allowance (additive line)."""

    __tablename__ = "allowance_type"

    __table_args__ = (
        CheckConstraint(
            "calculation_method IN ('Fixed', 'Percentage', 'Formula')",
            name="allowance_type_method_check",
        ),
        CheckConstraint(
            "frequency IN ('Monthly', 'Semi-Monthly', 'Annual')",
            name="allowance_type_frequency_check",
        ),
    )


class DeductionType(Base, UUIDPrimaryKeyMixin, TimestampMixin, _CompensationTypeMixin):
    """Configurable deduction (subtractive line)."""

    __tablename__ = "deduction_type"

    __table_args__ = (
        CheckConstraint(
            "calculation_method IN ('Fixed', 'Percentage', 'Formula')",
            name="deduction_type_method_check",
        ),
        CheckConstraint(
            "frequency IN ('Monthly', 'Semi-Monthly', 'Annual')",
            name="deduction_type_frequency_check",
        ),
    )


class EmployeeOverride(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Employee-specific amount replacing a type's computed value."""

    __tablename__ = "employee_override"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.id", ondelete="CASCADE"), nullable=False
    )
    override_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    allowance_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("allowance_type.id", ondelete="CASCADE")
    )
    deduction_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("deduction_type.id", ondelete="CASCADE")
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reason: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[UUID | None] = mapped_column()

    __table_args__ = (
        CheckConstraint(
            "override_kind IN ('allowance', 'deduction')", name="employee_override_kind_check"
        ),
        CheckConstraint(
            "(override_kind = 'allowance' AND allowance_type_id IS NOT NULL "
            "AND deduction_type_id IS NULL) OR "
            "(override_kind = 'deduction' AND deduction_type_id IS NOT NULL "
            "AND allowance_type_id IS NULL)",
            name="employee_override_target_check",
        ),
        CheckConstraint("amount >= 0", name="employee_override_amount_check"),
    )

    @property
    def type_id(self) -> UUID | None:
        return self.allowance_type_id if self.override_kind == "allowance" else self.deduction_type_id


# ===== Items =====


class PayrollItem(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Computed pay of one employee for one period."""

    __tablename__ = "payroll_item"

    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.id", ondelete="CASCADE"), nullable=False
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.id", ondelete="RESTRICT"), nullable=False
    )
    working_days: Mapped[int] = mapped_column(Integer, nullable=False, default=22)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    basic_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_allowances: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Draft")
    notes: Mapped[str | None] = mapped_column(Text)
    processed_by: Mapped[UUID | None] = mapped_column()
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("payroll_period_id", "employee_id", name="payroll_item_period_employee_unique"),
        CheckConstraint(
            "status IN ('Draft', 'Finalized', 'Paid')", name="payroll_item_status_check"
        ),
        CheckConstraint("working_days >= 0", name="payroll_item_working_days_check"),
    )


class PayrollItemLine(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Allowance, deduction or adjustment line of a payroll item."""

    __tablename__ = "payroll_item_line"

    payroll_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_item.id", ondelete="CASCADE"), nullable=False
    )
    line_type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    calculation_basis: Mapped[str | None] = mapped_column(String(200))
    allowance_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("allowance_type.id", ondelete="SET NULL")
    )
    deduction_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("deduction_type.id", ondelete="SET NULL")
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[UUID | None] = mapped_column()

    __table_args__ = (
        CheckConstraint(
            "line_type IN ('Allowance', 'Deduction', 'Adjustment')",
            name="payroll_item_line_type_check",
        ),
        CheckConstraint(
            "line_type = 'Adjustment' OR amount >= 0", name="payroll_item_line_sign_check"
        ),
    )
