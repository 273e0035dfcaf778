"""Recorded statutory benefits and terminal leave claims."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
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

from hris_payroll.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

BENEFIT_TYPES = (
    "THIRTEENTH_MONTH",
    "FOURTEENTH_MONTH",
    "PBB",
    "LOYALTY_AWARD",
    "LEAVE_MONETIZATION",
)


class CompensationBenefit(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A benefit paid to an employee for a year; at most one per type and year."""

    __tablename__ = "compensation_benefit"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.id", ondelete="RESTRICT"), nullable=False
    )
    benefit_type: Mapped[str] = mapped_column(String(30), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    days_used: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    date_paid: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)
    calculation_details: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    processed_by: Mapped[UUID | None] = mapped_column()

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "benefit_type", "year", name="compensation_benefit_employee_type_year"
        ),
        CheckConstraint(
            "benefit_type IN ('THIRTEENTH_MONTH', 'FOURTEENTH_MONTH', 'PBB', "
            "'LOYALTY_AWARD', 'LEAVE_MONETIZATION')",
            name="compensation_benefit_type_check",
        ),
        CheckConstraint("amount >= 0", name="compensation_benefit_amount_check"),
    )


class TerminalLeaveBenefit(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Terminal leave benefit claim of a separated employee."""

    __tablename__ = "terminal_leave_benefit"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.id", ondelete="RESTRICT"), nullable=False
    )
    total_leave_credits: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    highest_monthly_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    constant_factor: Mapped[Decimal] = mapped_column(
        Numeric(4, 2), nullable=False, default=Decimal("1.0")
    )
    computed_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    claim_date: Mapped[date] = mapped_column(Date, nullable=False)
    separation_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Computed")
    computed_by: Mapped[UUID | None] = mapped_column()
    approved_by: Mapped[UUID | None] = mapped_column()
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    payment_date: Mapped[date | None] = mapped_column(Date)
    check_number: Mapped[str | None] = mapped_column(String(50))
    cancelled_reason: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint(
            "status IN ('Computed', 'Approved', 'Paid', 'Cancelled')",
            name="terminal_leave_status_check",
        ),
        CheckConstraint(
            "constant_factor >= 0.1 AND constant_factor <= 2.0",
            name="terminal_leave_factor_check",
        ),
        Index(
            "terminal_leave_one_open_claim",
            "employee_id",
            unique=True,
            sqlite_where=text("status <> 'Cancelled'"),
            postgresql_where=text("status <> 'Cancelled'"),
        ),
    )
