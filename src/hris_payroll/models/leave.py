"""Leave types, yearly balances and the append-only leave ledger."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from hris_payroll.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class LeaveType(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Leave category and its accrual policy."""

    __tablename__ = "leave_type"

    code: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # Zero means a fixed yearly allocation instead of monthly accrual
    monthly_accrual_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 3), nullable=False, default=Decimal("0")
    )
    max_days_per_year: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    is_monetizable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allows_carry_forward: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def accrues_monthly(self) -> bool:
        return self.monthly_accrual_rate > 0


class LeaveBalance(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Per-employee, per-type, per-year leave balance."""

    __tablename__ = "leave_balance"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.id", ondelete="CASCADE"), nullable=False
    )
    leave_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("leave_type.id", ondelete="RESTRICT"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    earned_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    used_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    monetized_days: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    carried_forward: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "leave_type_id", "year", name="leave_balance_employee_type_year_unique"
        ),
        CheckConstraint("current_balance >= 0", name="leave_balance_non_negative"),
    )


class LeaveLedgerEntry(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Single leave movement; rows are never updated or deleted."""

    __tablename__ = "leave_ledger_entry"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.id", ondelete="CASCADE"), nullable=False
    )
    leave_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("leave_type.id", ondelete="RESTRICT"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int | None] = mapped_column(Integer)
    entry_type: Mapped[str] = mapped_column(String(20), nullable=False)
    days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100))

    __table_args__ = (
        CheckConstraint(
            "entry_type IN ('Initialization', 'Accrual', 'Monetization', 'CarryForward')",
            name="leave_ledger_entry_type_check",
        ),
        Index(
            "leave_ledger_one_accrual_per_month",
            "employee_id",
            "leave_type_id",
            "year",
            "month",
            unique=True,
            sqlite_where=text("entry_type = 'Accrual'"),
            postgresql_where=text("entry_type = 'Accrual'"),
        ),
        Index(
            "leave_ledger_one_carry_forward_per_year",
            "employee_id",
            "leave_type_id",
            "year",
            unique=True,
            sqlite_where=text("entry_type = 'CarryForward'"),
            postgresql_where=text("entry_type = 'CarryForward'"),
        ),
    )
