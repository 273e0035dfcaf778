"""Employee master snapshot consumed by payroll and benefit calculations."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from hris_payroll.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin

EMPLOYMENT_STATUSES = ("Active", "Inactive", "On Leave", "Resigned", "Retired", "Terminated")
SEPARATED_STATUSES = frozenset({"Resigned", "Retired", "Terminated"})


class Employee(Base, UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin):
    """Employee record owned by the HR master-data store."""

    __tablename__ = "employee"

    employee_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    employment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="Active")
    current_monthly_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    current_daily_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    highest_monthly_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    separation_date: Mapped[date | None] = mapped_column(Date)

    __table_args__ = (
        CheckConstraint(
            "employment_status IN ('Active', 'Inactive', 'On Leave', 'Resigned', "
            "'Retired', 'Terminated')",
            name="employee_status_check",
        ),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.employment_status == "Active" and self.deleted_at is None

    @property
    def is_separated(self) -> bool:
        return self.employment_status in SEPARATED_STATUSES or self.separation_date is not None
