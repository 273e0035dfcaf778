"""Leave balances: yearly initialization, monthly accrual, debits, carry-forward.

Balances change only through this module, and every change appends a
LeaveLedgerEntry, so a balance can always be explained by its ledger.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.benefits.eligibility import prorated_months
from hris_payroll.benefits.types import LeaveCredit
from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.config import Settings, get_settings
from hris_payroll.database import run_in_savepoint
from hris_payroll.errors import NotFoundError, PayrollError, ValidationError
from hris_payroll.events import EventEmitter, EventMetadata, LeaveAccrued
from hris_payroll.models import Employee, LeaveBalance, LeaveLedgerEntry, LeaveType
from hris_payroll.schemas import AccrualJobResult, BulkError, CarryForwardJobResult

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
TERMINAL_LEAVE_CODES = ("VL", "SL")

NO_BALANCES_MESSAGE = "Employee has no existing leave balances for this year"


@dataclass
class AccrualResult:
    """Outcome of a monthly accrual; ``success=False`` is not an error."""

    success: bool
    message: str
    credited: dict[str, Decimal] = field(default_factory=dict)


@dataclass
class CarryForwardResult:
    success: bool
    message: str
    carried: dict[str, Decimal] = field(default_factory=dict)


class LeaveLedger:
    """Leave balance operations for one session."""

    def __init__(
        self,
        session: AsyncSession,
        emitter: EventEmitter | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.emitter = emitter or EventEmitter()
        self.settings = settings or get_settings()

    # ----- queries -----

    async def get_balances(
        self, employee_id: UUID, year: int
    ) -> list[tuple[LeaveBalance, LeaveType]]:
        result = await self.session.execute(
            select(LeaveBalance, LeaveType)
            .join(LeaveType, LeaveType.id == LeaveBalance.leave_type_id)
            .where(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
            .order_by(LeaveType.code)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def get_leave_credits(self, employee_id: UUID, year: int) -> list[LeaveCredit]:
        return [
            LeaveCredit(
                leave_type_id=leave_type.id,
                code=leave_type.code,
                balance=Decimal(balance.current_balance),
                is_monetizable=leave_type.is_monetizable,
            )
            for balance, leave_type in await self.get_balances(employee_id, year)
        ]

    async def total_leave_credits(self, employee_id: UUID, year: int | None = None) -> Decimal:
        """Sum of VL and SL balances for ``year`` (default: latest year with balances)."""
        if year is None:
            year = (
                await self.session.execute(
                    select(func.max(LeaveBalance.year)).where(
                        LeaveBalance.employee_id == employee_id
                    )
                )
            ).scalar()
            if year is None:
                return ZERO
        total = ZERO
        for balance, leave_type in await self.get_balances(employee_id, year):
            if leave_type.code in TERMINAL_LEAVE_CODES:
                total += Decimal(balance.current_balance)
        return LineItemBuilder.round_to_cents(total)

    async def get_ledger(self, employee_id: UUID, year: int) -> list[LeaveLedgerEntry]:
        result = await self.session.execute(
            select(LeaveLedgerEntry)
            .where(LeaveLedgerEntry.employee_id == employee_id, LeaveLedgerEntry.year == year)
            .order_by(LeaveLedgerEntry.created_at)
        )
        return list(result.scalars())

    # ----- initialization -----

    async def initialize_yearly_balances(
        self,
        employee_id: UUID,
        year: int,
        appointment_date: date | None = None,
    ) -> list[LeaveBalance]:
        """Create one balance per active leave type; existing rows are kept."""
        employee = await self._employee(employee_id)
        appointment_date = appointment_date or employee.appointment_date
        months = prorated_months(appointment_date, year)

        existing = {b.leave_type_id: b for b, _ in await self.get_balances(employee_id, year)}
        leave_types = (
            await self.session.execute(
                select(LeaveType).where(LeaveType.is_active.is_(True)).order_by(LeaveType.code)
            )
        ).scalars().all()

        balances: list[LeaveBalance] = []
        for leave_type in leave_types:
            if leave_type.id in existing:
                balances.append(existing[leave_type.id])
                continue
            max_days = Decimal(leave_type.max_days_per_year)
            if leave_type.accrues_monthly:
                opening = min(Decimal(leave_type.monthly_accrual_rate) * months, max_days)
            else:
                opening = max_days * months / 12
            opening = LineItemBuilder.round_to_cents(opening)
            balance = LeaveBalance(
                employee_id=employee_id,
                leave_type_id=leave_type.id,
                year=year,
                earned_days=opening,
                current_balance=opening,
            )
            self.session.add(balance)
            self._entry(employee_id, leave_type.id, year, None, "Initialization", opening, opening)
            balances.append(balance)

        await self.session.flush()
        logger.info(
            "Initialized %d leave balance(s) for employee %s in %d",
            len(balances),
            employee_id,
            year,
        )
        return balances

    # ----- accrual -----

    async def process_monthly_accrual(
        self, employee_id: UUID, year: int, month: int
    ) -> AccrualResult:
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        employee = await self._employee(employee_id)

        if (year, month) < (employee.appointment_date.year, employee.appointment_date.month):
            return AccrualResult(False, "Accrual month precedes the appointment date")

        rows = await self.get_balances(employee_id, year)
        if not rows:
            return AccrualResult(False, NO_BALANCES_MESSAGE)

        already = (
            await self.session.execute(
                select(func.count(LeaveLedgerEntry.id)).where(
                    LeaveLedgerEntry.employee_id == employee_id,
                    LeaveLedgerEntry.year == year,
                    LeaveLedgerEntry.month == month,
                    LeaveLedgerEntry.entry_type == "Accrual",
                )
            )
        ).scalar()
        if already:
            return AccrualResult(False, f"Leave already accrued for {year}-{month:02d}")

        credited: dict[str, Decimal] = {}
        try:
            async with self.session.begin_nested():
                for balance, leave_type in rows:
                    if not leave_type.accrues_monthly or not leave_type.is_active:
                        continue
                    room = Decimal(leave_type.max_days_per_year) - Decimal(balance.earned_days)
                    days = min(Decimal(leave_type.monthly_accrual_rate), max(room, ZERO))
                    days = LineItemBuilder.round_to_cents(days)
                    balance.earned_days = Decimal(balance.earned_days) + days
                    balance.current_balance = Decimal(balance.current_balance) + days
                    self._entry(
                        employee_id,
                        leave_type.id,
                        year,
                        month,
                        "Accrual",
                        days,
                        balance.current_balance,
                    )
                    credited[leave_type.code] = days
                await self.session.flush()
        except IntegrityError:
            return AccrualResult(False, f"Leave already accrued for {year}-{month:02d}")

        if not credited:
            return AccrualResult(False, "No accruing leave types for this employee")

        self.emitter.emit(
            LeaveAccrued(
                metadata=EventMetadata.create(),
                employee_id=employee_id,
                year=year,
                month=month,
                days_by_leave_type={k: str(v) for k, v in credited.items()},
            )
        )
        return AccrualResult(True, f"Accrued leave for {year}-{month:02d}", credited)

    async def run_monthly_accrual(self, year: int, month: int) -> AccrualJobResult:
        """Accrue one month for every active employee that has balances for the year."""
        result = AccrualJobResult(year=year, month=month)
        for employee_id in await self._active_employee_ids():
            try:
                outcome = await self.process_monthly_accrual(employee_id, year, month)
            except PayrollError as e:
                result.errors.append(
                    BulkError(employee_id=employee_id, code=e.code, message=e.message)
                )
                continue
            result.messages[str(employee_id)] = outcome.message
            if outcome.success:
                result.processed_count += 1
            else:
                result.skipped_count += 1

        result.failed_count = len(result.errors)
        logger.info(
            "Monthly accrual %d-%02d: %d processed, %d skipped, %d failed",
            year,
            month,
            result.processed_count,
            result.skipped_count,
            result.failed_count,
        )
        return result

    # ----- debits -----

    async def debit_monetization(
        self,
        employee_id: UUID,
        year: int,
        days_by_type: dict[UUID, Decimal],
        reference: str | None = None,
    ) -> list[LeaveBalance]:
        """Remove monetized days from the balances; all or nothing."""
        rows = {b.leave_type_id: b for b, _ in await self.get_balances(employee_id, year)}
        errors: list[str] = []
        for leave_type_id, days in days_by_type.items():
            balance = rows.get(leave_type_id)
            if balance is None:
                errors.append(f"No {year} balance for leave type {leave_type_id}")
            elif Decimal(balance.current_balance) < Decimal(days):
                errors.append(
                    f"Insufficient balance for leave type {leave_type_id}: "
                    f"{balance.current_balance} < {days}"
                )
        if errors:
            raise ValidationError(
                "Cannot debit leave balances", errors=errors, employee_ids=[employee_id]
            )

        updated: list[LeaveBalance] = []
        for leave_type_id, days in days_by_type.items():
            days = Decimal(days)
            balance = rows[leave_type_id]
            balance.current_balance = Decimal(balance.current_balance) - days
            balance.monetized_days = Decimal(balance.monetized_days) + days
            self._entry(
                employee_id,
                leave_type_id,
                year,
                None,
                "Monetization",
                -days,
                balance.current_balance,
                reference,
            )
            updated.append(balance)
        await self.session.flush()
        return updated

    # ----- carry-forward -----

    async def process_carry_forward(
        self, employee_id: UUID, from_year: int, to_year: int | None = None
    ) -> CarryForwardResult:
        """Carry capped balances of carry-forward types into the next year."""
        to_year = to_year if to_year is not None else from_year + 1
        if to_year <= from_year:
            raise ValidationError("Carry-forward target year must be after the source year")

        source = await self.get_balances(employee_id, from_year)
        if not source:
            return CarryForwardResult(False, f"No leave balances for {from_year}")

        target = {b.leave_type_id: b for b, _ in await self.get_balances(employee_id, to_year)}
        if not target:
            await self.initialize_yearly_balances(employee_id, to_year)
            target = {b.leave_type_id: b for b, _ in await self.get_balances(employee_id, to_year)}

        already = (
            await self.session.execute(
                select(func.count(LeaveLedgerEntry.id)).where(
                    LeaveLedgerEntry.employee_id == employee_id,
                    LeaveLedgerEntry.year == to_year,
                    LeaveLedgerEntry.entry_type == "CarryForward",
                )
            )
        ).scalar()
        if already:
            return CarryForwardResult(False, f"Leave already carried forward into {to_year}")

        cap = Decimal(self.settings.max_carry_forward_days)
        carried: dict[str, Decimal] = {}
        try:
            async with self.session.begin_nested():
                for balance, leave_type in source:
                    if not leave_type.allows_carry_forward:
                        continue
                    days = min(Decimal(balance.current_balance), cap)
                    if days <= 0:
                        continue
                    dest = target.get(leave_type.id)
                    if dest is None:
                        continue
                    dest.carried_forward = days
                    dest.current_balance = Decimal(dest.current_balance) + days
                    self._entry(
                        employee_id,
                        leave_type.id,
                        to_year,
                        None,
                        "CarryForward",
                        days,
                        dest.current_balance,
                        f"from {from_year}",
                    )
                    carried[leave_type.code] = days
                await self.session.flush()
        except IntegrityError:
            return CarryForwardResult(False, f"Leave already carried forward into {to_year}")

        if not carried:
            return CarryForwardResult(False, "Nothing to carry forward")
        return CarryForwardResult(
            True, f"Carried forward leave from {from_year} to {to_year}", carried
        )

    async def run_carry_forward(
        self, from_year: int, to_year: int | None = None
    ) -> CarryForwardJobResult:
        """Carry forward for every active employee; one savepoint per employee."""
        to_year = to_year if to_year is not None else from_year + 1
        if to_year <= from_year:
            raise ValidationError("Carry-forward target year must be after the source year")

        result = CarryForwardJobResult(from_year=from_year, to_year=to_year)
        timeout = self.settings.bulk_item_timeout_seconds
        for employee_id in await self._active_employee_ids():
            try:
                outcome = await run_in_savepoint(
                    self.session,
                    self.process_carry_forward(employee_id, from_year, to_year),
                    timeout,
                )
            except PayrollError as e:
                logger.warning("Carry-forward failed for employee %s: %s", employee_id, e.message)
                result.errors.append(
                    BulkError(employee_id=employee_id, code=e.code, message=e.message)
                )
                continue
            except asyncio.TimeoutError:
                logger.warning("Timed out carrying forward leave for employee %s", employee_id)
                result.errors.append(
                    BulkError(
                        employee_id=employee_id,
                        code="timeout",
                        message=f"Exceeded {timeout}s",
                    )
                )
                continue
            result.messages[str(employee_id)] = outcome.message
            if outcome.success:
                result.processed_count += 1
            else:
                result.skipped_count += 1

        result.failed_count = len(result.errors)
        logger.info(
            "Carry-forward %d to %d: %d processed, %d skipped, %d failed",
            from_year,
            to_year,
            result.processed_count,
            result.skipped_count,
            result.failed_count,
        )
        return result

    # ----- internals -----

    async def _active_employee_ids(self) -> list[UUID]:
        result = await self.session.execute(
            select(Employee.id)
            .where(Employee.deleted_at.is_(None), Employee.employment_status == "Active")
            .order_by(Employee.employee_number)
        )
        return list(result.scalars())

    async def _employee(self, employee_id: UUID) -> Employee:
        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.deleted_at is not None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def _entry(
        self,
        employee_id: UUID,
        leave_type_id: UUID,
        year: int,
        month: int | None,
        entry_type: str,
        days: Decimal,
        balance_after: Decimal,
        reference: str | None = None,
    ) -> LeaveLedgerEntry:
        entry = LeaveLedgerEntry(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            year=year,
            month=month,
            entry_type=entry_type,
            days=days,
            balance_after=balance_after,
            reference=reference,
        )
        self.session.add(entry)
        return entry
