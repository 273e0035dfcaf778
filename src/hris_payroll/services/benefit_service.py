"""Benefit service - computing and recording statutory benefits."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from decimal import Decimal
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.benefits import (
    BenefitHistory,
    BenefitResult,
    BenefitType,
    EmployeeSnapshot,
    get_calculator,
)
from hris_payroll.config import Settings, get_settings
from hris_payroll.database import run_in_savepoint
from hris_payroll.errors import (
    DuplicateRecordError,
    NotFoundError,
    PayrollError,
    ValidationError,
)
from hris_payroll.events import BenefitRecorded, EventEmitter, EventMetadata
from hris_payroll.models import (
    CompensationBenefit,
    Employee,
    PayrollItem,
    PayrollPeriod,
)
from hris_payroll.schemas import BatchBenefitResult, BulkError
from hris_payroll.services.audit_service import AuditService, RequestContext
from hris_payroll.services.leave_ledger import LeaveLedger
from hris_payroll.services.state_machine import PeriodStateMachine

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Recorded through TerminalLeaveService, not as a CompensationBenefit
RECORDABLE_TYPES = frozenset(
    {
        BenefitType.THIRTEENTH_MONTH,
        BenefitType.FOURTEENTH_MONTH,
        BenefitType.PBB,
        BenefitType.LOYALTY_AWARD,
        BenefitType.LEAVE_MONETIZATION,
    }
)


class BenefitService:
    """Calculates benefits from persisted history and records them once per year."""

    def __init__(
        self,
        session: AsyncSession,
        emitter: EventEmitter | None = None,
        context: RequestContext | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.emitter = emitter or EventEmitter()
        self.context = context or RequestContext()
        self.settings = settings or get_settings()
        self.audit = AuditService(session, self.context)
        self.ledger = LeaveLedger(session, self.emitter, self.settings)

    # ----- calculation -----

    async def calculate(
        self, benefit_type: BenefitType | str, employee_id: UUID, year: int
    ) -> BenefitResult:
        benefit_type = _benefit_type(benefit_type)
        employee = await self._employee(employee_id)
        history = await self.load_history(employee_id, year, benefit_type)
        calculator = get_calculator(benefit_type, self.settings)
        return calculator.compute(EmployeeSnapshot.from_model(employee), year, history)

    async def load_history(
        self, employee_id: UUID, year: int, benefit_type: BenefitType
    ) -> BenefitHistory:
        """Load only the history the given benefit type reads."""
        history = BenefitHistory()
        if benefit_type in (BenefitType.THIRTEENTH_MONTH, BenefitType.FOURTEENTH_MONTH):
            history.basic_pay_total = await self.basic_pay_total(employee_id, year)
        elif benefit_type == BenefitType.LEAVE_MONETIZATION:
            history.leave_credits = await self.ledger.get_leave_credits(employee_id, year)
        elif benefit_type == BenefitType.TERMINAL_LEAVE:
            history.total_leave_credits = await self.ledger.total_leave_credits(employee_id)
        return history

    async def basic_pay_total(self, employee_id: UUID, year: int) -> Decimal:
        """Basic pay of the year's Completed and Paid periods."""
        total = (
            await self.session.execute(
                select(func.coalesce(func.sum(PayrollItem.basic_pay), 0))
                .join(PayrollPeriod, PayrollPeriod.id == PayrollItem.payroll_period_id)
                .where(
                    PayrollItem.employee_id == employee_id,
                    PayrollPeriod.year == year,
                    PayrollPeriod.deleted_at.is_(None),
                    PayrollPeriod.status.in_([s.value for s in PeriodStateMachine.COMPLETED_HISTORY]),
                )
            )
        ).scalar()
        return Decimal(str(total or 0)).quantize(Decimal("0.01"))

    async def batch_calculate(
        self, benefit_type: BenefitType | str, employee_ids: list[UUID], year: int
    ) -> BatchBenefitResult:
        benefit_type = _benefit_type(benefit_type)
        summary = BatchBenefitResult(benefit_type=benefit_type.value, year=year)
        total = Decimal("0")

        async def one(employee_id: UUID) -> BenefitResult:
            return await self.calculate(benefit_type, employee_id, year)

        for employee_id, outcome in await self._run_chunked(employee_ids, one, summary):
            summary.results.append(outcome.to_dict())
            if outcome.eligible:
                summary.eligible_count += 1
                total += outcome.amount
        summary.total_amount = total
        summary.processed_count = len(summary.results)
        summary.failed_count = len(summary.errors)
        return summary

    # ----- recording -----

    async def record_benefit(
        self,
        employee_id: UUID,
        benefit_type: BenefitType | str,
        year: int,
        user_id: UUID | None = None,
        date_paid: date | None = None,
        notes: str | None = None,
    ) -> CompensationBenefit:
        """Compute and persist a benefit; at most one per employee, type and year."""
        benefit_type = _benefit_type(benefit_type)
        if benefit_type not in RECORDABLE_TYPES:
            raise ValidationError(
                f"{benefit_type.value} is recorded through the terminal leave workflow"
            )

        await self._ensure_not_recorded(employee_id, benefit_type, year)
        result = await self.calculate(benefit_type, employee_id, year)
        if not result.eligible:
            raise ValidationError(
                f"Employee is not eligible for {benefit_type.value}: {result.eligibility.reason}",
                employee_ids=[employee_id],
                details=result.to_dict(),
            )

        try:
            async with self.session.begin_nested():
                benefit = await self._insert(result, user_id, date_paid, notes)
                if benefit_type == BenefitType.LEAVE_MONETIZATION:
                    await self.ledger.debit_monetization(
                        employee_id, year, result.leave_days, reference=f"benefit:{benefit.id}"
                    )
        except IntegrityError as e:
            raise DuplicateRecordError(
                f"{benefit_type.value} already recorded for employee {employee_id} in {year}"
            ) from e

        self.emitter.emit(
            BenefitRecorded(
                metadata=EventMetadata.create(actor_id=user_id or self.context.user_id),
                benefit_id=benefit.id,
                employee_id=employee_id,
                benefit_type=benefit_type.value,
                year=year,
                amount=benefit.amount,
            )
        )
        logger.info(
            "Recorded %s for employee %s (%s): %s",
            benefit_type.value,
            employee_id,
            year,
            benefit.amount,
        )
        return benefit

    async def process_monetization(
        self, employee_id: UUID, year: int, user_id: UUID | None = None, notes: str | None = None
    ) -> CompensationBenefit:
        """Record leave monetization and debit the ledger in one unit of work."""
        return await self.record_benefit(
            employee_id, BenefitType.LEAVE_MONETIZATION, year, user_id, notes=notes
        )

    async def batch_record(
        self,
        benefit_type: BenefitType | str,
        employee_ids: list[UUID],
        year: int,
        user_id: UUID | None = None,
    ) -> BatchBenefitResult:
        """Record for every employee; ineligible and duplicate employees land in errors."""
        benefit_type = _benefit_type(benefit_type)
        summary = BatchBenefitResult(benefit_type=benefit_type.value, year=year)
        total = Decimal("0")

        async def one(employee_id: UUID) -> CompensationBenefit:
            return await self.record_benefit(employee_id, benefit_type, year, user_id)

        for employee_id, benefit in await self._run_chunked(employee_ids, one, summary):
            summary.results.append(
                {
                    "employee_id": str(employee_id),
                    "benefit_id": str(benefit.id),
                    "amount": str(benefit.amount),
                }
            )
            summary.eligible_count += 1
            total += benefit.amount
        summary.total_amount = total
        summary.processed_count = len(summary.results)
        summary.failed_count = len(summary.errors)
        return summary

    async def list_benefits(
        self,
        employee_id: UUID | None = None,
        year: int | None = None,
        benefit_type: BenefitType | str | None = None,
    ) -> list[CompensationBenefit]:
        query = select(CompensationBenefit)
        if employee_id is not None:
            query = query.where(CompensationBenefit.employee_id == employee_id)
        if year is not None:
            query = query.where(CompensationBenefit.year == year)
        if benefit_type is not None:
            query = query.where(CompensationBenefit.benefit_type == _benefit_type(benefit_type).value)
        result = await self.session.execute(query.order_by(CompensationBenefit.created_at))
        return list(result.scalars())

    # ----- internals -----

    async def _employee(self, employee_id: UUID) -> Employee:
        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.deleted_at is not None:
            raise NotFoundError("Employee", employee_id)
        return employee

    async def _ensure_not_recorded(
        self, employee_id: UUID, benefit_type: BenefitType, year: int
    ) -> None:
        await self.session.flush()
        existing = (
            await self.session.execute(
                select(CompensationBenefit.id).where(
                    CompensationBenefit.employee_id == employee_id,
                    CompensationBenefit.benefit_type == benefit_type.value,
                    CompensationBenefit.year == year,
                )
            )
        ).first()
        if existing is not None:
            raise DuplicateRecordError(
                f"{benefit_type.value} already recorded for employee {employee_id} in {year}",
                details={"benefit_id": str(existing[0])},
            )

    async def _insert(
        self,
        result: BenefitResult,
        user_id: UUID | None,
        date_paid: date | None,
        notes: str | None,
    ) -> CompensationBenefit:
        details = result.to_dict()
        benefit = CompensationBenefit(
            employee_id=result.employee_id,
            benefit_type=result.benefit_type.value,
            year=result.year,
            amount=result.amount,
            days_used=result.days_used,
            date_paid=date_paid,
            notes=notes,
            calculation_details=details,
            processed_by=user_id or self.context.user_id,
        )
        self.session.add(benefit)
        await self.session.flush()
        await self.audit.record(
            "CREATE",
            CompensationBenefit.__tablename__,
            benefit.id,
            new_values={
                "employee_id": result.employee_id,
                "benefit_type": result.benefit_type.value,
                "year": result.year,
                "amount": result.amount,
                "days_used": result.days_used,
            },
            user_id=user_id,
        )
        return benefit

    async def _run_chunked(
        self,
        employee_ids: list[UUID],
        func_: Callable[[UUID], Awaitable[T]],
        summary: BatchBenefitResult,
    ) -> list[tuple[UUID, T]]:
        """Run ``func_`` per employee in chunks with a per-employee timeout."""
        outcomes: list[tuple[UUID, T]] = []
        chunk_size = max(self.settings.batch_chunk_size, 1)
        timeout = self.settings.bulk_item_timeout_seconds
        for start in range(0, len(employee_ids), chunk_size):
            for employee_id in employee_ids[start : start + chunk_size]:
                try:
                    outcome = await run_in_savepoint(self.session, func_(employee_id), timeout)
                except ValidationError as e:
                    summary.errors.append(
                        BulkError(
                            employee_id=employee_id,
                            code=e.code,
                            message=e.message,
                            errors=e.errors,
                        )
                    )
                except PayrollError as e:
                    summary.errors.append(
                        BulkError(employee_id=employee_id, code=e.code, message=e.message)
                    )
                except asyncio.TimeoutError:
                    logger.warning("Timed out computing benefit for employee %s", employee_id)
                    summary.errors.append(
                        BulkError(
                            employee_id=employee_id,
                            code="timeout",
                            message=f"Exceeded {timeout}s",
                        )
                    )
                except Exception as e:
                    logger.exception("Unexpected error computing benefit for employee %s", employee_id)
                    summary.errors.append(
                        BulkError(employee_id=employee_id, code="internal_error", message=str(e))
                    )
                else:
                    outcomes.append((employee_id, outcome))
        return outcomes


def _benefit_type(value: BenefitType | str) -> BenefitType:
    try:
        return BenefitType(value)
    except ValueError:
        raise ValidationError(f"Unknown benefit type: {value}") from None
