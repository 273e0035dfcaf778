"""Terminal leave benefit claims for separated employees."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any
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
from hris_payroll.database import fetch_for_update
from hris_payroll.errors import (
    ConflictError,
    DuplicateRecordError,
    NotFoundError,
    ValidationError,
)
from hris_payroll.events import EventEmitter, EventMetadata, TerminalLeaveStatusChanged
from hris_payroll.models import Employee, TerminalLeaveBenefit, utcnow
from hris_payroll.schemas import TerminalLeaveStatistics
from hris_payroll.services.audit_service import AuditService, RequestContext
from hris_payroll.services.leave_ledger import LeaveLedger
from hris_payroll.services.state_machine import TerminalLeaveStateMachine, TerminalLeaveStatus

logger = logging.getLogger(__name__)


class TerminalLeaveService:
    """Compute, record and move terminal leave claims through their lifecycle.

    Operations:
    - compute_for_employee: preview the amount without persisting
    - create_record: persist a Computed claim (one open claim per employee)
    - approve / mark_paid / cancel: status transitions
    - get_statistics: counts and amounts by status
    """

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

    async def compute_for_employee(
        self,
        employee_id: UUID,
        constant_factor: Decimal | None = None,
        claim_date: date | None = None,
        leave_credits: Decimal | None = None,
    ) -> BenefitResult:
        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        claim_date = claim_date or date.today()
        if leave_credits is None:
            leave_credits = await self.ledger.total_leave_credits(employee_id)
        history = BenefitHistory(
            total_leave_credits=Decimal(leave_credits),
            constant_factor=Decimal(str(constant_factor)) if constant_factor is not None else None,
        )
        calculator = get_calculator(BenefitType.TERMINAL_LEAVE, self.settings)
        return calculator.compute(EmployeeSnapshot.from_model(employee), claim_date.year, history)

    async def get_record(self, record_id: UUID) -> TerminalLeaveBenefit:
        record = await self.session.get(TerminalLeaveBenefit, record_id)
        if record is None:
            raise NotFoundError("TerminalLeaveBenefit", record_id)
        return record

    async def list_records(
        self, employee_id: UUID | None = None, status: str | None = None
    ) -> list[TerminalLeaveBenefit]:
        query = select(TerminalLeaveBenefit)
        if employee_id is not None:
            query = query.where(TerminalLeaveBenefit.employee_id == employee_id)
        if status is not None:
            query = query.where(TerminalLeaveBenefit.status == getattr(status, "value", status))
        result = await self.session.execute(query.order_by(TerminalLeaveBenefit.claim_date.desc()))
        return list(result.scalars())

    async def create_record(
        self,
        employee_id: UUID,
        user_id: UUID | None = None,
        constant_factor: Decimal | None = None,
        claim_date: date | None = None,
        leave_credits: Decimal | None = None,
        notes: str | None = None,
    ) -> TerminalLeaveBenefit:
        await self.session.flush()
        open_claim = (
            await self.session.execute(
                select(TerminalLeaveBenefit.id).where(
                    TerminalLeaveBenefit.employee_id == employee_id,
                    TerminalLeaveBenefit.status != TerminalLeaveStatus.CANCELLED.value,
                )
            )
        ).first()
        if open_claim is not None:
            raise DuplicateRecordError(
                f"Employee {employee_id} already has a terminal leave claim",
                details={"terminal_leave_id": str(open_claim[0])},
            )

        claim_date = claim_date or date.today()
        result = await self.compute_for_employee(employee_id, constant_factor, claim_date, leave_credits)
        if not result.eligible:
            raise ValidationError(
                f"Employee is not eligible for terminal leave: {result.eligibility.reason}",
                employee_ids=[employee_id],
            )

        employee = await self.session.get(Employee, employee_id)
        record = TerminalLeaveBenefit(
            employee_id=employee_id,
            total_leave_credits=result.details["total_leave_credits"],
            highest_monthly_salary=result.details["highest_monthly_salary"],
            constant_factor=result.details["constant_factor"],
            computed_amount=result.amount,
            claim_date=claim_date,
            separation_date=employee.separation_date,
            status=TerminalLeaveStatus.COMPUTED.value,
            computed_by=user_id or self.context.user_id,
            notes=notes,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(record)
                await self.session.flush()
        except IntegrityError as e:
            raise DuplicateRecordError(
                f"Employee {employee_id} already has a terminal leave claim"
            ) from e

        await self.audit.record(
            "CREATE",
            TerminalLeaveBenefit.__tablename__,
            record.id,
            new_values=_record_values(record),
            user_id=user_id,
        )
        logger.info("Computed terminal leave for employee %s: %s", employee_id, record.computed_amount)
        return record

    async def approve(self, record_id: UUID, user_id: UUID | None = None) -> TerminalLeaveBenefit:
        return await self._transition(
            record_id,
            TerminalLeaveStatus.APPROVED,
            user_id,
            approved_by=user_id or self.context.user_id,
            approved_at=utcnow(),
        )

    async def mark_paid(
        self,
        record_id: UUID,
        user_id: UUID | None = None,
        payment_date: date | None = None,
        check_number: str | None = None,
    ) -> TerminalLeaveBenefit:
        return await self._transition(
            record_id,
            TerminalLeaveStatus.PAID,
            user_id,
            payment_date=payment_date or date.today(),
            check_number=check_number,
        )

    async def cancel(
        self, record_id: UUID, reason: str, user_id: UUID | None = None
    ) -> TerminalLeaveBenefit:
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to cancel a terminal leave claim")
        return await self._transition(
            record_id, TerminalLeaveStatus.CANCELLED, user_id, cancelled_reason=reason.strip()
        )

    async def get_statistics(
        self, from_date: date | None = None, to_date: date | None = None
    ) -> TerminalLeaveStatistics:
        query = select(
            TerminalLeaveBenefit.status,
            func.count(TerminalLeaveBenefit.id),
            func.coalesce(func.sum(TerminalLeaveBenefit.computed_amount), 0),
        ).group_by(TerminalLeaveBenefit.status)
        if from_date is not None:
            query = query.where(TerminalLeaveBenefit.claim_date >= from_date)
        if to_date is not None:
            query = query.where(TerminalLeaveBenefit.claim_date <= to_date)

        stats = TerminalLeaveStatistics(from_date=from_date, to_date=to_date)
        for status, count, amount in (await self.session.execute(query)).all():
            amount = Decimal(str(amount)).quantize(Decimal("0.01"))
            stats.by_status[status] = count
            stats.total_records += count
            if status != TerminalLeaveStatus.CANCELLED:
                stats.total_amount += amount
            if status == TerminalLeaveStatus.PAID:
                stats.paid_amount += amount
        active = stats.total_records - stats.by_status.get(TerminalLeaveStatus.CANCELLED.value, 0)
        if active:
            stats.average_amount = (stats.total_amount / active).quantize(Decimal("0.01"))
        return stats

    async def _transition(
        self,
        record_id: UUID,
        to_status: TerminalLeaveStatus,
        user_id: UUID | None,
        **values: Any,
    ) -> TerminalLeaveBenefit:
        await self.session.flush()
        record = await fetch_for_update(
            self.session, TerminalLeaveBenefit, TerminalLeaveBenefit.id == record_id
        )
        if record is None:
            raise NotFoundError("TerminalLeaveBenefit", record_id)
        from_status = record.status
        TerminalLeaveStateMachine.validate_transition(from_status, to_status)

        record.status = to_status.value
        for key, value in values.items():
            setattr(record, key, value)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Terminal leave claim {record_id} could not move to {to_status.value}"
            ) from e

        await self.audit.record(
            "STATUS_CHANGE",
            TerminalLeaveBenefit.__tablename__,
            record.id,
            old_values={"status": from_status},
            new_values={"status": to_status.value, **values},
            user_id=user_id,
        )
        self.emitter.emit(
            TerminalLeaveStatusChanged(
                metadata=EventMetadata.create(actor_id=user_id or self.context.user_id),
                terminal_leave_id=record.id,
                employee_id=record.employee_id,
                from_status=from_status,
                to_status=to_status.value,
                amount=record.computed_amount,
            )
        )
        return record


def _record_values(record: TerminalLeaveBenefit) -> dict[str, Any]:
    return {
        "employee_id": record.employee_id,
        "total_leave_credits": record.total_leave_credits,
        "highest_monthly_salary": record.highest_monthly_salary,
        "constant_factor": record.constant_factor,
        "computed_amount": record.computed_amount,
        "claim_date": record.claim_date,
        "status": record.status,
    }
