"""Payroll item service - computing, adjusting and reporting payroll items."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.calculators import (
    ItemCalculationResult,
    LineCandidate,
    LineItemBuilder,
    LineType,
    PayrollCalculator,
    RateResolver,
)
from hris_payroll.config import Settings, get_settings
from hris_payroll.database import fetch_for_update, run_in_savepoint
from hris_payroll.errors import ConflictError, NotFoundError, PayrollError, ValidationError
from hris_payroll.events import EventEmitter
from hris_payroll.models import Employee, PayrollItem, PayrollItemLine, PayrollPeriod, utcnow
from hris_payroll.schemas import (
    BulkError,
    BulkProcessResult,
    CalculationSummary,
    EmployeeSummary,
    LineItemResponse,
    PayrollItemBreakdown,
    WorkingDaysEntry,
)
from hris_payroll.services.audit_service import AuditService, RequestContext
from hris_payroll.services.period_service import PeriodService
from hris_payroll.services.state_machine import ItemStateMachine, ItemStatus, PeriodStatus
from hris_payroll.services.validation import ValidationEngine, raise_if_errors

logger = logging.getLogger(__name__)


class PayrollItemService:
    """Creates and maintains payroll items of editable periods.

    Operations:
    - bulk_process: compute items for many employees, one savepoint each
    - recalculate: regenerate computed lines, keep manual lines
    - adjust_working_days: change attendance with a mandatory reason
    - add_manual_adjustment / remove_manual_adjustment
    - get_item_breakdown: report structure for payslips
    """

    def __init__(
        self,
        session: AsyncSession,
        emitter: EventEmitter | None = None,
        context: RequestContext | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.context = context or RequestContext()
        self.settings = settings or get_settings()
        self.audit = AuditService(session, self.context)
        self.periods = PeriodService(session, emitter, self.context)
        self.calculator = PayrollCalculator(self.settings.standard_working_days)

    # ----- queries -----

    async def get_item(self, item_id: UUID) -> PayrollItem:
        item = await self.session.get(PayrollItem, item_id)
        if item is None:
            raise NotFoundError("PayrollItem", item_id)
        return item

    async def list_items(self, period_id: UUID) -> list[PayrollItem]:
        result = await self.session.execute(
            select(PayrollItem)
            .where(PayrollItem.payroll_period_id == period_id)
            .order_by(PayrollItem.created_at)
        )
        return list(result.scalars())

    async def get_lines(self, item_id: UUID) -> list[PayrollItemLine]:
        result = await self.session.execute(
            select(PayrollItemLine)
            .where(PayrollItemLine.payroll_item_id == item_id)
            .order_by(PayrollItemLine.sort_order, PayrollItemLine.created_at)
        )
        return list(result.scalars())

    async def get_item_breakdown(self, item_id: UUID) -> PayrollItemBreakdown:
        item = await self.get_item(item_id)
        employee = await self.session.get(Employee, item.employee_id)
        if employee is None:
            raise NotFoundError("Employee", item.employee_id)
        lines = await self.get_lines(item.id)
        return PayrollItemBreakdown(
            payroll_item_id=item.id,
            payroll_period_id=item.payroll_period_id,
            status=item.status,
            employee=EmployeeSummary.model_validate(employee),
            calculation=CalculationSummary(
                working_days=item.working_days,
                daily_rate=item.daily_rate,
                basic_pay=item.basic_pay,
                total_allowances=item.total_allowances,
                total_deductions=item.total_deductions,
                gross_pay=item.gross_pay,
                net_pay=item.net_pay,
            ),
            line_items=[LineItemResponse.model_validate(line) for line in lines],
            notes=item.notes,
        )

    # ----- bulk processing -----

    async def bulk_process(
        self,
        period_id: UUID,
        entries: Iterable[WorkingDaysEntry | dict[str, Any]],
        user_id: UUID | None = None,
    ) -> BulkProcessResult:
        """Compute items for every entry; failures are collected per employee."""
        period = await self.periods.get_period(period_id)
        if not PeriodService.can_edit(period):
            raise ConflictError(f"Payroll period {period.label} is {period.status} and cannot be edited")

        raw_entries = list(entries)
        result = BulkProcessResult(payroll_period_id=period.id)
        chunk_size = max(self.settings.batch_chunk_size, 1)
        timeout = self.settings.bulk_item_timeout_seconds

        for start in range(0, len(raw_entries), chunk_size):
            for index, raw in enumerate(raw_entries[start : start + chunk_size], start):
                try:
                    entry = _parse_entry(raw, index)
                except ValidationError as e:
                    result.errors.append(
                        BulkError(
                            employee_id=_raw_employee_id(raw),
                            entry_index=index,
                            code=e.code,
                            message=e.message,
                            errors=e.errors,
                        )
                    )
                    continue

                working_days = (
                    entry.working_days
                    if entry.working_days is not None
                    else self.settings.standard_working_days
                )
                try:
                    item = await run_in_savepoint(
                        self.session,
                        self._process_employee(period, entry.employee_id, working_days, user_id),
                        timeout,
                    )
                except ValidationError as e:
                    result.errors.append(
                        BulkError(
                            employee_id=entry.employee_id,
                            entry_index=index,
                            code=e.code,
                            message=e.message,
                            errors=e.errors,
                        )
                    )
                except PayrollError as e:
                    result.errors.append(
                        BulkError(
                            employee_id=entry.employee_id,
                            entry_index=index,
                            code=e.code,
                            message=e.message,
                        )
                    )
                except IntegrityError:
                    result.errors.append(
                        BulkError(
                            employee_id=entry.employee_id,
                            entry_index=index,
                            code=ConflictError.code,
                            message="Payroll item was created concurrently",
                        )
                    )
                except asyncio.TimeoutError:
                    logger.warning("Timed out processing employee %s", entry.employee_id)
                    result.errors.append(
                        BulkError(
                            employee_id=entry.employee_id,
                            entry_index=index,
                            code="timeout",
                            message=f"Processing exceeded {timeout}s",
                        )
                    )
                except Exception as e:
                    logger.exception("Unexpected error processing employee %s", entry.employee_id)
                    result.errors.append(
                        BulkError(
                            employee_id=entry.employee_id,
                            entry_index=index,
                            code="internal_error",
                            message=str(e),
                        )
                    )
                else:
                    result.item_ids.append(item.id)

        result.processed_count = len(result.item_ids)
        result.failed_count = len(result.errors)

        if result.processed_count and period.status == PeriodStatus.DRAFT:
            await self.periods.start_processing(period.id, user_id)

        logger.info(
            "Bulk processed period %s: %d processed, %d failed",
            period.label,
            result.processed_count,
            result.failed_count,
        )
        return result

    async def process_employee(
        self,
        period_id: UUID,
        employee_id: UUID,
        working_days: int | None = None,
        user_id: UUID | None = None,
    ) -> PayrollItem:
        """Compute (or recompute) one employee's item, raising on failure."""
        result = await self.bulk_process(
            period_id,
            [WorkingDaysEntry(employee_id=employee_id, working_days=working_days)],
            user_id,
        )
        if result.errors:
            error = result.errors[0]
            raise ValidationError(
                error.message,
                errors=error.errors or [error.message],
                employee_ids=[employee_id],
            )
        return await self.get_item(result.item_ids[0])

    async def _process_employee(
        self,
        period: PayrollPeriod,
        employee_id: UUID,
        working_days: int,
        user_id: UUID | None,
    ) -> PayrollItem:
        employee = await self.session.get(Employee, employee_id)
        errors = ValidationEngine.check_employee(employee, employee_id)
        errors += ValidationEngine.check_working_days(working_days, period)
        raise_if_errors("Employee cannot be processed", errors, [employee_id])

        existing = (
            await self.session.execute(
                select(PayrollItem).where(
                    PayrollItem.payroll_period_id == period.id,
                    PayrollItem.employee_id == employee_id,
                )
            )
        ).scalar_one_or_none()

        if existing is not None:
            if not ItemStateMachine.can_edit(existing.status, period.status):
                raise ConflictError(f"Payroll item for employee {employee_id} is {existing.status}")
            old_values = _item_values(existing)
            existing.working_days = working_days
            item = await self._recompute(existing, employee, period, user_id)
            await self.audit.record(
                "RECALCULATE",
                PayrollItem.__tablename__,
                item.id,
                old_values=old_values,
                new_values=_item_values(item),
                user_id=user_id,
            )
            return item

        manual: list[LineCandidate] = []
        ctx = await RateResolver(self.session).build_context(
            employee, working_days, period.period_number, period.end_date, manual
        )
        calc = self.calculator.calculate(ctx)
        item = PayrollItem(
            payroll_period_id=period.id,
            employee_id=employee_id,
            working_days=working_days,
            status=ItemStatus.DRAFT.value,
            processed_by=user_id or self.context.user_id,
        )
        _apply_totals(item, calc)
        self.session.add(item)
        await self.session.flush()
        await self._replace_computed_lines(item, calc, user_id)
        await self.audit.record(
            "CREATE", PayrollItem.__tablename__, item.id, new_values=_item_values(item), user_id=user_id
        )
        return item

    # ----- single-item operations -----

    async def recalculate(self, item_id: UUID, user_id: UUID | None = None) -> PayrollItem:
        """Regenerate computed lines from current configuration; idempotent."""
        item, period = await self._load_editable(item_id)
        employee = await self.session.get(Employee, item.employee_id)
        if employee is None or employee.deleted_at is not None:
            raise NotFoundError("Employee", item.employee_id)

        old_values = _item_values(item)
        item = await self._recompute(item, employee, period, user_id)
        new_values = _item_values(item)
        if new_values != old_values:
            await self.audit.record(
                "RECALCULATE",
                PayrollItem.__tablename__,
                item.id,
                old_values=old_values,
                new_values=new_values,
                user_id=user_id,
            )
        return item

    async def adjust_working_days(
        self,
        item_id: UUID,
        working_days: int,
        reason: str,
        user_id: UUID | None = None,
    ) -> PayrollItem:
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to adjust working days")
        item, period = await self._load_editable(item_id)
        raise_if_errors(
            "Invalid working days",
            ValidationEngine.check_working_days(working_days, period),
            [item.employee_id],
        )
        employee = await self.session.get(Employee, item.employee_id)
        if employee is None:
            raise NotFoundError("Employee", item.employee_id)

        old_days = item.working_days
        old_values = _item_values(item)
        item.working_days = working_days
        item.notes = _append_note(
            item.notes, f"Working days adjusted from {old_days} to {working_days}: {reason.strip()}"
        )
        item = await self._recompute(item, employee, period, user_id)
        await self.audit.record(
            "ADJUST_WORKING_DAYS",
            PayrollItem.__tablename__,
            item.id,
            old_values=old_values,
            new_values={**_item_values(item), "reason": reason.strip()},
            user_id=user_id,
        )
        return item

    async def add_manual_adjustment(
        self,
        item_id: UUID,
        line_type: LineType | str,
        description: str,
        amount: Decimal | str | int,
        reason: str | None = None,
        user_id: UUID | None = None,
    ) -> PayrollItemLine:
        """Append a manual line and re-derive the item's totals from all lines."""
        errors: list[str] = []
        try:
            line_type = LineType(line_type)
        except ValueError:
            errors.append(f"Invalid line type: {line_type}")
        if not description or not description.strip():
            errors.append("Description is required")
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            errors.append(f"Invalid amount: {amount}")
        else:
            if amount == 0:
                errors.append("Amount cannot be zero")
            elif amount < 0 and line_type != LineType.ADJUSTMENT:
                errors.append("Only adjustments may carry a negative amount")
        raise_if_errors("Invalid manual adjustment", errors)

        item, _ = await self._load_editable(item_id)
        old_values = _item_values(item)
        candidate = LineItemBuilder.create_manual_line(line_type, description.strip(), amount, reason)
        existing = await self.get_lines(item.id)
        line = _line_model(item.id, candidate, len(existing), user_id or self.context.user_id)
        self.session.add(line)
        await self.session.flush()

        await self._resum(item, existing + [line])
        item.notes = _append_note(
            item.notes,
            f"Manual {line_type.value.lower()} '{candidate.description}' {candidate.amount}"
            + (f": {reason}" if reason else ""),
        )
        await self.session.flush()
        await self.audit.record(
            "MANUAL_ADJUSTMENT",
            PayrollItem.__tablename__,
            item.id,
            old_values=old_values,
            new_values={**_item_values(item), "line_id": line.id, "reason": reason},
            user_id=user_id,
        )
        return line

    async def remove_manual_adjustment(self, line_id: UUID, user_id: UUID | None = None) -> PayrollItem:
        line = await self.session.get(PayrollItemLine, line_id)
        if line is None:
            raise NotFoundError("PayrollItemLine", line_id)
        if not line.is_manual:
            raise ConflictError("Only manual lines can be removed; recalculate to change computed lines")
        item, _ = await self._load_editable(line.payroll_item_id)
        old_values = _item_values(item)
        await self.session.delete(line)
        await self.session.flush()
        await self._resum(item, await self.get_lines(item.id))
        await self.session.flush()
        await self.audit.record(
            "REMOVE_ADJUSTMENT",
            PayrollItem.__tablename__,
            item.id,
            old_values=old_values,
            new_values={**_item_values(item), "line_id": line_id},
            user_id=user_id,
        )
        return item

    # ----- internals -----

    async def _load_editable(self, item_id: UUID) -> tuple[PayrollItem, PayrollPeriod]:
        await self.session.flush()
        item = await fetch_for_update(self.session, PayrollItem, PayrollItem.id == item_id)
        if item is None:
            raise NotFoundError("PayrollItem", item_id)
        period = await self.periods.get_period(item.payroll_period_id)
        if not ItemStateMachine.can_edit(item.status, period.status):
            raise ConflictError(
                f"Payroll item is {item.status} in a {period.status} period and cannot be edited"
            )
        return item, period

    async def _recompute(
        self,
        item: PayrollItem,
        employee: Employee,
        period: PayrollPeriod,
        user_id: UUID | None,
    ) -> PayrollItem:
        lines = await self.get_lines(item.id)
        manual = [LineCandidate.from_model(line) for line in lines if line.is_manual]
        ctx = await RateResolver(self.session).build_context(
            employee, item.working_days, period.period_number, period.end_date, manual
        )
        calc = self.calculator.calculate(ctx)
        _apply_totals(item, calc)
        item.processed_by = user_id or self.context.user_id or item.processed_by
        await self._replace_computed_lines(item, calc, user_id)
        return item

    async def _replace_computed_lines(
        self, item: PayrollItem, calc: ItemCalculationResult, user_id: UUID | None
    ) -> None:
        await self.session.execute(
            delete(PayrollItemLine).where(
                PayrollItemLine.payroll_item_id == item.id,
                PayrollItemLine.is_manual.is_(False),
            )
        )
        for order, candidate in enumerate(calc.computed_lines):
            self.session.add(_line_model(item.id, candidate, order, user_id or self.context.user_id))
        await self.session.flush()

    async def _resum(self, item: PayrollItem, lines: list[PayrollItemLine]) -> None:
        totals = LineItemBuilder.compute_totals(
            item.basic_pay, [LineCandidate.from_model(line) for line in lines]
        )
        item.total_allowances = totals.total_allowances
        item.total_deductions = totals.total_deductions
        item.gross_pay = totals.gross_pay
        item.net_pay = totals.net_pay
        item.calculated_at = utcnow()


def _apply_totals(item: PayrollItem, calc: ItemCalculationResult) -> None:
    item.daily_rate = calc.daily_rate
    item.basic_pay = calc.totals.basic_pay
    item.total_allowances = calc.totals.total_allowances
    item.total_deductions = calc.totals.total_deductions
    item.gross_pay = calc.totals.gross_pay
    item.net_pay = calc.totals.net_pay
    item.calculated_at = utcnow()


def _line_model(
    item_id: UUID, candidate: LineCandidate, order: int, user_id: UUID | None
) -> PayrollItemLine:
    return PayrollItemLine(
        payroll_item_id=item_id,
        line_type=candidate.line_type.value,
        description=candidate.description,
        amount=candidate.amount,
        is_override=candidate.is_override,
        is_manual=candidate.is_manual,
        calculation_basis=candidate.calculation_basis,
        allowance_type_id=candidate.allowance_type_id,
        deduction_type_id=candidate.deduction_type_id,
        sort_order=order,
        created_by=user_id,
    )


def _append_note(notes: str | None, text: str) -> str:
    entry = f"[{date.today().isoformat()}] {text}"
    return f"{notes}\n{entry}" if notes else entry


def _item_values(item: PayrollItem) -> dict[str, Any]:
    return {
        "working_days": item.working_days,
        "daily_rate": item.daily_rate,
        "basic_pay": item.basic_pay,
        "total_allowances": item.total_allowances,
        "total_deductions": item.total_deductions,
        "gross_pay": item.gross_pay,
        "net_pay": item.net_pay,
        "status": item.status,
    }


def _parse_entry(raw: WorkingDaysEntry | dict[str, Any], index: int) -> WorkingDaysEntry:
    if isinstance(raw, WorkingDaysEntry):
        return raw
    try:
        return WorkingDaysEntry.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Entry {index} is not a valid working days record",
            errors=[
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ],
        ) from e


def _raw_employee_id(raw: Any) -> UUID | None:
    value = raw.get("employee_id") if isinstance(raw, dict) else None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
