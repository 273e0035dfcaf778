"""Payroll period service - lifecycle orchestration for periods."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from hris_payroll.database import fetch_for_update
from hris_payroll.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from hris_payroll.events import (
    EventEmitter,
    EventMetadata,
    PayrollItemFinalized,
    PayrollItemPaid,
    PayrollPeriodFinalized,
    PayrollPeriodPaid,
    PayrollPeriodReopened,
)
from hris_payroll.models import PayrollItem, PayrollItemLine, PayrollPeriod, utcnow
from hris_payroll.services.audit_service import AuditService, RequestContext
from hris_payroll.services.state_machine import ItemStatus, PeriodStateMachine, PeriodStatus
from hris_payroll.services.validation import ValidationEngine, raise_if_errors

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class PeriodSummary:
    """Aggregate figures for one period."""

    payroll_period_id: UUID
    status: str
    item_count: int
    draft_count: int
    finalized_count: int
    paid_count: int
    total_basic_pay: Decimal
    total_allowances: Decimal
    total_deductions: Decimal
    total_gross_pay: Decimal
    total_net_pay: Decimal


class PeriodService:
    """Service for managing the payroll period lifecycle.

    Operations:
    - create_period: validate and create a Draft period
    - start_processing: Draft → Processing
    - finalize: Processing → Completed, items → Finalized
    - mark_as_paid: Completed → Paid, items → Paid
    - reopen: Completed → Processing, items → Draft
    - cancel: Processing → Draft, draft items discarded

    Every status change re-reads the row under a lock and applies a
    conditional update on the expected status.
    """

    def __init__(
        self,
        session: AsyncSession,
        emitter: EventEmitter | None = None,
        context: RequestContext | None = None,
    ):
        self.session = session
        self.emitter = emitter or EventEmitter()
        self.context = context or RequestContext()
        self.audit = AuditService(session, self.context)
        self.validation = ValidationEngine(session)

    # ----- queries -----

    async def get_period(self, period_id: UUID, include_deleted: bool = False) -> PayrollPeriod:
        period = await self.session.get(PayrollPeriod, period_id)
        if period is None or (period.deleted_at is not None and not include_deleted):
            raise NotFoundError("PayrollPeriod", period_id)
        return period

    async def list_periods(
        self,
        year: int | None = None,
        month: int | None = None,
        status: str | None = None,
        include_deleted: bool = False,
    ) -> list[PayrollPeriod]:
        query = select(PayrollPeriod)
        if not include_deleted:
            query = query.where(PayrollPeriod.deleted_at.is_(None))
        if year is not None:
            query = query.where(PayrollPeriod.year == year)
        if month is not None:
            query = query.where(PayrollPeriod.month == month)
        if status is not None:
            query = query.where(PayrollPeriod.status == getattr(status, "value", status))
        query = query.order_by(
            PayrollPeriod.year.desc(), PayrollPeriod.month.desc(), PayrollPeriod.period_number.desc()
        )
        result = await self.session.execute(query)
        return list(result.scalars())

    async def find_periods_covering(self, start: date, end: date | None = None) -> list[PayrollPeriod]:
        """Non-deleted periods whose date range intersects [start, end]."""
        end = end or start
        result = await self.session.execute(
            select(PayrollPeriod)
            .where(
                PayrollPeriod.deleted_at.is_(None),
                PayrollPeriod.start_date <= end,
                PayrollPeriod.end_date >= start,
            )
            .order_by(PayrollPeriod.start_date)
        )
        return list(result.scalars())

    async def get_period_summary(self, period_id: UUID) -> PeriodSummary:
        period = await self.get_period(period_id, include_deleted=True)
        result = await self.session.execute(
            select(
                PayrollItem.status,
                func.count(PayrollItem.id),
                func.coalesce(func.sum(PayrollItem.basic_pay), 0),
                func.coalesce(func.sum(PayrollItem.total_allowances), 0),
                func.coalesce(func.sum(PayrollItem.total_deductions), 0),
                func.coalesce(func.sum(PayrollItem.gross_pay), 0),
                func.coalesce(func.sum(PayrollItem.net_pay), 0),
            )
            .where(PayrollItem.payroll_period_id == period_id)
            .group_by(PayrollItem.status)
        )
        counts = {status.value: 0 for status in ItemStatus}
        sums = [ZERO] * 5
        for row in result.all():
            counts[row[0]] = row[1]
            for i in range(5):
                sums[i] += Decimal(str(row[2 + i]))
        sums = [s.quantize(Decimal("0.01")) for s in sums]
        return PeriodSummary(
            payroll_period_id=period.id,
            status=period.status,
            item_count=sum(counts.values()),
            draft_count=counts[ItemStatus.DRAFT.value],
            finalized_count=counts[ItemStatus.FINALIZED.value],
            paid_count=counts[ItemStatus.PAID.value],
            total_basic_pay=sums[0],
            total_allowances=sums[1],
            total_deductions=sums[2],
            total_gross_pay=sums[3],
            total_net_pay=sums[4],
        )

    @staticmethod
    def can_edit(period: PayrollPeriod) -> bool:
        return period.deleted_at is None and PeriodStateMachine.can_edit(period.status)

    # ----- commands -----

    async def create_period(
        self,
        year: int,
        month: int,
        period_number: int,
        start_date: date,
        end_date: date,
        pay_date: date,
        created_by: UUID | None = None,
    ) -> PayrollPeriod:
        errors = ValidationEngine.check_period_fields(
            year, month, period_number, start_date, end_date, pay_date
        )
        errors += await self.validation.check_period_conflicts(
            year, month, period_number, start_date, end_date
        )
        raise_if_errors("Invalid payroll period", errors)

        period = PayrollPeriod(
            year=year,
            month=month,
            period_number=period_number,
            start_date=start_date,
            end_date=end_date,
            pay_date=pay_date,
            status=PeriodStatus.DRAFT.value,
            created_by=created_by or self.context.user_id,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(period)
                await self.session.flush()
        except IntegrityError as e:
            raise ValidationError(
                f"Payroll period {year}-{month:02d} #{period_number} already exists"
            ) from e

        await self.audit.record(
            "CREATE",
            PayrollPeriod.__tablename__,
            period.id,
            new_values=_period_values(period),
            user_id=created_by,
        )
        logger.info("Created payroll period %s", period.label)
        return period

    async def start_processing(self, period_id: UUID, user_id: UUID | None = None) -> PayrollPeriod:
        """Draft → Processing. No-op when the period is already Processing."""
        period = await self._lock_period(period_id)
        if period.status == PeriodStatus.PROCESSING:
            return period
        return await self._transition(period, PeriodStatus.PROCESSING, user_id)

    async def finalize(self, period_id: UUID, user_id: UUID | None = None) -> PayrollPeriod:
        period = await self._lock_period(period_id)
        if period.status != PeriodStatus.PROCESSING:
            raise InvalidTransitionError(
                period.status,
                PeriodStatus.COMPLETED,
                f"Payroll period must be Processing to finalize (current: {period.status})",
            )

        report = await self.validation.check_period_for_finalization(period)
        raise_if_errors(
            "Payroll period cannot be finalized", report.errors, report.employee_ids
        )

        now = utcnow()
        with self.emitter.batch():
            period = await self._transition(
                period,
                PeriodStatus.COMPLETED,
                user_id,
                finalized_by=user_id or self.context.user_id,
                finalized_at=now,
            )
            await self.session.execute(
                update(PayrollItem)
                .where(
                    PayrollItem.payroll_period_id == period.id,
                    PayrollItem.status == ItemStatus.DRAFT.value,
                )
                .values(status=ItemStatus.FINALIZED.value, finalized_at=now)
            )
            items = await self._items(period.id)
            for item in items:
                self.emitter.emit(
                    PayrollItemFinalized(
                        metadata=self._metadata(user_id),
                        payroll_item_id=item.id,
                        payroll_period_id=period.id,
                        employee_id=item.employee_id,
                        net_pay=item.net_pay,
                    )
                )
            self.emitter.emit(
                PayrollPeriodFinalized(
                    metadata=self._metadata(user_id),
                    payroll_period_id=period.id,
                    item_count=len(items),
                    total_net_pay=_total(i.net_pay for i in items),
                )
            )
        logger.info("Finalized payroll period %s (%d items)", period.label, len(items))
        return period

    async def mark_as_paid(self, period_id: UUID, user_id: UUID | None = None) -> PayrollPeriod:
        period = await self._lock_period(period_id)
        items = await self._items(period.id)
        errors = PeriodStateMachine.validate_period_for_transition(
            period, PeriodStatus.PAID, [i.status for i in items]
        )
        if errors:
            raise InvalidTransitionError(period.status, PeriodStatus.PAID, "; ".join(errors))

        now = utcnow()
        with self.emitter.batch():
            period = await self._transition(
                period, PeriodStatus.PAID, user_id, paid_by=user_id or self.context.user_id, paid_at=now
            )
            newly_paid = await self._pay_items(period, [i.id for i in items], now, user_id)
            self.emitter.emit(
                PayrollPeriodPaid(
                    metadata=self._metadata(user_id),
                    payroll_period_id=period.id,
                    item_count=len(items),
                    total_net_pay=_total(i.net_pay for i in items),
                )
            )
        logger.info("Payroll period %s paid (%d items newly paid)", period.label, newly_paid)
        return period

    async def mark_items_as_paid(
        self, period_id: UUID, item_ids: list[UUID], user_id: UUID | None = None
    ) -> int:
        """Pay selected Finalized items of a Completed period; returns the count paid."""
        period = await self._lock_period(period_id)
        if period.status != PeriodStatus.COMPLETED:
            raise ConflictError(
                f"Items can only be paid while the period is Completed (current: {period.status})"
            )
        items = {i.id: i for i in await self._items(period.id)}
        unknown = [i for i in item_ids if i not in items]
        if unknown:
            raise ValidationError(
                "Items do not belong to this payroll period",
                errors=[f"Payroll item {i} not in period {period.id}" for i in unknown],
            )
        with self.emitter.batch():
            count = await self._pay_items(period, item_ids, utcnow(), user_id)
        return count

    async def reopen(
        self, period_id: UUID, user_id: UUID | None = None, reason: str | None = None
    ) -> PayrollPeriod:
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to reopen a payroll period")

        period = await self._lock_period(period_id)
        items = await self._items(period.id)
        if period.status == PeriodStatus.COMPLETED and any(
            i.status == ItemStatus.PAID for i in items
        ):
            raise ConflictError(
                "Cannot reopen a payroll period with paid items",
                details={"paid_item_ids": [str(i.id) for i in items if i.status == ItemStatus.PAID]},
            )
        errors = PeriodStateMachine.validate_period_for_transition(
            period, PeriodStatus.PROCESSING, [i.status for i in items]
        )
        if errors:
            raise InvalidTransitionError(period.status, PeriodStatus.PROCESSING, "; ".join(errors))

        with self.emitter.batch():
            period = await self._transition(
                period,
                PeriodStatus.PROCESSING,
                user_id,
                reason=reason,
                reopen_count=period.reopen_count + 1,
                finalized_at=None,
                finalized_by=None,
            )
            await self.session.execute(
                update(PayrollItem)
                .where(
                    PayrollItem.payroll_period_id == period.id,
                    PayrollItem.status == ItemStatus.FINALIZED.value,
                )
                .values(status=ItemStatus.DRAFT.value, finalized_at=None)
            )
            self.emitter.emit(
                PayrollPeriodReopened(
                    metadata=self._metadata(user_id),
                    payroll_period_id=period.id,
                    reason=reason,
                    reopen_count=period.reopen_count,
                )
            )
        logger.info("Reopened payroll period %s: %s", period.label, reason)
        return period

    async def cancel(self, period_id: UUID, user_id: UUID | None = None) -> PayrollPeriod:
        """Processing → Draft, removing the period's draft items and their lines."""
        period = await self._lock_period(period_id)
        items = await self._items(period.id)
        if any(i.status != ItemStatus.DRAFT for i in items):
            raise ConflictError("Only periods whose items are all Draft can be cancelled")

        period = await self._transition(period, PeriodStatus.DRAFT, user_id)
        item_ids = [i.id for i in items]
        if item_ids:
            await self.session.execute(
                delete(PayrollItemLine).where(PayrollItemLine.payroll_item_id.in_(item_ids))
            )
            await self.session.execute(delete(PayrollItem).where(PayrollItem.id.in_(item_ids)))
        await self.audit.record(
            "CANCEL",
            PayrollPeriod.__tablename__,
            period.id,
            new_values={"deleted_items": len(item_ids)},
            user_id=user_id,
        )
        logger.info("Cancelled payroll period %s, removed %d items", period.label, len(item_ids))
        return period

    async def soft_delete(self, period_id: UUID, user_id: UUID | None = None) -> PayrollPeriod:
        period = await self._lock_period(period_id)
        if period.status not in PeriodStateMachine.DELETABLE:
            raise ConflictError(f"Cannot delete a payroll period in status {period.status}")
        period.deleted_at = utcnow()
        await self.session.flush()
        await self.audit.record(
            "DELETE",
            PayrollPeriod.__tablename__,
            period.id,
            old_values=_period_values(period),
            user_id=user_id,
        )
        return period

    async def restore(self, period_id: UUID, user_id: UUID | None = None) -> PayrollPeriod:
        period = await self.get_period(period_id, include_deleted=True)
        if period.deleted_at is None:
            return period
        errors = await self.validation.check_period_conflicts(
            period.year,
            period.month,
            period.period_number,
            period.start_date,
            period.end_date,
            exclude_id=period.id,
        )
        raise_if_errors("Payroll period cannot be restored", errors)
        period.deleted_at = None
        await self.session.flush()
        await self.audit.record(
            "RESTORE",
            PayrollPeriod.__tablename__,
            period.id,
            new_values=_period_values(period),
            user_id=user_id,
        )
        return period

    # ----- internals -----

    async def _lock_period(self, period_id: UUID) -> PayrollPeriod:
        await self.session.flush()
        period = await fetch_for_update(
            self.session,
            PayrollPeriod,
            PayrollPeriod.id == period_id,
            PayrollPeriod.deleted_at.is_(None),
        )
        if period is None:
            raise NotFoundError("PayrollPeriod", period_id)
        return period

    async def _items(self, period_id: UUID) -> list[PayrollItem]:
        result = await self.session.execute(
            select(PayrollItem)
            .where(PayrollItem.payroll_period_id == period_id)
            .order_by(PayrollItem.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars())

    async def _transition(
        self,
        period: PayrollPeriod,
        to_status: PeriodStatus,
        user_id: UUID | None,
        reason: str | None = None,
        **values: Any,
    ) -> PayrollPeriod:
        """Compare-and-swap the period status and audit the change."""
        from_status = period.status
        PeriodStateMachine.validate_transition(from_status, to_status)

        result = await self.session.execute(
            update(PayrollPeriod)
            .where(PayrollPeriod.id == period.id, PayrollPeriod.status == from_status)
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                f"Payroll period {period.id} changed status concurrently (expected {from_status})"
            )
        set_committed_value(period, "status", to_status.value)
        for key, value in values.items():
            set_committed_value(period, key, value)

        await self.audit.record(
            "STATUS_CHANGE",
            PayrollPeriod.__tablename__,
            period.id,
            old_values={"status": from_status},
            new_values={"status": to_status.value, "reason": reason, **values},
            user_id=user_id,
        )
        return period

    async def _pay_items(
        self,
        period: PayrollPeriod,
        item_ids: list[UUID],
        paid_at: datetime,
        user_id: UUID | None,
    ) -> int:
        wanted = set(item_ids)
        items = [i for i in await self._items(period.id) if i.id in wanted]
        paid = 0
        for item in items:
            if item.status != ItemStatus.FINALIZED:
                continue
            result = await self.session.execute(
                update(PayrollItem)
                .where(PayrollItem.id == item.id, PayrollItem.status == ItemStatus.FINALIZED.value)
                .values(status=ItemStatus.PAID.value, paid_at=paid_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                continue
            set_committed_value(item, "status", ItemStatus.PAID.value)
            set_committed_value(item, "paid_at", paid_at)
            paid += 1
            self.emitter.emit(
                PayrollItemPaid(
                    metadata=self._metadata(user_id),
                    payroll_item_id=item.id,
                    payroll_period_id=period.id,
                    employee_id=item.employee_id,
                    net_pay=item.net_pay,
                    pay_date=period.pay_date,
                )
            )
        await self.session.flush()
        return paid

    def _metadata(self, user_id: UUID | None) -> EventMetadata:
        return EventMetadata.create(actor_id=user_id or self.context.user_id)


def _total(values) -> Decimal:
    return sum((Decimal(v) for v in values), ZERO)


def _period_values(period: PayrollPeriod) -> dict[str, Any]:
    return {
        "year": period.year,
        "month": period.month,
        "period_number": period.period_number,
        "start_date": period.start_date,
        "end_date": period.end_date,
        "pay_date": period.pay_date,
        "status": period.status,
    }
