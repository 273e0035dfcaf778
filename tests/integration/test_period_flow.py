"""Payroll period lifecycle: create, process, finalize, pay, reopen, cancel."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from hris_payroll.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from hris_payroll.models import PayrollPeriod


async def create_january_first_half(period_service):
    return await period_service.create_period(
        year=2025,
        month=1,
        period_number=1,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 15),
        pay_date=date(2025, 1, 20),
    )


class TestCreatePeriod:
    async def test_creates_draft_period(self, period_service, audit_actions):
        period = await create_january_first_half(period_service)

        assert period.status == "Draft"
        assert period.label == "2025-01 #1"
        assert period.reopen_count == 0
        assert await audit_actions(PayrollPeriod.__tablename__, period.id) == ["CREATE"]

    async def test_duplicate_period_rejected(self, period_service):
        await create_january_first_half(period_service)

        with pytest.raises(ValidationError) as exc_info:
            await create_january_first_half(period_service)

        assert exc_info.value.errors == ["Payroll period 2025-01 #1 already exists"]

    async def test_overlapping_dates_rejected(self, period_service):
        await create_january_first_half(period_service)

        with pytest.raises(ValidationError) as exc_info:
            await period_service.create_period(
                2025, 1, 2, date(2025, 1, 10), date(2025, 1, 31), date(2025, 2, 5)
            )

        assert any("overlaps payroll period 2025-01 #1" in e for e in exc_info.value.errors)

    async def test_field_errors_reported_together(self, period_service):
        with pytest.raises(ValidationError) as exc_info:
            await period_service.create_period(
                2019, 13, 3, date(2025, 1, 15), date(2025, 1, 1), date(2024, 12, 1)
            )

        assert len(exc_info.value.errors) == 5

    async def test_deleted_period_frees_its_key(self, period_service):
        first = await create_january_first_half(period_service)
        await period_service.soft_delete(first.id)

        second = await create_january_first_half(period_service)

        assert second.id != first.id
        with pytest.raises(NotFoundError):
            await period_service.get_period(first.id)
        with pytest.raises(ValidationError):
            await period_service.restore(first.id)


class TestPeriodLifecycle:
    """Full happy path through every period status."""

    async def test_process_finalize_pay(
        self, period_service, item_service, employees, deduction_types, emitter
    ):
        period = await create_january_first_half(period_service)
        entries = [
            {"employee_id": employees[0].id, "working_days": 22},
            {"employee_id": employees[1].id, "working_days": 10},
            {"employee_id": employees[2].id, "working_days": 0},
        ]

        result = await item_service.bulk_process(period.id, entries)

        assert result.success
        assert result.processed_count == 3
        assert period.status == "Processing"

        items = {i.employee_id: i for i in await item_service.list_items(period.id)}
        assert items[employees[0].id].basic_pay == Decimal("22000.00")
        assert items[employees[0].id].net_pay == Decimal("19920.00")
        assert items[employees[1].id].net_pay == Decimal("9000.00")
        assert items[employees[2].id].net_pay == Decimal("0.00")

        await period_service.finalize(period.id)

        assert period.status == "Completed"
        assert period.finalized_at is not None
        assert {i.status for i in await item_service.list_items(period.id)} == {"Finalized"}
        assert emitter.types().count("PayrollItemFinalized") == 3
        assert "PayrollPeriodFinalized" in emitter.types()

        await period_service.mark_as_paid(period.id)

        assert period.status == "Paid"
        assert {i.status for i in await item_service.list_items(period.id)} == {"Paid"}
        paid_event = [e for e in emitter.delivered if e.event_type == "PayrollPeriodPaid"][0]
        assert paid_event.item_count == 3
        assert paid_event.total_net_pay == Decimal("28920.00")

        with pytest.raises(InvalidTransitionError):
            await period_service.reopen(period.id, reason="Correction after payment")

    async def test_summary(self, period_service, item_service, employees, deduction_types):
        period = await create_january_first_half(period_service)
        await item_service.bulk_process(
            period.id,
            [
                {"employee_id": employees[0].id, "working_days": 22},
                {"employee_id": employees[1].id, "working_days": 10},
            ],
        )

        summary = await period_service.get_period_summary(period.id)

        assert summary.item_count == 2
        assert summary.draft_count == 2
        assert summary.total_basic_pay == Decimal("32000.00")
        assert summary.total_net_pay == Decimal("28920.00")

    async def test_cannot_finalize_draft_period(self, period_service):
        period = await create_january_first_half(period_service)

        with pytest.raises(InvalidTransitionError):
            await period_service.finalize(period.id)

    async def test_negative_net_pay_blocks_finalize(
        self, period_service, item_service, employees, deduction_types, emitter
    ):
        period = await create_january_first_half(period_service)
        await item_service.bulk_process(
            period.id,
            [
                {"employee_id": employees[0].id, "working_days": 1},
                {"employee_id": employees[1].id, "working_days": 22},
            ],
        )
        items = await item_service.list_items(period.id)
        [item] = [i for i in items if i.employee_id == employees[0].id]
        await item_service.add_manual_adjustment(
            item.id, "Deduction", "Salary loan", Decimal("5000"), "Loan"
        )

        with pytest.raises(ValidationError) as exc_info:
            await period_service.finalize(period.id)

        assert exc_info.value.employee_ids == [employees[0].id]
        assert "Negative net pay" in exc_info.value.errors[0]
        assert period.status == "Processing"
        assert "PayrollPeriodFinalized" not in emitter.types()

    async def test_mark_as_paid_requires_completed(self, period_service, item_service, employees):
        period = await create_january_first_half(period_service)
        await item_service.bulk_process(period.id, [{"employee_id": employees[0].id}])

        with pytest.raises(InvalidTransitionError):
            await period_service.mark_as_paid(period.id)


class TestReopenAndCancel:
    async def _completed(self, period_service, item_service, employees):
        period = await create_january_first_half(period_service)
        await item_service.bulk_process(
            period.id, [{"employee_id": e.id, "working_days": 22} for e in employees]
        )
        await period_service.finalize(period.id)
        return period

    async def test_reopen_returns_items_to_draft(
        self, period_service, item_service, employees, emitter
    ):
        period = await self._completed(period_service, item_service, employees)

        await period_service.reopen(period.id, reason="Attendance correction")

        assert period.status == "Processing"
        assert period.reopen_count == 1
        assert period.finalized_at is None
        assert {i.status for i in await item_service.list_items(period.id)} == {"Draft"}
        reopened = [e for e in emitter.delivered if e.event_type == "PayrollPeriodReopened"]
        assert reopened[0].reason == "Attendance correction"

    async def test_reopen_requires_reason(self, period_service, item_service, employees):
        period = await self._completed(period_service, item_service, employees)

        with pytest.raises(ValidationError):
            await period_service.reopen(period.id, reason="  ")

    async def test_reopen_blocked_by_paid_item(self, period_service, item_service, employees):
        period = await self._completed(period_service, item_service, employees)
        items = await item_service.list_items(period.id)

        paid = await period_service.mark_items_as_paid(period.id, [items[0].id])

        assert paid == 1
        with pytest.raises(ConflictError):
            await period_service.reopen(period.id, reason="Attendance correction")

    async def test_mark_items_rejects_foreign_items(self, period_service, item_service, employees):
        period = await self._completed(period_service, item_service, employees)

        with pytest.raises(ValidationError):
            await period_service.mark_items_as_paid(period.id, [uuid4()])

    async def test_cancel_discards_draft_items(self, period_service, item_service, employees):
        period = await create_january_first_half(period_service)
        await item_service.bulk_process(period.id, [{"employee_id": employees[0].id}])

        await period_service.cancel(period.id)

        assert period.status == "Draft"
        assert await item_service.list_items(period.id) == []

    async def test_cannot_cancel_completed_period(self, period_service, item_service, employees):
        period = await self._completed(period_service, item_service, employees)

        with pytest.raises(ConflictError):
            await period_service.cancel(period.id)

    async def test_processing_period_cannot_be_deleted(
        self, period_service, item_service, employees
    ):
        period = await create_january_first_half(period_service)
        await item_service.bulk_process(period.id, [{"employee_id": employees[0].id}])

        with pytest.raises(ConflictError):
            await period_service.soft_delete(period.id)

    async def test_status_changes_are_audited(
        self, period_service, item_service, employees, audit_actions
    ):
        period = await self._completed(period_service, item_service, employees)

        actions = await audit_actions(PayrollPeriod.__tablename__, period.id)

        assert sorted(actions) == ["CREATE", "STATUS_CHANGE", "STATUS_CHANGE"]


class TestQueries:
    async def test_list_and_covering(self, period_service):
        first = await create_january_first_half(period_service)
        second = await period_service.create_period(
            2025, 1, 2, date(2025, 1, 16), date(2025, 1, 31), date(2025, 2, 5)
        )

        listed = await period_service.list_periods(year=2025)
        assert [p.id for p in listed] == [second.id, first.id]
        assert [p.id for p in await period_service.list_periods(status="Processing")] == []
        covering = await period_service.find_periods_covering(date(2025, 1, 20))
        assert [p.id for p in covering] == [second.id]
