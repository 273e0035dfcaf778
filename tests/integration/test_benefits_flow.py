"""Statutory benefits computed from persisted history and recorded once per year."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from hris_payroll.benefits import BenefitType
from hris_payroll.errors import (
    ConflictError,
    DuplicateRecordError,
    NotFoundError,
    ValidationError,
)


async def test_thirteenth_month_counts_closed_periods_only(
    benefit_service, item_service, draft_period, employees, make_closed_period
):
    employee = employees[0]
    await make_closed_period(3, 1, {employee.id: "12000"})
    await make_closed_period(3, 2, {employee.id: "12000"}, status="Paid")
    await make_closed_period(12, 2, {employee.id: "50000"}, year=2024)
    # still editable, so not part of the year's history
    await item_service.process_employee(draft_period.id, employee.id, 22)

    result = await benefit_service.calculate("THIRTEENTH_MONTH", employee.id, 2025)

    assert result.eligible
    assert result.amount == Decimal("2000.00")
    assert result.details["total_basic_pay"] == Decimal("24000.00")


async def test_thirteenth_month_without_history_is_ineligible(benefit_service, employees):
    result = await benefit_service.calculate(BenefitType.THIRTEENTH_MONTH, employees[0].id, 2025)

    assert not result.eligible
    assert result.amount == Decimal("0.00")


class TestRecordBenefit:
    async def test_record_pbb(self, benefit_service, employees, emitter):
        benefit = await benefit_service.record_benefit(
            employees[0].id, "PBB", 2025, date_paid=date(2025, 12, 15)
        )

        assert benefit.benefit_type == "PBB"
        assert benefit.amount == Decimal("22000.00")
        assert benefit.calculation_details["details"]["service_months"] == 12
        [event] = [e for e in emitter.delivered if e.event_type == "BenefitRecorded"]
        assert event.benefit_id == benefit.id
        assert event.amount == Decimal("22000.00")

    async def test_second_record_same_year_is_duplicate(self, benefit_service, employees):
        await benefit_service.record_benefit(employees[0].id, "PBB", 2025)

        with pytest.raises(DuplicateRecordError) as exc_info:
            await benefit_service.record_benefit(employees[0].id, "PBB", 2025)

        assert isinstance(exc_info.value, ConflictError)
        assert isinstance(exc_info.value, ValidationError)
        assert len(await benefit_service.list_benefits(employees[0].id, 2025)) == 1

    async def test_other_year_is_not_duplicate(self, benefit_service, employees):
        await benefit_service.record_benefit(employees[0].id, "LOYALTY_AWARD", 2025)
        await benefit_service.record_benefit(employees[0].id, "LOYALTY_AWARD", 2026)

        benefits = await benefit_service.list_benefits(
            employees[0].id, benefit_type=BenefitType.LOYALTY_AWARD
        )
        assert [b.year for b in benefits] == [2025, 2026]
        assert {b.amount for b in benefits} == {Decimal("10000.00")}

    async def test_ineligible_employee_rejected(self, benefit_service, add_employee):
        late = await add_employee("EMP010", appointment_date=date(2025, 10, 1))

        with pytest.raises(ValidationError) as exc_info:
            await benefit_service.record_benefit(late.id, "PBB", 2025)

        assert not isinstance(exc_info.value, DuplicateRecordError)
        assert exc_info.value.employee_ids == [late.id]
        assert await benefit_service.list_benefits(late.id) == []

    async def test_terminal_leave_is_not_recordable_here(self, benefit_service, employees):
        with pytest.raises(ValidationError):
            await benefit_service.record_benefit(employees[0].id, "TERMINAL_LEAVE", 2025)

    async def test_unknown_benefit_type(self, benefit_service, employees):
        with pytest.raises(ValidationError):
            await benefit_service.record_benefit(employees[0].id, "RICE_SUBSIDY", 2025)

    async def test_unknown_employee(self, benefit_service):
        with pytest.raises(NotFoundError):
            await benefit_service.record_benefit(uuid4(), "PBB", 2025)


class TestMonetization:
    async def _with_leave(self, ledger, employee, vacation, sick="0"):
        balances = await ledger.initialize_yearly_balances(employee.id, 2025)
        remaining = {"VL": Decimal(vacation), "SL": Decimal(sick)}
        for balance, leave_type in await ledger.get_balances(employee.id, 2025):
            if leave_type.code in remaining:
                balance.earned_days = remaining[leave_type.code]
                balance.current_balance = remaining[leave_type.code]
        return balances

    async def test_monetization_debits_capped_days(
        self, benefit_service, ledger, employees, leave_types, emitter
    ):
        employee = employees[0]
        await self._with_leave(ledger, employee, "40")

        benefit = await benefit_service.process_monetization(employee.id, 2025)

        assert benefit.amount == Decimal("29000.00")
        assert benefit.days_used == Decimal("29.00")
        balances = {t.code: b for b, t in await ledger.get_balances(employee.id, 2025)}
        assert balances["VL"].current_balance == Decimal("11.00")
        assert balances["VL"].monetized_days == Decimal("29.00")
        assert balances["SL"].current_balance == Decimal("0.00")

        [entry] = [
            e for e in await ledger.get_ledger(employee.id, 2025) if e.entry_type == "Monetization"
        ]
        assert entry.days == Decimal("-29.00")
        assert entry.leave_type_id == leave_types["VL"].id
        assert entry.reference == f"benefit:{benefit.id}"
        assert "BenefitRecorded" in emitter.types()

    async def test_monetizes_seeded_vacation_and_sick_leave(
        self, benefit_service, ledger, employees, leave_types
    ):
        employee = employees[0]
        await ledger.initialize_yearly_balances(employee.id, 2025)

        benefit = await benefit_service.process_monetization(employee.id, 2025)

        assert benefit.days_used == Decimal("30.00")
        assert benefit.amount == Decimal("30000.00")
        balances = {t.code: b for b, t in await ledger.get_balances(employee.id, 2025)}
        assert balances["VL"].current_balance == Decimal("0")
        assert balances["SL"].current_balance == Decimal("0")
        assert balances["SPL"].current_balance == Decimal("3.00")

    async def test_no_balance_is_ineligible(self, benefit_service, ledger, employees, leave_types):
        await self._with_leave(ledger, employees[0], "0")

        with pytest.raises(ValidationError):
            await benefit_service.process_monetization(employees[0].id, 2025)

        assert await benefit_service.list_benefits(employees[0].id) == []

    async def test_inactive_employee_cannot_monetize(
        self, session, benefit_service, ledger, employees, leave_types
    ):
        employee = employees[0]
        await self._with_leave(ledger, employee, "10")
        employee.employment_status = "Inactive"
        await session.flush()

        result = await benefit_service.calculate("LEAVE_MONETIZATION", employee.id, 2025)

        assert not result.eligible
        assert result.eligibility.reason == "Only active employees may monetize leave"


class TestBatch:
    async def test_batch_calculate_collects_errors(self, benefit_service, employees):
        missing = uuid4()

        summary = await benefit_service.batch_calculate(
            "PBB", [employees[0].id, missing, employees[1].id], 2025
        )

        assert summary.processed_count == 2
        assert summary.eligible_count == 2
        assert summary.failed_count == 1
        assert summary.errors[0].employee_id == missing
        assert summary.errors[0].code == NotFoundError.code
        assert summary.total_amount == Decimal("44000.00")
        assert summary.results[0]["amount"] == "22000.00"

    async def test_batch_record_skips_duplicates(self, benefit_service, employees):
        await benefit_service.record_benefit(employees[0].id, "PBB", 2025)

        summary = await benefit_service.batch_record("PBB", [e.id for e in employees], 2025)

        assert summary.processed_count == 2
        assert summary.failed_count == 1
        assert summary.errors[0].employee_id == employees[0].id
        assert summary.errors[0].code == DuplicateRecordError.code
        assert len(await benefit_service.list_benefits(year=2025)) == 3
