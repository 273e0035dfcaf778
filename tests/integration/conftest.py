"""Service fixtures for integration tests against in-memory SQLite."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.models import AuditLog, PayrollItem, PayrollPeriod
from hris_payroll.services import (
    BenefitService,
    LeaveLedger,
    OverrideService,
    PayrollItemService,
    PeriodService,
    RequestContext,
    TerminalLeaveService,
)

PAYROLL_OFFICER_ID = uuid4()


@pytest.fixture
def context() -> RequestContext:
    return RequestContext(user_id=PAYROLL_OFFICER_ID, ip_address="10.0.0.5", user_agent="pytest")


@pytest.fixture
def period_service(session, emitter, context) -> PeriodService:
    return PeriodService(session, emitter, context)


@pytest.fixture
def item_service(session, emitter, context, settings) -> PayrollItemService:
    return PayrollItemService(session, emitter, context, settings)


@pytest.fixture
def override_service(session, context) -> OverrideService:
    return OverrideService(session, context)


@pytest.fixture
def ledger(session, emitter, settings) -> LeaveLedger:
    return LeaveLedger(session, emitter, settings)


@pytest.fixture
def benefit_service(session, emitter, context, settings) -> BenefitService:
    return BenefitService(session, emitter, context, settings)


@pytest.fixture
def terminal_leave_service(session, emitter, context, settings) -> TerminalLeaveService:
    return TerminalLeaveService(session, emitter, context, settings)


@pytest.fixture
def make_closed_period(session: AsyncSession):
    """Factory inserting a closed period whose items carry the given basic pay."""

    async def make(
        month: int,
        period_number: int,
        basic_pay_by_employee: dict,
        status: str = "Completed",
        year: int = 2025,
    ) -> PayrollPeriod:
        start_day = 1 if period_number == 1 else 16
        end_day = 15 if period_number == 1 else 28
        period = PayrollPeriod(
            year=year,
            month=month,
            period_number=period_number,
            start_date=date(year, month, start_day),
            end_date=date(year, month, end_day),
            pay_date=date(year, month, end_day),
            status=status,
        )
        session.add(period)
        await session.flush()
        for employee_id, basic in basic_pay_by_employee.items():
            basic = Decimal(basic)
            session.add(
                PayrollItem(
                    payroll_period_id=period.id,
                    employee_id=employee_id,
                    working_days=11,
                    daily_rate=(basic / 11).quantize(Decimal("0.01")),
                    basic_pay=basic,
                    total_allowances=Decimal("0"),
                    total_deductions=Decimal("0"),
                    gross_pay=basic,
                    net_pay=basic,
                    status="Paid" if status == "Paid" else "Finalized",
                )
            )
        await session.flush()
        return period

    return make


@pytest.fixture
def audit_actions(session: AsyncSession):
    """Return the audit actions recorded for one row."""

    async def actions(table_name: str, record_id) -> list[str]:
        await session.flush()
        result = await session.execute(
            select(AuditLog.action).where(
                AuditLog.table_name == table_name, AuditLog.record_id == record_id
            )
        )
        return list(result.scalars())

    return actions
