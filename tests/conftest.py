"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hris_payroll.config import Settings
from hris_payroll.events import DomainEvent, EventEmitter
from hris_payroll.models import (
    AllowanceType,
    Base,
    DeductionType,
    Employee,
    LeaveType,
    PayrollPeriod,
)

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def settings() -> Settings:
    """Settings with the default statutory constants."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        debug=False,
    )


@pytest_asyncio.fixture
async def engine():
    """Create a fresh schema per test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


class RecordingEmitter(EventEmitter):
    """Emitter that keeps every delivered event."""

    def __init__(self) -> None:
        super().__init__()
        self.delivered: list[DomainEvent] = []
        self.on_all(self.delivered.append)

    def types(self) -> list[str]:
        return [e.event_type for e in self.delivered]


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


def make_employee(number: str, **overrides) -> Employee:
    values = {
        "employee_number": number,
        "first_name": "Juan",
        "last_name": f"Dela Cruz {number}",
        "appointment_date": date(2015, 6, 1),
        "employment_status": "Active",
        "current_monthly_salary": Decimal("22000.00"),
        "current_daily_rate": Decimal("1000.00"),
        "highest_monthly_salary": Decimal("22000.00"),
    }
    values.update(overrides)
    return Employee(**values)


@pytest_asyncio.fixture
async def employees(session: AsyncSession) -> list[Employee]:
    """Three active employees paid 1,000 a day."""
    rows = [make_employee(f"EMP{i:03d}") for i in range(1, 4)]
    session.add_all(rows)
    await session.flush()
    return rows


@pytest.fixture
def add_employee(session: AsyncSession):
    """Factory persisting one extra employee with the given field overrides."""

    async def add(number: str, **overrides) -> Employee:
        employee = make_employee(number, **overrides)
        session.add(employee)
        await session.flush()
        return employee

    return add


@pytest_asyncio.fixture
async def leave_types(session: AsyncSession) -> dict[str, LeaveType]:
    rows = {
        "VL": LeaveType(
            code="VL",
            name="Vacation Leave",
            monthly_accrual_rate=Decimal("1.25"),
            max_days_per_year=Decimal("15"),
            is_monetizable=True,
            allows_carry_forward=True,
        ),
        "SL": LeaveType(
            code="SL",
            name="Sick Leave",
            monthly_accrual_rate=Decimal("1.25"),
            max_days_per_year=Decimal("15"),
            is_monetizable=True,
            allows_carry_forward=True,
        ),
        "SPL": LeaveType(
            code="SPL",
            name="Special Privilege Leave",
            monthly_accrual_rate=Decimal("0"),
            max_days_per_year=Decimal("3"),
        ),
    }
    session.add_all(rows.values())
    await session.flush()
    return rows


@pytest_asyncio.fixture
async def deduction_types(session: AsyncSession) -> dict[str, DeductionType]:
    """GSIS every period, Pag-IBIG on the first half of the month."""
    rows = {
        "GSIS": DeductionType(
            code="GSIS",
            name="GSIS Contribution",
            calculation_method="Formula",
            frequency="Semi-Monthly",
            is_mandatory=True,
        ),
        "PAGIBIG": DeductionType(
            code="PAGIBIG",
            name="Pag-IBIG Contribution",
            calculation_method="Formula",
            frequency="Monthly",
            is_mandatory=True,
        ),
    }
    session.add_all(rows.values())
    await session.flush()
    return rows


@pytest_asyncio.fixture
async def allowance_types(session: AsyncSession) -> dict[str, AllowanceType]:
    rows = {
        "RATA": AllowanceType(
            code="RATA",
            name="Representation Allowance",
            calculation_method="Fixed",
            default_amount=Decimal("500.00"),
            frequency="Semi-Monthly",
        ),
    }
    session.add_all(rows.values())
    await session.flush()
    return rows


@pytest_asyncio.fixture
async def draft_period(session: AsyncSession) -> PayrollPeriod:
    """2025-01 first half, in Draft."""
    period = PayrollPeriod(
        year=2025,
        month=1,
        period_number=1,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 15),
        pay_date=date(2025, 1, 20),
        status="Draft",
    )
    session.add(period)
    await session.flush()
    return period
