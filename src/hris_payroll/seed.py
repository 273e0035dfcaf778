"""Reference data: leave types, allowance types and deduction types.

Seeding is idempotent; rows are matched on ``code`` and left unchanged when
they already exist.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.models import AllowanceType, DeductionType, LeaveType

logger = logging.getLogger(__name__)

LEAVE_TYPES: list[dict[str, Any]] = [
    {
        "code": "VL",
        "name": "Vacation Leave",
        "monthly_accrual_rate": Decimal("1.25"),
        "max_days_per_year": Decimal("15"),
        "is_monetizable": True,
        "allows_carry_forward": True,
    },
    {
        "code": "SL",
        "name": "Sick Leave",
        "monthly_accrual_rate": Decimal("1.25"),
        "max_days_per_year": Decimal("15"),
        "is_monetizable": True,
        "allows_carry_forward": True,
    },
    {
        "code": "SPL",
        "name": "Special Privilege Leave",
        "monthly_accrual_rate": Decimal("0"),
        "max_days_per_year": Decimal("3"),
    },
    {
        "code": "FL",
        "name": "Forced Leave",
        "monthly_accrual_rate": Decimal("0"),
        "max_days_per_year": Decimal("5"),
    },
]

ALLOWANCE_TYPES: list[dict[str, Any]] = [
    {
        "code": "PERA",
        "name": "Personnel Economic Relief Allowance",
        "calculation_method": "Formula",
        "default_amount": Decimal("2000"),
        "frequency": "Monthly",
        "is_prorated": True,
    },
    {
        "code": "RATA",
        "name": "Representation and Transportation Allowance",
        "calculation_method": "Fixed",
        "default_amount": Decimal("1000"),
        "frequency": "Semi-Monthly",
    },
]

DEDUCTION_TYPES: list[dict[str, Any]] = [
    {
        "code": "GSIS",
        "name": "GSIS Contribution",
        "calculation_method": "Formula",
        "frequency": "Semi-Monthly",
        "is_mandatory": True,
    },
    {
        "code": "PAGIBIG",
        "name": "Pag-IBIG Contribution",
        "calculation_method": "Formula",
        "frequency": "Semi-Monthly",
        "is_mandatory": True,
    },
    {
        "code": "PHILHEALTH",
        "name": "PhilHealth Contribution",
        "calculation_method": "Formula",
        "frequency": "Semi-Monthly",
        "is_mandatory": True,
    },
    {
        "code": "WITHHOLDING_TAX",
        "name": "Withholding Tax",
        "calculation_method": "Formula",
        "frequency": "Semi-Monthly",
        "is_mandatory": True,
        "is_taxable": False,
    },
]


async def _seed(session: AsyncSession, model: type, rows: list[dict[str, Any]]) -> int:
    created = 0
    for row in rows:
        existing = await session.execute(select(model).where(model.code == row["code"]))
        if existing.scalar_one_or_none() is not None:
            logger.debug("%s %s already exists, skipping", model.__name__, row["code"])
            continue
        session.add(model(**row))
        created += 1
    await session.flush()
    return created


async def seed_reference_data(session: AsyncSession) -> dict[str, int]:
    """Create missing reference rows; returns created counts per table."""
    counts = {
        LeaveType.__tablename__: await _seed(session, LeaveType, LEAVE_TYPES),
        AllowanceType.__tablename__: await _seed(session, AllowanceType, ALLOWANCE_TYPES),
        DeductionType.__tablename__: await _seed(session, DeductionType, DEDUCTION_TYPES),
    }
    logger.info("Seeded reference data: %s", counts)
    return counts
