"""Seed script for leave, allowance and deduction types.

Run with:
    python scripts/seed_reference_data.py

Creates the statutory deductions (GSIS, Pag-IBIG, PhilHealth, withholding
tax), the standard allowances and the leave types used by accrual and
benefit calculation. Existing rows are left untouched.
"""

from __future__ import annotations

import asyncio

from hris_payroll.database import dispose_engine, get_session
from hris_payroll.seed import seed_reference_data


async def main() -> None:
    async with get_session() as session:
        counts = await seed_reference_data(session)
    await dispose_engine()

    for table, created in counts.items():
        print(f"{table}: {created} created")
    print("Reference data seeded successfully")


if __name__ == "__main__":
    asyncio.run(main())
