"""Monthly leave accrual job.

Run with:
    python scripts/run_monthly_accrual.py            # previous month
    python scripts/run_monthly_accrual.py 2025 3     # explicit year and month

Intended for a scheduler on the first day of each month. Re-running for the
same month is safe; already accrued employees are skipped.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import date

from hris_payroll.database import dispose_engine, get_session
from hris_payroll.services.leave_ledger import LeaveLedger


def previous_month(today: date) -> tuple[int, int]:
    if today.month == 1:
        return today.year - 1, 12
    return today.year, today.month - 1


async def main(year: int, month: int) -> int:
    async with get_session() as session:
        result = await LeaveLedger(session).run_monthly_accrual(year, month)
    await dispose_engine()

    print(
        f"Accrual {year}-{month:02d}: {result.processed_count} processed, "
        f"{result.skipped_count} skipped, {result.failed_count} failed"
    )
    for error in result.errors:
        print(f"  {error.employee_id}: {error.message}")
    return 1 if result.failed_count else 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) == 3:
        target = int(sys.argv[1]), int(sys.argv[2])
    else:
        target = previous_month(date.today())
    sys.exit(asyncio.run(main(*target)))
