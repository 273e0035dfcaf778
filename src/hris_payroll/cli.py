"""Command line interface for operational jobs.

Usage:
    python -m hris_payroll init-db
    python -m hris_payroll seed
    python -m hris_payroll accrue --year 2025 --month 3
    python -m hris_payroll carry-forward --from-year 2024
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Callable, Coroutine

from hris_payroll.database import create_schema, dispose_engine, get_session
from hris_payroll.seed import seed_reference_data
from hris_payroll.services.leave_ledger import LeaveLedger

logger = logging.getLogger(__name__)


async def _init_db(args: argparse.Namespace) -> dict[str, Any]:
    await create_schema()
    return {"status": "ok"}


async def _seed(args: argparse.Namespace) -> dict[str, Any]:
    async with get_session() as session:
        return await seed_reference_data(session)


async def _accrue(args: argparse.Namespace) -> dict[str, Any]:
    async with get_session() as session:
        result = await LeaveLedger(session).run_monthly_accrual(args.year, args.month)
    return result.model_dump(mode="json")


async def _carry_forward(args: argparse.Namespace) -> dict[str, Any]:
    async with get_session() as session:
        result = await LeaveLedger(session).run_carry_forward(args.from_year, args.to_year)
    return result.model_dump(mode="json")


COMMANDS: dict[str, Callable[[argparse.Namespace], Coroutine[Any, Any, dict[str, Any]]]] = {
    "init-db": _init_db,
    "seed": _seed,
    "accrue": _accrue,
    "carry-forward": _carry_forward,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m hris_payroll",
        description="Payroll engine operational jobs",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("seed", help="Seed leave, allowance and deduction types")

    accrue = subparsers.add_parser("accrue", help="Run the monthly leave accrual job")
    accrue.add_argument("--year", type=int, required=True)
    accrue.add_argument("--month", type=int, required=True, choices=range(1, 13))

    carry = subparsers.add_parser("carry-forward", help="Carry leave balances into the next year")
    carry.add_argument("--from-year", type=int, required=True)
    carry.add_argument("--to-year", type=int, default=None)

    return parser


async def _run(args: argparse.Namespace) -> dict[str, Any]:
    try:
        return await COMMANDS[args.command](args)
    finally:
        await dispose_engine()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    output = asyncio.run(_run(args))
    print(json.dumps(output, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
