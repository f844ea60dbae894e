"""Flex desk schedule fill - turn a lease's weekday schedule into flex day bookings.

USAGE:
    # Fill one month (past days and days over the credit quota are skipped)
    uv run python workflows/flex_fill.py month --lease <id> --space <id> --month 2025-03

    # Fill the whole contract (open-ended leases run 10 years ahead)
    uv run python workflows/flex_fill.py contract --lease <id> --space <id>

    # Show credit usage for a month
    uv run python workflows/flex_fill.py credits --lease <id> --month 2025-03
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
import argparse
from datetime import date
from loguru import logger

from db.client import init_db, close_db
from services.booking.service import Service, FlexFillResult


def parse_month(value: str) -> date:
    """YYYY-MM -> first day of that month."""
    return date.fromisoformat(f"{value}-01")


def log_result(label: str, result: FlexFillResult) -> None:
    logger.info(
        f"\nFlex fill complete ({label}):\n"
        f"  Created: {result.created}\n"
        f"  Already booked: {result.skipped_existing}\n"
        f"  Over credit quota: {result.skipped_quota}"
    )


async def fill_month(lease_id: str, space_id: str, month: date) -> None:
    await init_db()
    try:
        result = await Service().fill_flex_month(lease_id, space_id, month)
        log_result(f"{month:%Y-%m}", result)
    finally:
        await close_db()


async def fill_contract(lease_id: str, space_id: str) -> None:
    await init_db()
    try:
        result = await Service().fill_flex_contract(lease_id, space_id)
        log_result("contract", result)
    finally:
        await close_db()


async def show_credits(lease_id: str, month: date) -> None:
    await init_db()
    try:
        usage = await Service().credit_summary(lease_id, month)
        print(f"\n=== Flex credits {month:%Y-%m} ===")
        print(f"  Quota:     {usage.quota}")
        print(f"  Used:      {usage.used}")
        print(f"  Remaining: {usage.remaining}")
        print()
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Fill flex desk schedules")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    month_parser = subparsers.add_parser("month", help="Fill one month")
    month_parser.add_argument("--lease", required=True, help="Lease id")
    month_parser.add_argument("--space", required=True, help="Flex desk space id")
    month_parser.add_argument("--month", required=True, help="Month (YYYY-MM)")

    contract_parser = subparsers.add_parser("contract", help="Fill the whole lease")
    contract_parser.add_argument("--lease", required=True, help="Lease id")
    contract_parser.add_argument("--space", required=True, help="Flex desk space id")

    credits_parser = subparsers.add_parser("credits", help="Show credit usage")
    credits_parser.add_argument("--lease", required=True, help="Lease id")
    credits_parser.add_argument("--month", required=True, help="Month (YYYY-MM)")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    if args.command == "month":
        asyncio.run(fill_month(args.lease, args.space, parse_month(args.month)))
    elif args.command == "contract":
        asyncio.run(fill_contract(args.lease, args.space))
    elif args.command == "credits":
        asyncio.run(show_credits(args.lease, parse_month(args.month)))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
