"""Recurring meeting room bookings - create, extend and stop patterns.

USAGE:
    # Every Monday and Wednesday 09:00-10:00 for a tenant, open-ended
    uv run python workflows/recurring_booking.py create --space <id> --tenant <id> \
        --start 09:00 --end 10:00 --type weekly --days monday,wednesday --from 2025-03-03

    # First of every month for an external customer until year end
    uv run python workflows/recurring_booking.py create --space <id> --customer <id> \
        --start 14:00 --end 16:00 --type monthly --day-of-month 1 --from 2025-03-01 --until 2025-12-31

    # Generate more bookings for an existing pattern
    uv run python workflows/recurring_booking.py extend --pattern <id> --from 2026-03-01 --until 2026-06-30

    # Stop a pattern and cancel its bookings after a date
    uv run python workflows/recurring_booking.py stop --pattern <id> --after 2025-06-30
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
import argparse
from datetime import date
from loguru import logger

from db.client import init_db, close_db
from lib.scheduling.errors import BookingError
from lib.scheduling.holder import HolderRef
from lib.scheduling.interval import Interval
from services.booking.service import Service, make_rule


def holder_from_args(args) -> HolderRef:
    if args.tenant:
        return HolderRef.tenant(args.tenant)
    if args.customer:
        return HolderRef.external_customer(args.customer)
    return HolderRef.lease(args.lease)


async def create_pattern(args) -> None:
    await init_db()
    try:
        rule = make_rule(
            args.type,
            start_date=date.fromisoformat(args.start_date),
            end_date=date.fromisoformat(args.until) if args.until else None,
            weekdays=[d for d in (args.days or "").split(",") if d],
            day_of_month=args.day_of_month,
        )
        template = Interval.from_clock(rule.start_date, args.start, args.end)

        service = Service()
        result = await service.create_recurring_pattern(
            space_id=args.space,
            holder=holder_from_args(args),
            template=template,
            rule=rule,
            notes=args.notes or "",
        )
        logger.info(
            f"\nPattern created:\n"
            f"  Pattern id: {result.pattern_id}\n"
            f"  Bookings created: {result.created_count}\n"
            f"  Dates skipped (already booked): {result.skipped_count}"
        )
    except BookingError as e:
        logger.error(f"Could not create pattern: {e}")
        raise
    finally:
        await close_db()


async def extend_pattern(args) -> None:
    await init_db()
    try:
        service = Service()
        result = await service.fill_pattern(
            args.pattern,
            date.fromisoformat(args.start_date),
            date.fromisoformat(args.until),
        )
        logger.info(f"Pattern {result.pattern_id}: {result.created_count} created, {result.skipped_count} skipped")
    finally:
        await close_db()


async def stop_pattern(args) -> None:
    await init_db()
    try:
        service = Service()
        result = await service.deactivate_pattern(args.pattern, date.fromisoformat(args.after))
        logger.info(f"Pattern {args.pattern} stopped, {result.cancelled_count} future bookings cancelled")
        for warning in result.warnings:
            logger.warning(warning)
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Recurring meeting room bookings")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    create_parser = subparsers.add_parser("create", help="Create a pattern and fill it")
    create_parser.add_argument("--space", required=True, help="Space id")
    holder = create_parser.add_mutually_exclusive_group(required=True)
    holder.add_argument("--tenant", help="Tenant id")
    holder.add_argument("--customer", help="External customer id")
    holder.add_argument("--lease", help="Lease id")
    create_parser.add_argument("--start", required=True, help="Start time HH:MM")
    create_parser.add_argument("--end", required=True, help="End time HH:MM")
    create_parser.add_argument("--type", choices=["daily", "weekly", "monthly"], required=True)
    create_parser.add_argument("--days", help="Comma separated weekdays for weekly patterns")
    create_parser.add_argument("--day-of-month", type=int, help="Day of month for monthly patterns")
    create_parser.add_argument("--from", dest="start_date", required=True, help="First date (YYYY-MM-DD)")
    create_parser.add_argument("--until", help="Last date (YYYY-MM-DD), omit for open-ended")
    create_parser.add_argument("--notes", help="Notes copied onto every booking")

    extend_parser = subparsers.add_parser("extend", help="Generate more bookings for a pattern")
    extend_parser.add_argument("--pattern", required=True, help="Pattern id")
    extend_parser.add_argument("--from", dest="start_date", required=True, help="First date (YYYY-MM-DD)")
    extend_parser.add_argument("--until", required=True, help="Last date (YYYY-MM-DD)")

    stop_parser = subparsers.add_parser("stop", help="Deactivate a pattern")
    stop_parser.add_argument("--pattern", required=True, help="Pattern id")
    stop_parser.add_argument("--after", required=True, help="Cancel bookings after this date (YYYY-MM-DD)")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    if args.command == "create":
        asyncio.run(create_pattern(args))
    elif args.command == "extend":
        asyncio.run(extend_pattern(args))
    elif args.command == "stop":
        asyncio.run(stop_pattern(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
