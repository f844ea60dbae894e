import asyncio
import sys
from datetime import date

from db.client import init_db, close_db, apply_schema


async def main(workflow_name: str, args: list):
    """Main entry point for running workflows with DB initialization."""
    await init_db()
    try:
        if workflow_name == "init_schema":
            await apply_schema()
            print("Schema ready")
        elif workflow_name == "flex_fill_month":
            from services.booking.service import Service
            lease_id, space_id, month = args
            result = await Service().fill_flex_month(lease_id, space_id, date.fromisoformat(f"{month}-01"))
            print(f"Created {result.created}, skipped {result.skipped_existing} existing, {result.skipped_quota} over quota")
        elif workflow_name == "flex_fill_contract":
            from services.booking.service import Service
            lease_id, space_id = args
            result = await Service().fill_flex_contract(lease_id, space_id)
            print(f"Created {result.created}, skipped {result.skipped_existing} existing, {result.skipped_quota} over quota")
        else:
            print(f"Unknown workflow: {workflow_name}")
            sys.exit(1)
    finally:
        await close_db()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python main.py <workflow_name> [args...]")
        sys.exit(1)

    workflow_name = sys.argv[1]
    asyncio.run(main(workflow_name, sys.argv[2:]))
