#!/usr/bin/env python3
"""
Monthly commission purge.

Previews (default) or executes the purge of commissions earned by inactive
distributors in a month. Without --year/--month the previous month is used.

Usage:
    python scripts/run_purge.py --year 2025 --month 1
    python scripts/run_purge.py --execute
"""

import argparse
import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger  # noqa: E402

from mlm_ledger.database import dispose_engine, get_session_maker  # noqa: E402
from mlm_ledger.services.purge_service import CommissionPurgeService  # noqa: E402

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Purge commissions of inactive distributors")
    parser.add_argument("--year", type=int, help="Target year")
    parser.add_argument("--month", type=int, help="Target month (1-12)")
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Apply the purge (default only previews)",
    )
    parser.add_argument("--actor", default="scheduler", help="Recorded executor")
    return parser.parse_args()


async def run_purge(args: argparse.Namespace) -> None:
    mode = "execute" if args.execute else "preview"
    logger.info(f"Starting commission purge in {mode} mode...")

    session_maker = get_session_maker()
    try:
        async with session_maker() as session:
            report = await CommissionPurgeService(session).purge(
                year=args.year, month=args.month, mode=mode, actor=args.actor
            )
    finally:
        await dispose_engine()

    logger.info(f"Month: {report.year}-{report.month:02d}")
    logger.info(f"Scanned: {report.total_users_scanned}")
    logger.info(f"Active: {report.active_users}, inactive: {report.inactive_users}")
    for user in report.purged_users:
        logger.info(
            f"  {user.username}: {user.commissions_count} commissions, "
            f"amount {user.amount}, points {user.points} ({user.status})"
        )
    logger.success(
        f"Purge finished: {report.users_with_commissions_purged} accounts, "
        f"amount {report.total_amount_purged}, points {report.total_points_purged}"
    )


if __name__ == "__main__":
    asyncio.run(run_purge(parse_args()))
