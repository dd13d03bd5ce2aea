#!/usr/bin/env python3
"""
Rebuild an account's cached aggregates from its history.

Usage:
    python scripts/recalculate_account.py 42 --dry-run
"""

import argparse
import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger  # noqa: E402

from mlm_ledger.database import dispose_engine, get_session_maker  # noqa: E402
from mlm_ledger.services.recalculation_service import RecalculationService  # noqa: E402

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recalculate account aggregates")
    parser.add_argument("account_id", type=int, help="Account ID")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report the rebuilt values",
    )
    return parser.parse_args()


async def recalculate(args: argparse.Namespace) -> None:
    session_maker = get_session_maker()
    try:
        async with session_maker() as session:
            result = await RecalculationService(session).recalculate(
                args.account_id, actor="script", apply=not args.dry_run
            )
    finally:
        await dispose_engine()

    logger.info(f"Account {result['accountId']} ({result['usuario']})")
    for field_name, change in result["changes"].items():
        before = result["before"][field_name]
        after = result["after"][field_name]
        logger.info(f"  {field_name}: {before} -> {after} ({change:+})")
    if result["applied"]:
        logger.success(f"Applied, {result['stampedEntries']} legacy entries stamped")
    else:
        logger.info("Dry run, nothing written")


if __name__ == "__main__":
    asyncio.run(recalculate(parse_args()))
