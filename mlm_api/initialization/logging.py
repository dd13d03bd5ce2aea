"""
API Initialization - Logging Module.

Configures loguru for the API process.
Sets up log rotation and retention policies.
"""

import sys

from loguru import logger

from mlm_ledger.config.settings import settings


def setup_logging() -> None:
    """Configure logger with stderr output and file rotation."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        settings.log_file,
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        encoding="utf-8",
    )

    logger.info("Starting MLM ledger API...")
