"""
API main entry point.

Runs the ledger HTTP API until interrupted.
"""

import asyncio
import signal
import sys
from pathlib import Path

from aiohttp import web
from loguru import logger


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mlm_api.app import create_app  # noqa: E402
from mlm_api.initialization.logging import setup_logging  # noqa: E402
from mlm_ledger.config.settings import settings  # noqa: E402
from mlm_ledger.database import dispose_engine  # noqa: E402


async def stop_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """
    Stop the API server gracefully.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    logger.info("Stopping API server...")
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("API server stopped successfully")
    except TimeoutError:
        logger.warning(f"API server cleanup timed out after {timeout}s")


async def main() -> None:
    """Initialize and run the API."""
    setup_logging()

    app = create_app()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, settings.api_host, settings.api_port)
    await site.start()

    logger.info(f"API server started on {settings.api_host}:{settings.api_port}")
    logger.info(f"  - Health: http://{settings.api_host}:{settings.api_port}/health")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    try:
        await stop_event.wait()
    finally:
        await stop_server(runner)
        await dispose_engine()
        logger.info("Shutdown complete")


def run() -> None:
    """Console entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("API stopped by user")


if __name__ == "__main__":
    run()
