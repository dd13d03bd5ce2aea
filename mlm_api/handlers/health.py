"""
Health check handler.

Provides HTTP endpoint for health checks and monitoring.
"""

from aiohttp import web
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from mlm_api.keys import REQUEST_SESSION
from mlm_ledger import __version__


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with database status
    """
    try:
        await request[REQUEST_SESSION].execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {type(e).__name__}")
        return web.json_response(
            {"status": "unhealthy", "database": False, "error": str(e)},
            status=503,
        )

    return web.json_response(
        {"status": "healthy", "database": True, "version": __version__}
    )
