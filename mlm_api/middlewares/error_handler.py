"""
Global error handler middleware.

Maps ledger errors to JSON responses with their HTTP status. Unexpected
exceptions are logged with traceback and answered with a generic 500;
technical details never reach the client.
"""

from collections.abc import Awaitable, Callable

from aiohttp import web
from loguru import logger

from mlm_ledger.utils.exceptions import LedgerError


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Translate exceptions into JSON error responses."""
    try:
        return await handler(request)
    except LedgerError as e:
        log = logger.warning if e.http_status >= 500 else logger.info
        log(
            f"Request rejected: {e.code}",
            extra={
                "path": request.path,
                "method": request.method,
                "code": e.code,
                "error": e.message,
            },
        )
        return web.json_response(e.to_dict(), status=e.http_status)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unhandled exception on {request.method} {request.path}: {type(e).__name__}")
        return web.json_response(
            {"success": False, "error": "Internal server error", "code": "internal_error"},
            status=500,
        )
