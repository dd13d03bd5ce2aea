"""
Database middleware.

Opens one AsyncSession per request. Services commit their own units of
work; whatever is left uncommitted when the handler finishes is rolled back
when the session closes.
"""

from collections.abc import Awaitable, Callable

from aiohttp import web

from mlm_api.keys import REQUEST_SESSION, SESSION_MAKER_KEY


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def database_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Provide request[REQUEST_SESSION] to handlers."""
    session_maker = request.app[SESSION_MAKER_KEY]
    async with session_maker() as session:
        request[REQUEST_SESSION] = session
        return await handler(request)
