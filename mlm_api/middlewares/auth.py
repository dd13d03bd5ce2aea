"""
Authentication middleware.

Resolves the bearer token to an account and stores it on the request.
"""

from collections.abc import Awaitable, Callable

from aiohttp import web
from loguru import logger

from mlm_api.keys import REQUEST_ACCOUNT, REQUEST_SESSION, SECRET_KEY
from mlm_ledger.models.account import Account
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.utils.exceptions import AuthenticationError, AuthorizationError
from mlm_ledger.utils.security import mask_sensitive, verify_token


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

PUBLIC_PATHS = frozenset({"/health"})


def _bearer_token(request: web.Request) -> str | None:
    header = request.headers.get("Authorization")
    if not header:
        return None
    parts = header.split(" ")
    return parts[1] if len(parts) == 2 else parts[0]


@web.middleware
async def auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Authenticate every non-public request."""
    if request.path in PUBLIC_PATHS:
        return await handler(request)

    token = _bearer_token(request)
    if not token:
        raise AuthenticationError("No token provided")

    account_id = verify_token(token, request.app[SECRET_KEY])
    if account_id is None:
        logger.info(
            "Invalid bearer token",
            extra={"path": request.path, "token": mask_sensitive(token)},
        )
        raise AuthenticationError("Invalid token")

    account = await AccountRepository(request[REQUEST_SESSION]).get_by_id(account_id)
    if account is None:
        raise AuthenticationError("Account not found")

    request[REQUEST_ACCOUNT] = account
    return await handler(request)


def current_account(request: web.Request) -> Account:
    """Authenticated account of the request."""
    return request[REQUEST_ACCOUNT]


def require_admin(request: web.Request) -> Account:
    """
    Authenticated account, which must be an admin.

    Raises:
        AuthorizationError: Caller is not an admin
    """
    account = current_account(request)
    if not account.is_admin:
        raise AuthorizationError("Admin access required")
    return account
