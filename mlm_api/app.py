"""
Application factory.

Builds the aiohttp application: middlewares in order (errors outermost,
then database session, then authentication) and the route table.
"""

from aiohttp import web
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mlm_api.handlers import accounts, coins, commissions, health, orders, withdrawals
from mlm_api.keys import SECRET_KEY, SESSION_MAKER_KEY
from mlm_api.middlewares import auth_middleware, database_middleware, error_middleware
from mlm_ledger.config.settings import settings
from mlm_ledger.database import get_session_maker


def register_routes(app: web.Application) -> None:
    """Register all API routes."""
    app.router.add_get("/health", health.health_handler)

    app.router.add_post("/api/orders/confirm", orders.confirm_order)
    app.router.add_post(
        "/api/orders/confirm-all-quick-start", orders.confirm_all_quick_start
    )
    app.router.add_post(
        "/api/orders/resume-distribution", orders.resume_distribution
    )
    app.router.add_post("/api/commissions/purge", commissions.purge_commissions)
    app.router.add_post("/api/coins/monthly-limit", coins.monthly_limit)
    app.router.add_post("/api/accounts/recalculate", accounts.recalculate_account)
    app.router.add_get(
        r"/api/accounts/{id:\d+}/activation", accounts.activation_status
    )
    app.router.add_post("/api/withdrawals", withdrawals.withdraw)


def create_app(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    secret_key: str | None = None,
) -> web.Application:
    """
    Create the API application.

    Args:
        session_maker: Session factory, defaults to the shared one
        secret_key: Token signing secret, defaults to settings.secret_key

    Returns:
        Configured web.Application
    """
    app = web.Application(
        middlewares=[error_middleware, database_middleware, auth_middleware]
    )
    app[SESSION_MAKER_KEY] = session_maker or get_session_maker()
    app[SECRET_KEY] = secret_key or settings.secret_key
    register_routes(app)
    return app
