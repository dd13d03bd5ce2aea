"""
Database engine and session factory.

Every unit of work runs on an AsyncSession produced here; sessions keep
attributes after commit so services can keep reading ids and totals.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from mlm_ledger.config.settings import settings


_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def create_ledger_engine(
    database_url: str | None = None, echo: bool | None = None
) -> AsyncEngine:
    """
    Create an async engine.

    In-memory SQLite URLs share a single connection so every session sees
    the same database.

    Args:
        database_url: Override for settings.database_url
        echo: Override for settings.database_echo

    Returns:
        AsyncEngine
    """
    url = database_url or settings.database_url
    echo = settings.database_echo if echo is None else echo

    if url.startswith("sqlite") and ":memory:" in url:
        return create_async_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)

    return create_async_engine(
        url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


def create_session_maker(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """
    Create session maker bound to engine.

    Args:
        engine: Engine to bind, defaults to the shared engine

    Returns:
        Session maker with expire_on_commit disabled
    """
    return async_sessionmaker(
        bind=engine or get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


def get_engine() -> AsyncEngine:
    """Shared engine, created on first use."""
    global _engine
    if _engine is None:
        _engine = create_ledger_engine()
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Shared session maker, created on first use."""
    global _session_maker
    if _session_maker is None:
        _session_maker = create_session_maker(get_engine())
    return _session_maker


async def dispose_engine() -> None:
    """Dispose the shared engine (shutdown hook)."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
