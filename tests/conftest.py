"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test_secret_key_for_testing_only")
os.environ.setdefault("LEDGER_TIMEZONE", "UTC")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from decimal import Decimal  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from mlm_ledger.config.business_constants import (  # noqa: E402
    AccountRole,
    AccountType,
    OrderStatus,
)
from mlm_ledger.database import create_ledger_engine, create_session_maker  # noqa: E402
from mlm_ledger.models import Account, Base, Order, Product  # noqa: E402


@pytest.fixture
async def engine():
    """Fresh in-memory database with all tables."""
    engine = create_ledger_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the test engine."""
    return create_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    """Database session for one test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_account(session):
    """
    Factory for accounts.

    Returns:
        async callable(username, sponsor=None, **fields) -> Account
    """
    async def factory(
        username: str,
        sponsor: str | None = None,
        account_type: str = AccountType.DISTRIBUTOR,
        personal_points: Decimal | int = 0,
        group_points: Decimal | int = 0,
        balance: Decimal | int = 0,
        **fields: Any,
    ) -> Account:
        account = Account(
            username=username,
            sponsor_username=sponsor,
            account_type=account_type,
            role=fields.pop("role", AccountRole.USER),
            personal_points=Decimal(personal_points),
            legacy_points=Decimal(fields.pop("legacy_points", personal_points)),
            group_points=Decimal(group_points),
            balance=Decimal(balance),
            **fields,
        )
        session.add(account)
        await session.commit()
        return account

    return factory


@pytest.fixture
def make_order(session):
    """
    Factory for pending orders.

    Returns:
        async callable(buyer, points, **fields) -> Order
    """
    async def factory(
        buyer: Account,
        points: Decimal | int,
        status: str = OrderStatus.PENDING,
        **fields: Any,
    ) -> Order:
        order = Order(
            buyer_id=buyer.id,
            total_points=Decimal(points),
            total_price=fields.pop("total_price", Decimal(points) * 1000),
            quantity=fields.pop("quantity", 1),
            product_name=fields.pop("product_name", "Pack inicial"),
            status=status,
            **fields,
        )
        session.add(order)
        await session.commit()
        return order

    return factory


@pytest.fixture
def make_product(session):
    """Factory for catalog products."""
    async def factory(
        name: str = "Cafe",
        client_price: Decimal | int | None = 14000,
        distributor_price: Decimal | int | None = 11200,
        points: Decimal | int = 1,
    ) -> Product:
        product = Product(
            name=name,
            client_price=Decimal(client_price) if client_price is not None else None,
            distributor_price=(
                Decimal(distributor_price) if distributor_price is not None else None
            ),
            points=Decimal(points),
        )
        session.add(product)
        await session.commit()
        return product

    return factory


@pytest.fixture
def reload(session):
    """Re-read a row from the database, bypassing the identity map."""
    async def loader(model: Any, id: int) -> Any:
        return await session.get(model, id, populate_existing=True)

    return loader


@pytest.fixture
async def chain(make_account):
    """
    Six-level sponsor chain: root <- s5 <- s4 <- s3 <- s2 <- s1.

    Returns:
        Dict username -> Account; the buyer is created by each test.
    """
    accounts = {"root": await make_account("root")}
    parent = "root"
    for name in ("s5", "s4", "s3", "s2", "s1"):
        accounts[name] = await make_account(name, sponsor=parent)
        parent = name
    return accounts
