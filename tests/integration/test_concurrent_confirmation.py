"""
Tests for confirmations racing on separate sessions.

Runs on a file-backed SQLite database so each session owns its own
connection; writers serialize on the database lock.

Covers:
- One Quick Start latch and one bonus for two first orders confirmed at once
- Eligibility re-read inside the confirm transaction
- Lost latch claim falls back to the normal path
- Exactly-once order confirmation
- Shared sponsor credits under concurrent payouts
"""

import asyncio
from decimal import Decimal

import pytest

from mlm_ledger.config.business_constants import CommissionPath, OrderStatus
from mlm_ledger.database import create_ledger_engine
from mlm_ledger.models import Account, Base, Order
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.order_repository import OrderRepository
from mlm_ledger.services.commission.bulk_confirmation import (
    BulkQuickStartConfirmation,
)
from mlm_ledger.services.commission.distribution_engine import (
    CommissionDistributionEngine,
)
from mlm_ledger.utils.exceptions import AlreadyConfirmedError, TransactionConflictError


@pytest.fixture
async def engine(tmp_path):
    """File-backed database, one connection per session."""
    engine = create_ledger_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


async def confirm_in_own_session(session_maker, order_id, admin_id="admin"):
    async with session_maker() as session:
        return await CommissionDistributionEngine(session).confirm_and_distribute(
            order_id, admin_id
        )


class TestConcurrentQuickStart:
    """Two first orders of one buyer confirmed at the same time."""

    @pytest.mark.asyncio
    async def test_only_one_order_pays_quick_start(
        self, session_maker, chain, make_account, make_order, reload
    ):
        buyer = await make_account("newbie", sponsor="s1")
        first = await make_order(buyer, 50)
        second = await make_order(buyer, 50)
        buyer_id, order_ids = buyer.id, {first.id, second.id}

        results = await asyncio.gather(
            confirm_in_own_session(session_maker, first.id),
            confirm_in_own_session(session_maker, second.id),
        )

        paths = sorted(r.commission_path for r in results)
        assert paths == sorted([CommissionPath.NORMAL, CommissionPath.QUICK_START])
        assert [r.quick_start_applied for r in results].count(True) == 1

        buyer = await reload(Account, buyer_id)
        assert buyer.personal_points == Decimal("100")
        assert buyer.quick_start_paid is True
        assert int(buyer.quick_start_order_id) in order_ids

        s1 = await reload(Account, chain["s1"].id)
        assert s1.group_points == Decimal("22")
        assert s1.balance == Decimal("61600")
        for name in ("s2", "s3", "s4", "s5"):
            assert (await reload(Account, chain[name].id)).group_points == Decimal("2")
        assert (await reload(Account, chain["root"].id)).group_points == Decimal("0")

    @pytest.mark.asyncio
    async def test_eligibility_is_read_again_inside_confirmation(
        self, session_maker, chain, make_account, make_order, reload, monkeypatch
    ):
        """The second confirmation saw a first purchase before the first one landed."""
        buyer = await make_account("newbie", sponsor="s1")
        first = await make_order(buyer, 50)
        second = await make_order(buyer, 50)
        buyer_id, first_id, second_id = buyer.id, first.id, second.id

        second_read = asyncio.Event()
        first_done = asyncio.Event()

        async def run_first():
            await second_read.wait()
            try:
                return await confirm_in_own_session(session_maker, first_id)
            finally:
                first_done.set()

        async def run_second():
            async with session_maker() as session:
                engine = CommissionDistributionEngine(session)
                original = engine.resolver.direct_sponsor

                async def direct_sponsor(account):
                    sponsor = await original(account)
                    second_read.set()
                    await first_done.wait()
                    return sponsor

                monkeypatch.setattr(engine.resolver, "direct_sponsor", direct_sponsor)
                return await engine.confirm_and_distribute(second_id, "admin")

        first_result, second_result = await asyncio.gather(run_first(), run_second())

        assert first_result.commission_path == CommissionPath.QUICK_START
        assert second_result.commission_path == CommissionPath.NORMAL
        assert second_result.quick_start_applied is False

        buyer = await reload(Account, buyer_id)
        assert buyer.quick_start_order_id == str(first_id)
        assert buyer.personal_points == Decimal("100")
        assert (await reload(Account, chain["s1"].id)).group_points == Decimal("22")

    @pytest.mark.asyncio
    async def test_lost_latch_claim_uses_normal_distribution(
        self, session, session_maker, chain, make_account, make_order, reload, monkeypatch
    ):
        buyer = await make_account("newbie", sponsor="s1")
        order = await make_order(buyer, 50)
        buyer_id, order_id = buyer.id, order.id

        engine = CommissionDistributionEngine(session)
        original = engine.account_repo.claim_quick_start

        async def claim_after_competitor(account_id, order_ids, total_points):
            async with session_maker() as other:
                assert await AccountRepository(other).claim_quick_start(
                    account_id, ["999"], Decimal("50")
                )
                await other.commit()
            return await original(account_id, order_ids, total_points)

        monkeypatch.setattr(engine.account_repo, "claim_quick_start", claim_after_competitor)
        result = await engine.confirm_and_distribute(order_id, "admin")

        assert result.commission_path == CommissionPath.NORMAL
        assert result.quick_start_applied is False

        buyer = await reload(Account, buyer_id)
        assert buyer.quick_start_order_id == "999"
        assert buyer.personal_points == Decimal("50")
        assert (await reload(Account, chain["s1"].id)).group_points == Decimal("1")


class TestExactlyOnceConfirmation:
    """An order moves from pending to confirmed once."""

    @pytest.mark.asyncio
    async def test_same_order_confirmed_twice_at_once(
        self, session_maker, chain, make_account, make_order, reload
    ):
        buyer = await make_account("newbie", sponsor="s1")
        order = await make_order(buyer, 50)
        buyer_id, order_id = buyer.id, order.id

        results = await asyncio.gather(
            confirm_in_own_session(session_maker, order_id),
            confirm_in_own_session(session_maker, order_id),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], AlreadyConfirmedError)

        buyer = await reload(Account, buyer_id)
        assert buyer.personal_points == Decimal("50")
        s1 = await reload(Account, chain["s1"].id)
        assert s1.group_points == Decimal("21")
        assert s1.balance == Decimal("58800")

    @pytest.mark.asyncio
    async def test_order_confirmed_by_another_session_mid_unit(
        self, session, session_maker, chain, make_account, make_order, reload, monkeypatch
    ):
        buyer = await make_account("regular", sponsor="s1", personal_points=10)
        order = await make_order(buyer, 50)
        buyer_id, order_id = buyer.id, order.id

        engine = CommissionDistributionEngine(session)
        original = engine.order_repo.confirm_pending

        async def confirm_after_competitor(*args, **kwargs):
            async with session_maker() as other:
                assert await OrderRepository(other).confirm_pending(
                    order_id, "other-admin", CommissionPath.NORMAL
                )
                await other.commit()
            return await original(*args, **kwargs)

        monkeypatch.setattr(engine.order_repo, "confirm_pending", confirm_after_competitor)
        with pytest.raises(AlreadyConfirmedError):
            await engine.confirm_and_distribute(order_id, "admin")

        assert (await reload(Account, buyer_id)).personal_points == Decimal("10")
        assert (await reload(Order, order_id)).confirmed_by == "other-admin"
        assert (await reload(Account, chain["s1"].id)).group_points == Decimal("0")

    @pytest.mark.asyncio
    async def test_bulk_rolls_back_when_an_order_is_confirmed_mid_unit(
        self, session, session_maker, chain, make_account, make_order, reload, monkeypatch
    ):
        buyer = await make_account("newbie", sponsor="s1")
        first = await make_order(buyer, 30)
        second = await make_order(buyer, 20)
        buyer_id, first_id, second_id = buyer.id, first.id, second.id

        service = BulkQuickStartConfirmation(session)
        original = service.account_repo.claim_quick_start

        async def claim_after_single_confirm(*args, **kwargs):
            await confirm_in_own_session(session_maker, first_id, "other-admin")
            return await original(*args, **kwargs)

        monkeypatch.setattr(service.account_repo, "claim_quick_start", claim_after_single_confirm)
        with pytest.raises(TransactionConflictError):
            await service.confirm_all_quick_start(buyer_id, "admin")

        buyer = await reload(Account, buyer_id)
        assert buyer.quick_start_paid is False
        assert buyer.quick_start_order_id is None
        assert buyer.personal_points == Decimal("30")
        assert (await reload(Order, second_id)).status == OrderStatus.PENDING
        assert (await reload(Account, chain["s1"].id)).group_points == Decimal("1")


class TestSharedSponsor:

    @pytest.mark.asyncio
    async def test_shared_sponsor_credits_are_not_lost(
        self, session_maker, make_account, make_order, reload
    ):
        """Payouts to one sponsor from two sessions both land."""
        carol = await make_account("carol")
        await make_account("bob", sponsor="carol")
        alice = await make_account("alice", sponsor="bob")
        first_buyer = await make_account("first", sponsor="alice")
        second_buyer = await make_account("second", sponsor="alice")
        first_order = await make_order(first_buyer, 50)
        second_order = await make_order(second_buyer, 50)
        alice_id, carol_id = alice.id, carol.id

        await asyncio.gather(
            confirm_in_own_session(session_maker, first_order.id),
            confirm_in_own_session(session_maker, second_order.id),
        )

        alice = await reload(Account, alice_id)
        assert alice.group_points == Decimal("42")
        assert alice.balance == Decimal("117600")
        assert (await reload(Account, carol_id)).group_points == Decimal("2")
