"""
End-to-end acceptance scenarios for the commission contract.
"""

from decimal import Decimal

import pytest

from mlm_ledger.config.business_constants import (
    AccountType,
    CommissionPath,
    LedgerEntryType,
)
from mlm_ledger.models import Account
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.services.coin_cap_service import MonthlyCoinTracker
from mlm_ledger.services.commission.distribution_engine import (
    CommissionDistributionEngine,
)
from mlm_ledger.services.purge_service import CommissionPurgeService, PurgeStatus
from mlm_ledger.utils.datetime_utils import month_range_ms


@pytest.fixture
async def upline(make_account):
    """alice -> bob -> carol, carol is a root account."""
    carol = await make_account("carol")
    bob = await make_account("bob", sponsor="carol")
    alice = await make_account("alice", sponsor="bob")
    return {"alice": alice.id, "bob": bob.id, "carol": carol.id}


class TestAcceptanceScenarios:

    @pytest.mark.asyncio
    async def test_first_package_pays_quick_start(
        self, session, upline, make_account, make_order, reload
    ):
        buyer = await make_account("newbie", sponsor="alice")
        order = await make_order(buyer, 50)
        buyer_id = buyer.id

        await CommissionDistributionEngine(session).confirm_and_distribute(order.id, "admin")

        alice = await reload(Account, upline["alice"])
        assert (alice.group_points, alice.balance) == (Decimal("21"), Decimal("58800"))
        for name in ("bob", "carol"):
            account = await reload(Account, upline[name])
            assert (account.group_points, account.balance) == (Decimal("1"), Decimal("2800"))

        buyer = await reload(Account, buyer_id)
        assert buyer.personal_points == Decimal("50")
        assert buyer.is_master is True
        assert buyer.quick_start_paid is True

    @pytest.mark.asyncio
    async def test_prior_purchases_use_normal_path(
        self, session, upline, make_account, make_order, reload
    ):
        buyer = await make_account("returning", sponsor="alice", personal_points=30)
        order = await make_order(buyer, 50)

        result = await CommissionDistributionEngine(session).confirm_and_distribute(
            order.id, "admin"
        )

        assert result.commission_path == CommissionPath.NORMAL
        assert len(result.payouts) == 3
        for name in ("alice", "bob", "carol"):
            assert (await reload(Account, upline[name])).group_points == Decimal("1")

    @pytest.mark.asyncio
    async def test_restaurant_pays_one_point_per_level_for_twenty(
        self, session, chain, make_account, make_order, reload
    ):
        buyer = await make_account("resto", sponsor="s1", account_type=AccountType.RESTAURANT)
        order = await make_order(buyer, 20)
        ids = {name: account.id for name, account in chain.items()}

        result = await CommissionDistributionEngine(session).confirm_and_distribute(
            order.id, "admin"
        )

        assert len(result.payouts) == 5
        for name in ("s1", "s2", "s3", "s4", "s5"):
            account = await reload(Account, ids[name])
            assert account.group_points == Decimal("1")
            assert account.balance == Decimal("2800")

    @pytest.mark.asyncio
    async def test_inactive_month_is_purged_once(self, session, make_account, reload):
        start_ms, _ = month_range_ms(2026, 3)
        account = await make_account("lazy", group_points=2, balance=5600)
        account_id = account.id
        repo = LedgerRepository(session)
        await repo.append(
            account_id, LedgerEntryType.PURCHASE, "Compra", points=Decimal("8"),
            order_id="m1", timestamp_ms=start_ms + 3_600_000,
        )
        for day in (2, 3):
            await repo.append(
                account_id, LedgerEntryType.GROUP_POINTS, "Puntos grupales",
                points=Decimal("1"), amount=Decimal("2800"),
                timestamp_ms=start_ms + day * 86_400_000,
            )
        await session.commit()

        service = CommissionPurgeService(session)
        preview = await service.purge(2026, 3, "preview", "admin")
        assert preview.purged_users[0].amount == Decimal("5600")
        assert (await reload(Account, account_id)).balance == Decimal("5600")

        executed = await service.purge(2026, 3, "execute", "admin")
        assert executed.purged_users[0].status == PurgeStatus.PURGED
        assert (await reload(Account, account_id)).balance == Decimal("0")

        await AccountRepository(session).increment_commission(
            account_id, Decimal("1"), Decimal("2800")
        )
        await session.commit()
        rerun = await service.purge(2026, 3, "execute", "admin")
        assert rerun.purged_users[0].status == PurgeStatus.ALREADY_PURGED
        assert (await reload(Account, account_id)).balance == Decimal("2800")

    def test_coin_pacing_near_ceiling(self):
        tracker = MonthlyCoinTracker(month="2026-10", total_coins_earned=19000)

        assert tracker.multiplier == 0.15
        assert tracker.apply_monthly_limit(100) == 15
