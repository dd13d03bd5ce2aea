"""
Integration tests for the monthly coin cap and commission withdrawals.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from mlm_ledger.config.business_constants import LedgerEntryType, MONTHLY_COINS_LIMIT
from mlm_ledger.models import Account, GameIncomeLog
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.services.coin_cap_service import CoinCapService
from mlm_ledger.services.withdrawal_service import WithdrawalService
from mlm_ledger.utils.exceptions import (
    InsufficientBalanceError,
    InsufficientPointsError,
    InvalidRequestError,
    NotFoundError,
)


async def count_game_logs(session, account_id: int) -> int:
    result = await session.execute(
        select(func.count()).select_from(GameIncomeLog).where(
            GameIncomeLog.account_id == account_id
        )
    )
    return result.scalar_one()


class TestCoinCap:
    """Server-side monthly ceiling."""

    @pytest.mark.asyncio
    async def test_requests_are_clamped_to_ceiling(self, session, make_account, reload):
        player = await make_account("player")
        player_id = player.id
        service = CoinCapService(session)

        first = await service.earn(player_id, 15000, game_type="memory", level=3)
        second = await service.earn(player_id, 8000, game_type="memory", level=4)
        third = await service.earn(player_id, 100, game_type="trivia")

        assert first["approved"] == 15000
        assert second["approved"] == 5000
        assert second["remaining"] == 0
        assert second["blocked"] is True
        assert third["approved"] == 0
        assert third["earned"] == MONTHLY_COINS_LIMIT

        player = await reload(Account, player_id)
        assert player.monthly_coins_tracker["totalCoinsEarned"] == MONTHLY_COINS_LIMIT
        assert await count_game_logs(session, player_id) == 2

    @pytest.mark.asyncio
    async def test_stale_month_starts_empty(self, session, make_account):
        player = await make_account(
            "player",
            monthly_coins_tracker={
                "month": "2020-01",
                "totalCoinsEarned": MONTHLY_COINS_LIMIT,
                "limit": MONTHLY_COINS_LIMIT,
            },
        )
        service = CoinCapService(session)

        status = await service.get_status(player.id)
        assert status["earned"] == 0
        assert status["blocked"] is False

        result = await service.earn(player.id, 500)
        assert result["approved"] == 500
        assert result["earned"] == 500

    @pytest.mark.asyncio
    async def test_status_of_new_account(self, session, make_account):
        player = await make_account("player")

        status = await CoinCapService(session).get_status(player.id)

        assert status["earned"] == 0
        assert status["remaining"] == MONTHLY_COINS_LIMIT
        assert status["multiplier"] == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("coins", [-5, 0])
    async def test_non_positive_coins_rejected(self, session, make_account, reload, coins):
        player = await make_account("player")
        player_id = player.id

        with pytest.raises(InvalidRequestError):
            await CoinCapService(session).earn(player_id, coins)

        assert (await reload(Account, player_id)).monthly_coins_tracker is None
        assert await count_game_logs(session, player_id) == 0

    @pytest.mark.asyncio
    async def test_unknown_account(self, session):
        with pytest.raises(NotFoundError):
            await CoinCapService(session).earn(404, 10)


class TestWithdrawals:
    """Balance moves to the wallet and consumes group points."""

    @pytest.mark.asyncio
    async def test_withdraw_consumes_points(self, session, make_account, reload):
        account = await make_account(
            "earner", sponsor="root", personal_points=60, group_points=12, balance=28000
        )
        account_id = account.id

        result = await WithdrawalService(session).withdraw(
            account_id, amount=Decimal("28000"), actor="earner"
        )

        assert result["withdrawn"] == 28000.0
        assert result["pointsUsed"] == 10.0
        assert result["newGroupPoints"] == 2.0

        account = await reload(Account, account_id)
        assert account.balance == Decimal("0")
        assert account.wallet_balance == Decimal("28000")
        assert account.group_points == Decimal("2")

        entries = await LedgerRepository(session).find_by_account(account_id)
        assert [e.type for e in entries] == [LedgerEntryType.WITHDRAW]
        assert entries[0].meta["pointsUsed"] == 10.0

    @pytest.mark.asyncio
    async def test_whole_balance_with_cleared_points(self, session, make_account, reload):
        account = await make_account(
            "earner", sponsor="root", personal_points=50, group_points=12, balance=30000
        )
        account_id = account.id

        result = await WithdrawalService(session).withdraw(
            account_id, clear_group_points=True
        )

        assert result["withdrawn"] == 30000.0
        account = await reload(Account, account_id)
        assert account.balance == Decimal("0")
        assert account.group_points == Decimal("0")

    @pytest.mark.asyncio
    async def test_explicit_points_to_use(self, session, make_account, reload):
        account = await make_account(
            "earner", sponsor="root", personal_points=50, group_points=12, balance=30000
        )
        account_id = account.id

        await WithdrawalService(session).withdraw(
            account_id, amount=Decimal("20000"), points_to_use=Decimal("3")
        )

        account = await reload(Account, account_id)
        assert account.balance == Decimal("10000")
        assert account.group_points == Decimal("9")

    @pytest.mark.asyncio
    async def test_root_account_needs_no_personal_points(self, session, make_account, reload):
        account = await make_account("root", group_points=10, balance=28000)

        result = await WithdrawalService(session).withdraw(account.id)

        assert result["withdrawn"] == 28000.0

    @pytest.mark.asyncio
    async def test_below_minimum(self, session, make_account):
        account = await make_account("root", group_points=10, balance=28000)

        with pytest.raises(InvalidRequestError):
            await WithdrawalService(session).withdraw(account.id, amount=Decimal("19999"))

    @pytest.mark.asyncio
    async def test_exceeds_balance(self, session, make_account):
        account = await make_account("root", group_points=10, balance=28000)

        with pytest.raises(InsufficientBalanceError):
            await WithdrawalService(session).withdraw(account.id, amount=Decimal("30000"))

    @pytest.mark.asyncio
    async def test_sponsored_account_needs_personal_points(self, session, make_account, reload):
        account = await make_account(
            "earner", sponsor="root", personal_points=49, group_points=10, balance=28000
        )
        account_id = account.id

        with pytest.raises(InsufficientPointsError):
            await WithdrawalService(session).withdraw(account_id)

        assert (await reload(Account, account_id)).balance == Decimal("28000")

    @pytest.mark.asyncio
    async def test_empty_balance(self, session, make_account):
        account = await make_account("root")

        with pytest.raises(InvalidRequestError):
            await WithdrawalService(session).withdraw(account.id)
