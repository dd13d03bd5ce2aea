"""
Account repository.

Data access for accounts. All numeric writes are atomic SQL expressions
(col = col + :delta) so concurrent credits never lose updates.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.account import Account
from mlm_ledger.repositories.base import BaseRepository
from mlm_ledger.utils.datetime_utils import utc_now


def _current_personal_points() -> Any:
    # A zero personalPoints falls through to puntos, like NULL
    return func.coalesce(func.nullif(Account.personal_points, 0), Account.legacy_points, 0)


def _current_group_points() -> Any:
    return func.coalesce(Account.group_points, Account.legacy_group_points, 0)


def _floored(expr: Any, delta: Decimal) -> Any:
    """expr - delta, never below zero."""
    return case((expr - delta < 0, 0), else_=expr - delta)


class AccountRepository(BaseRepository[Account]):
    """Account repository."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize account repository.

        Args:
            session: Database session
        """
        super().__init__(Account, session)

    async def get_by_username(self, username: str) -> Account | None:
        """
        Get account by username (usuario).

        Args:
            username: Username

        Returns:
            Account or None
        """
        stmt = select(Account).where(Account.username == username)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_account_type(self, account_type: str) -> list[Account]:
        """
        Get all accounts of a registration type (tipoRegistro).

        Args:
            account_type: distribuidor, restaurante or cliente

        Returns:
            Accounts ordered by ID
        """
        stmt = (
            select(Account)
            .where(Account.account_type == account_type)
            .order_by(Account.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def increment_personal_points(
        self, account_id: int, points: Decimal
    ) -> None:
        """
        Atomically add personal points (personalPoints and puntos).

        Legacy rows holding only puntos are folded into personalPoints.

        Args:
            account_id: Account ID
            points: Points to add
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values({
                Account.personal_points: _current_personal_points() + points,
                Account.legacy_points: func.coalesce(Account.legacy_points, 0) + points,
                Account.updated_at: utc_now(),
            })
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def increment_commission(
        self, account_id: int, points: Decimal, amount: Decimal
    ) -> None:
        """
        Atomically credit group points and balance.

        Args:
            account_id: Account ID
            points: Group points to add
            amount: Currency to add to balance
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values({
                Account.group_points: _current_group_points() + points,
                Account.balance: Account.balance + amount,
                Account.updated_at: utc_now(),
            })
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def decrement_commission_floored(
        self, account_id: int, points: Decimal, amount: Decimal
    ) -> None:
        """
        Atomically subtract group points and balance, flooring both at zero.

        Args:
            account_id: Account ID
            points: Group points to remove
            amount: Currency to remove from balance
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values({
                Account.group_points: _floored(_current_group_points(), points),
                Account.balance: _floored(Account.balance, amount),
                Account.updated_at: utc_now(),
            })
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def claim_quick_start(
        self,
        account_id: int,
        order_ids: list[str],
        total_points: Decimal,
    ) -> bool:
        """
        Set the Quick Start latches if none is set yet.

        The WHERE clause makes the claim exactly-once: a concurrent claimer
        updates zero rows.

        Args:
            account_id: Buyer account ID
            order_ids: Orders covered by the bonus, primary first
            total_points: Points that qualified for the bonus

        Returns:
            True if this call set the latches
        """
        stmt = (
            update(Account)
            .where(
                Account.id == account_id,
                Account.quick_start_paid.is_(False),
                Account.is_master.is_(False),
                Account.quick_start_order_id.is_(None),
            )
            .values({
                Account.is_master: True,
                Account.quick_start_paid: True,
                Account.quick_start_order_id: order_ids[0],
                Account.quick_start_order_ids: list(order_ids),
                Account.quick_start_paid_at: utc_now(),
                Account.quick_start_total_points: total_points,
                Account.updated_at: utc_now(),
            })
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_initial_pack_bought(self, account_id: int) -> None:
        """Set initialPackBought."""
        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.initial_pack_bought.is_(False))
            .values({Account.initial_pack_bought: True})
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def move_balance_to_wallet(
        self, account_id: int, amount: Decimal, points: Decimal
    ) -> int:
        """
        Atomically move balance to walletBalance and consume group points.

        The update only applies while the balance still covers the amount.

        Args:
            account_id: Account ID
            amount: Currency to move
            points: Group points consumed by the withdrawal

        Returns:
            Number of updated rows (0 when the balance became insufficient)
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.balance >= amount)
            .values({
                Account.balance: Account.balance - amount,
                Account.wallet_balance: Account.wallet_balance + amount,
                Account.group_points: _floored(_current_group_points(), points),
                Account.updated_at: utc_now(),
            })
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def set_monthly_coins_tracker(
        self, account_id: int, tracker: dict[str, Any]
    ) -> None:
        """
        Replace monthlyCoinsTracker.

        Args:
            account_id: Account ID
            tracker: {month, totalCoinsEarned, limit, lastUpdated}
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values({Account.monthly_coins_tracker: tracker})
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def overwrite_aggregates(
        self,
        account_id: int,
        personal_points: Decimal,
        group_points: Decimal,
        balance: Decimal,
    ) -> None:
        """
        Overwrite cached aggregates with values rebuilt from history.

        Args:
            account_id: Account ID
            personal_points: Rebuilt personal points
            group_points: Rebuilt group points
            balance: Rebuilt balance
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values({
                Account.personal_points: personal_points,
                Account.legacy_points: personal_points,
                Account.group_points: group_points,
                Account.balance: balance,
                Account.last_recalculation: utc_now(),
                Account.updated_at: utc_now(),
            })
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
