"""
Commission payout repository.

Per-level completion records of sponsor-chain walks.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.commission_payout import CommissionPayout
from mlm_ledger.repositories.base import BaseRepository


class PayoutRepository(BaseRepository[CommissionPayout]):
    """CommissionPayout repository."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize payout repository.

        Args:
            session: Database session
        """
        super().__init__(CommissionPayout, session)

    async def find_by_order(self, order_id: int) -> list[CommissionPayout]:
        """
        Payouts recorded for an order, by level.

        Args:
            order_id: Order ID

        Returns:
            Payout records ordered by level
        """
        stmt = (
            select(CommissionPayout)
            .where(CommissionPayout.order_id == order_id)
            .order_by(CommissionPayout.level)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def is_level_paid(self, order_id: int, level: int) -> bool:
        """Check whether a level of an order has been credited."""
        return await self.exists(order_id=order_id, level=level)
