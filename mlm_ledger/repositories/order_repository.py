"""
Order repository.

Data access for orders, including the conditional writes that guard
confirmation and distribution.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import PENDING_STATUSES, OrderStatus
from mlm_ledger.models.order import Order
from mlm_ledger.repositories.base import BaseRepository
from mlm_ledger.utils.datetime_utils import utc_now


class OrderRepository(BaseRepository[Order]):
    """Order repository."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize order repository.

        Args:
            session: Database session
        """
        super().__init__(Order, session)

    async def find_pending_by_buyer(
        self, buyer_id: int, for_update: bool = False
    ) -> list[Order]:
        """
        Get a buyer's pending orders, oldest first.

        Args:
            buyer_id: Buyer account ID
            for_update: Lock the rows

        Returns:
            Orders in any pending status
        """
        stmt = (
            select(Order)
            .where(Order.buyer_id == buyer_id, Order.status.in_(PENDING_STATUSES))
            .order_by(Order.created_at, Order.id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_distributed(self, order_id: int, note: str) -> bool:
        """
        Flip groupPointsDistributed from false to true.

        Args:
            order_id: Order ID
            note: distributionNote text

        Returns:
            True if this call flipped the flag, False if it was already set
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.group_points_distributed.is_(False))
            .values({
                Order.group_points_distributed: True,
                Order.group_points_distributed_at: utc_now(),
                Order.distribution_note: note,
                Order.updated_at: utc_now(),
            })
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def confirm_pending(
        self,
        order_id: int,
        admin_id: str,
        commission_path: str,
        bulk_quick_start: bool = False,
    ) -> bool:
        """
        Move a pending order to confirmed.

        The status condition keeps the transition exactly-once on backends
        that ignore row locks.

        Args:
            order_id: Order ID
            admin_id: Confirming admin
            commission_path: Path recorded on the order
            bulk_quick_start: Mark the order as part of a bulk Quick Start

        Returns:
            True if this call confirmed the order, False if it was no longer pending
        """
        now = utc_now()
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status.in_(PENDING_STATUSES))
            .values({
                Order.status: OrderStatus.CONFIRMED,
                Order.confirmed_at: now,
                Order.confirmed_by: admin_id,
                Order.commission_path: commission_path,
                Order.quick_start_bulk_confirm: bulk_quick_start,
                Order.updated_at: now,
            })
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
