"""
Ledger repository.

Append-only access to account history.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.ledger_entry import LedgerEntry
from mlm_ledger.repositories.base import BaseRepository
from mlm_ledger.utils.datetime_utils import now_ms, utc_now


class LedgerRepository(BaseRepository[LedgerEntry]):
    """Ledger (history) repository."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize ledger repository.

        Args:
            session: Database session
        """
        super().__init__(LedgerEntry, session)

    async def append(
        self,
        account_id: int,
        entry_type: str,
        action: str,
        points: Decimal | None = None,
        amount: Decimal | None = None,
        order_id: int | str | None = None,
        from_user: str | None = None,
        by: str | None = None,
        quantity: int | None = None,
        meta: dict[str, Any] | None = None,
        timestamp_ms: int | None = None,
    ) -> LedgerEntry:
        """
        Append an entry to an account's history.

        Args:
            account_id: Owner account
            entry_type: Canonical type
            action: Description
            points: Points moved
            amount: Currency moved
            order_id: Related order
            from_user: Username that generated the commission
            by: Actor
            quantity: Purchased quantity
            meta: Extra details
            timestamp_ms: Override for the entry time (epoch ms)

        Returns:
            Inserted entry
        """
        timestamp = timestamp_ms if timestamp_ms is not None else now_ms()
        entry = LedgerEntry(
            account_id=account_id,
            type=entry_type,
            action=action,
            points=points,
            amount=amount,
            quantity=quantity,
            order_id=str(order_id) if order_id is not None else None,
            timestamp=timestamp,
            origin_ms=timestamp,
            date=utc_now().isoformat(),
            from_user=from_user,
            by=by,
            meta=meta,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def find_by_account(self, account_id: int) -> list[LedgerEntry]:
        """
        Full history of an account in insertion order.

        Legacy rows may lack a timestamp column value, so month filtering
        happens after normalization rather than in SQL.

        Args:
            account_id: Account ID

        Returns:
            Ledger entries
        """
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_order(self, order_id: int | str) -> list[LedgerEntry]:
        """All entries referencing an order."""
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.order_id == str(order_id))
            .order_by(LedgerEntry.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def stamp_type(self, entry_id: int, entry_type: str) -> bool:
        """
        Stamp a canonical type onto a legacy entry.

        Only rows whose type is NULL are touched; typed rows stay immutable.

        Args:
            entry_id: Entry ID
            entry_type: Canonical type

        Returns:
            True if the row was stamped
        """
        stmt = (
            update(LedgerEntry)
            .where(LedgerEntry.id == entry_id, LedgerEntry.type.is_(None))
            .values({LedgerEntry.type: entry_type})
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
