"""
LedgerEntry model.

Append-only history of every points/money movement on an account.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.models.base import Base
from mlm_ledger.models.types import MoneyType, PointsType


class LedgerEntry(Base):
    """
    LedgerEntry entity (account history).

    Rows are immutable once inserted; corrections are new rows. The only
    permitted write to an existing row is stamping a canonical type onto a
    legacy row whose type is NULL.

    Attributes:
        id: Primary key
        account_id: Owner account
        type: Canonical entry type, NULL on legacy rows
        action: Human readable description (legacy classification source)
        amount: Currency amount (negative for purges)
        points: Points moved (negative for purges)
        quantity: Purchased quantity (purchase entries)
        order_id: Related order (orderId)
        timestamp: Epoch milliseconds, canonical time of the entry
        origin_ms: Fallback epoch milliseconds (originMs)
        date: ISO date string, display fallback
        from_user: Username that generated the commission (fromUser)
        by: Actor that performed the operation
        meta: Free-form details (legacy meta.action, orderIds, month/year)
    """

    __tablename__ = "history"
    __table_args__ = (
        Index("idx_history_account_timestamp", "account_id", "timestamp"),
        Index("idx_history_account_type", "account_id", "type"),
        Index("idx_history_order", "orderId"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    action: Mapped[str | None] = mapped_column(String(255), nullable=True)

    amount: Mapped[Decimal | None] = mapped_column(MoneyType, nullable=True)
    points: Mapped[Decimal | None] = mapped_column(PointsType, nullable=True)
    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    order_id: Mapped[str | None] = mapped_column(
        "orderId", String(64), nullable=True
    )

    # Time: timestamp is canonical, originMs and date are legacy fallbacks
    timestamp: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    origin_ms: Mapped[int | None] = mapped_column(
        "originMs", BigInteger, nullable=True
    )
    date: Mapped[str | None] = mapped_column(String(64), nullable=True)

    from_user: Mapped[str | None] = mapped_column(
        "fromUser", String(255), nullable=True
    )
    by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meta: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LedgerEntry(id={self.id}, account_id={self.account_id}, "
            f"type={self.type!r}, points={self.points}, amount={self.amount})>"
        )

    def to_document(self) -> dict[str, Any]:
        """
        Render the entry with its persisted field names.

        Returns:
            Dict keyed by the document field names (orderId, originMs, ...)
        """
        return {
            "type": self.type,
            "action": self.action,
            "amount": self.amount,
            "points": self.points,
            "quantity": self.quantity,
            "orderId": self.order_id,
            "timestamp": self.timestamp,
            "originMs": self.origin_ms,
            "date": self.date,
            "fromUser": self.from_user,
            "by": self.by,
            "meta": self.meta,
        }
