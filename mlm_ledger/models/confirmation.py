"""
Confirmation model.

Immutable audit record written for every confirmed order.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.models.base import Base
from mlm_ledger.models.types import PointsType


class Confirmation(Base):
    """Confirmation entity (confirmations)."""

    __tablename__ = "confirmations"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_id: Mapped[int] = mapped_column(
        "orderId",
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    buyer_id: Mapped[int] = mapped_column("buyerId", Integer, nullable=False)
    buyer_username: Mapped[str] = mapped_column(
        "buyerUsername", String(255), nullable=False
    )
    points: Mapped[Decimal] = mapped_column(PointsType, nullable=False)
    commission_path: Mapped[str | None] = mapped_column(
        "commissionPath", String(32), nullable=True
    )
    confirmed_by: Mapped[str] = mapped_column(
        "confirmedBy", String(255), nullable=False
    )
    confirmed_at: Mapped[datetime] = mapped_column(
        "confirmedAt",
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Confirmation(orderId={self.order_id}, "
            f"buyer={self.buyer_username!r}, path={self.commission_path!r})>"
        )
