"""
Order model.

A purchase awaiting (or past) admin confirmation.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.config.business_constants import (
    OrderStatus,
    is_pending_status,
)
from mlm_ledger.models.base import Base
from mlm_ledger.models.types import MoneyType, PointsType


class Order(Base):
    """
    Order entity.

    Status moves pending* -> confirmed | rejected, never back.
    groupPointsDistributed moves false -> true exactly once.
    """

    __tablename__ = "orders"
    __table_args__ = (
        Index("idx_orders_buyer_status", "buyerId", "status"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    buyer_id: Mapped[int] = mapped_column(
        "buyerId",
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[int | None] = mapped_column(
        "productId",
        Integer,
        ForeignKey("productos.id", ondelete="SET NULL"),
        nullable=True,
    )
    product_name: Mapped[str | None] = mapped_column(
        "productName", String(255), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    total_points: Mapped[Decimal] = mapped_column(
        "totalPoints", PointsType, default=Decimal("0"), nullable=False
    )
    total_price: Mapped[Decimal] = mapped_column(
        "totalPrice", MoneyType, default=Decimal("0"), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(32), default=OrderStatus.PENDING, nullable=False, index=True
    )

    # Distribution guard
    group_points_distributed: Mapped[bool] = mapped_column(
        "groupPointsDistributed", Boolean, default=False, nullable=False
    )
    group_points_distributed_at: Mapped[datetime | None] = mapped_column(
        "groupPointsDistributedAt", DateTime(timezone=True), nullable=True
    )
    distribution_note: Mapped[str | None] = mapped_column(
        "distributionNote", Text, nullable=True
    )
    commission_path: Mapped[str | None] = mapped_column(
        "commissionPath", String(32), nullable=True
    )
    quick_start_bulk_confirm: Mapped[bool] = mapped_column(
        "quickStartBulkConfirm", Boolean, default=False, nullable=False
    )

    # Confirmation
    confirmed_at: Mapped[datetime | None] = mapped_column(
        "confirmedAt", DateTime(timezone=True), nullable=True
    )
    confirmed_by: Mapped[str | None] = mapped_column(
        "confirmedBy", String(255), nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Order(id={self.id}, buyerId={self.buyer_id}, "
            f"points={self.total_points}, status={self.status!r})>"
        )

    @property
    def is_pending(self) -> bool:
        """Check if order is in any pending status."""
        return is_pending_status(self.status)

    @property
    def is_confirmed(self) -> bool:
        """Check if order is confirmed."""
        return self.status == OrderStatus.CONFIRMED
