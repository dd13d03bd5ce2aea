"""
CommissionPayout model.

One row per (order, level) actually credited. The unique constraint is the
per-level completion record that makes sponsor-chain walks resumable.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.models.base import Base
from mlm_ledger.models.types import MoneyType, PointsType


class CommissionPayout(Base):
    """
    CommissionPayout entity.

    Attributes:
        order_id: Order whose confirmation produced the payout
        level: 1 = direct sponsor, up to 5
        account_id: Credited ancestor
        entry_type: Ledger entry type written for this level
        points: Points credited
        amount: Currency credited
    """

    __tablename__ = "commission_payouts"
    __table_args__ = (
        UniqueConstraint(
            "order_id", "level", name="uq_commission_payout_order_level"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entry_type: Mapped[str] = mapped_column(String(64), nullable=False)
    points: Mapped[Decimal] = mapped_column(PointsType, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CommissionPayout(order_id={self.order_id}, level={self.level}, "
            f"account_id={self.account_id}, points={self.points})>"
        )
