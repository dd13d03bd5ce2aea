"""
Commission purge models.

CommissionPurgeReport stores every purge run (preview or execute).
MonthlyPurgeMarker records that an account's commissions for a month have
been purged; its unique key makes re-runs skip the account.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.models.base import Base
from mlm_ledger.models.types import MoneyType, PointsType


class CommissionPurgeReport(Base):
    """CommissionPurgeReport entity (commissionsPurged)."""

    __tablename__ = "commissionsPurged"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    mode: Mapped[str] = mapped_column(String(16), nullable=False)
    executed_by: Mapped[str] = mapped_column(
        "executedBy", String(255), nullable=False
    )

    total_users_scanned: Mapped[int] = mapped_column(
        "totalUsersScanned", Integer, default=0, nullable=False
    )
    active_users: Mapped[int] = mapped_column(
        "activeUsers", Integer, default=0, nullable=False
    )
    inactive_users: Mapped[int] = mapped_column(
        "inactiveUsers", Integer, default=0, nullable=False
    )
    users_with_commissions_purged: Mapped[int] = mapped_column(
        "usersWithCommissionsPurged", Integer, default=0, nullable=False
    )
    total_amount_purged: Mapped[Decimal] = mapped_column(
        "totalAmountPurged", MoneyType, default=Decimal("0"), nullable=False
    )
    total_points_purged: Mapped[Decimal] = mapped_column(
        "totalPointsPurged", PointsType, default=Decimal("0"), nullable=False
    )
    purged_users: Mapped[list[dict[str, Any]] | None] = mapped_column(
        "purgedUsers", JSON, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CommissionPurgeReport({self.year}-{self.month:02d}, "
            f"mode={self.mode!r}, purged={self.users_with_commissions_purged})>"
        )


class MonthlyPurgeMarker(Base):
    """MonthlyPurgeMarker entity (monthly_purge_markers)."""

    __tablename__ = "monthly_purge_markers"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "year", "month",
            name="uq_monthly_purge_marker_account_month",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    points: Mapped[Decimal] = mapped_column(PointsType, nullable=False)
    purged_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<MonthlyPurgeMarker(account_id={self.account_id}, "
            f"{self.year}-{self.month:02d})>"
        )
