"""
Account model.

Represents a member of the distributor network. Column names reproduce the
persisted field names of the account documents (usuario, patrocinador,
personalPoints, ...), while Python attributes use snake_case.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.config.business_constants import AccountRole, AccountType
from mlm_ledger.models.base import Base
from mlm_ledger.models.types import MoneyType, PointsType


class Account(Base):
    """
    Account entity.

    Aggregates (personalPoints, groupPoints, balance) are caches over the
    account's ledger entries; the recalculation service rebuilds them.

    Attributes:
        id: Primary key
        username: Unique username (usuario), key of sponsor edges
        sponsor_username: Sponsor's username (patrocinador), None for roots
        account_type: Registration type (tipoRegistro)
        role: admin or user (rol)
        personal_points: Lifetime personal points (personalPoints)
        legacy_points: Legacy alias of personal points (puntos)
        group_points: Group points (groupPoints)
        legacy_group_points: Legacy alias of group points (puntosGrupales)
        balance: Commission balance in currency units
        wallet_balance: Withdrawn commissions (walletBalance)
        is_master: Quick Start master latch (isMaster)
        quick_start_paid: Quick Start payment latch (quickStartPaid)
        quick_start_order_id: Order that triggered the bonus
        quick_start_order_ids: All orders covered by the bonus
        monthly_coins_tracker: {month, totalCoinsEarned, limit, lastUpdated}

    personalPoints and groupPoints are NULL on legacy rows that only carry
    puntos / puntosGrupales; the first atomic write folds the legacy value in.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint(
            "balance >= 0", name="check_account_balance_non_negative"
        ),
        CheckConstraint(
            '"groupPoints" >= 0',
            name="check_account_group_points_non_negative",
        ),
        CheckConstraint(
            '"personalPoints" >= 0',
            name="check_account_personal_points_non_negative",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity and network edge
    username: Mapped[str] = mapped_column(
        "usuario", String(255), unique=True, index=True, nullable=False
    )
    sponsor_username: Mapped[str | None] = mapped_column(
        "patrocinador", String(255), nullable=True, index=True
    )
    name: Mapped[str | None] = mapped_column(
        "nombre", String(255), nullable=True
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_type: Mapped[str] = mapped_column(
        "tipoRegistro",
        String(32),
        default=AccountType.DISTRIBUTOR,
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        "rol", String(32), default=AccountRole.USER, nullable=False
    )

    # Points
    personal_points: Mapped[Decimal | None] = mapped_column(
        "personalPoints", PointsType, default=Decimal("0"), nullable=True
    )
    legacy_points: Mapped[Decimal | None] = mapped_column(
        "puntos", PointsType, default=Decimal("0"), nullable=True
    )
    group_points: Mapped[Decimal | None] = mapped_column(
        "groupPoints", PointsType, default=Decimal("0"), nullable=True
    )
    legacy_group_points: Mapped[Decimal | None] = mapped_column(
        "puntosGrupales", PointsType, nullable=True
    )

    # Money
    balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    wallet_balance: Mapped[Decimal] = mapped_column(
        "walletBalance", MoneyType, default=Decimal("0"), nullable=False
    )

    # Quick Start latches (one-way)
    initial_pack_bought: Mapped[bool] = mapped_column(
        "initialPackBought", Boolean, default=False, nullable=False
    )
    is_master: Mapped[bool] = mapped_column(
        "isMaster", Boolean, default=False, nullable=False
    )
    quick_start_paid: Mapped[bool] = mapped_column(
        "quickStartPaid", Boolean, default=False, nullable=False
    )
    quick_start_order_id: Mapped[str | None] = mapped_column(
        "quickStartOrderId", String(64), nullable=True
    )
    quick_start_order_ids: Mapped[list[str] | None] = mapped_column(
        "quickStartOrderIds", JSON, nullable=True
    )
    quick_start_paid_at: Mapped[datetime | None] = mapped_column(
        "quickStartPaidAt", DateTime(timezone=True), nullable=True
    )
    quick_start_total_points: Mapped[Decimal | None] = mapped_column(
        "quickStartTotalPoints", PointsType, nullable=True
    )

    # Games
    monthly_coins_tracker: Mapped[dict[str, Any] | None] = mapped_column(
        "monthlyCoinsTracker", JSON, nullable=True
    )

    # Maintenance
    last_recalculation: Mapped[datetime | None] = mapped_column(
        "lastRecalculation", DateTime(timezone=True), nullable=True
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
            f"<Account(id={self.id}, usuario={self.username!r}, "
            f"patrocinador={self.sponsor_username!r}, "
            f"groupPoints={self.group_points}, balance={self.balance})>"
        )

    @property
    def is_admin(self) -> bool:
        """Check if account has the admin role."""
        return self.role == AccountRole.ADMIN

    @property
    def has_quick_start_latch(self) -> bool:
        """True once any Quick Start latch has been set."""
        return bool(
            self.is_master
            or self.quick_start_paid
            or self.quick_start_order_id
        )
