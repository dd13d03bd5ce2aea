"""
GameIncomeLog model.

Records coins approved by the monthly coin cap.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.models.base import Base


class GameIncomeLog(Base):
    """GameIncomeLog entity (game_income_logs)."""

    __tablename__ = "game_income_logs"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    account_id: Mapped[int] = mapped_column(
        "userId",
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    game_type: Mapped[str | None] = mapped_column(
        "gameType", String(64), nullable=True
    )
    level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    coins_requested: Mapped[int] = mapped_column(
        "coinsRequested", Integer, nullable=False
    )
    coins_approved: Mapped[int] = mapped_column(
        "coinsApproved", Integer, nullable=False
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    total_this_month: Mapped[int] = mapped_column(
        "totalThisMonth", Integer, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        "timestamp",
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<GameIncomeLog(userId={self.account_id}, month={self.month}, "
            f"approved={self.coins_approved})>"
        )
