"""
ActivityLog model.

Append-only administrative audit log.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.models.base import Base


class ActivityLog(Base):
    """
    ActivityLog entity (activity_logs).

    Attributes:
        action: Machine readable action name
        actor: Who performed the action (admin username or "system")
        target_account_id: Affected account, if any
        details: Structured payload
    """

    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    target_account_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True
    )
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ActivityLog(id={self.id}, action={self.action!r}, actor={self.actor!r})>"
