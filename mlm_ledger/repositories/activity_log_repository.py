"""
Activity log repository.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.activity_log import ActivityLog
from mlm_ledger.repositories.base import BaseRepository


class ActivityLogRepository(BaseRepository[ActivityLog]):
    """Append-only administrative audit log."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize activity log repository.

        Args:
            session: Database session
        """
        super().__init__(ActivityLog, session)

    async def log(
        self,
        action: str,
        actor: str,
        target_account_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> ActivityLog:
        """
        Append an audit record.

        Args:
            action: Action name
            actor: Who performed it
            target_account_id: Affected account
            details: Structured payload (must be JSON serializable)

        Returns:
            Created record
        """
        return await self.create(
            action=action,
            actor=actor,
            target_account_id=target_account_id,
            details=details,
        )

    async def find_by_action(self, action: str) -> list[ActivityLog]:
        """Records of one action type, oldest first."""
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.action == action)
            .order_by(ActivityLog.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
