"""
Purge repository.

Monthly purge markers and persisted purge reports.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.purge_report import CommissionPurgeReport, MonthlyPurgeMarker
from mlm_ledger.repositories.base import BaseRepository


class PurgeRepository(BaseRepository[MonthlyPurgeMarker]):
    """Purge marker and report repository."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize purge repository.

        Args:
            session: Database session
        """
        super().__init__(MonthlyPurgeMarker, session)

    async def get_marker(
        self, account_id: int, year: int, month: int
    ) -> MonthlyPurgeMarker | None:
        """
        Purge marker of an account for a month.

        Args:
            account_id: Account ID
            year: Year
            month: Month

        Returns:
            Marker or None when the month was not purged yet
        """
        stmt = select(MonthlyPurgeMarker).where(
            MonthlyPurgeMarker.account_id == account_id,
            MonthlyPurgeMarker.year == year,
            MonthlyPurgeMarker.month == month,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_marker(
        self,
        account_id: int,
        year: int,
        month: int,
        amount: Decimal,
        points: Decimal,
        purged_by: str,
    ) -> MonthlyPurgeMarker:
        """
        Insert a purge marker.

        A concurrent purge of the same account-month fails on the unique key.

        Returns:
            Created marker
        """
        return await self.create(
            account_id=account_id,
            year=year,
            month=month,
            amount=amount,
            points=points,
            purged_by=purged_by,
        )

    async def save_report(self, **data: Any) -> CommissionPurgeReport:
        """
        Persist a purge report.

        Args:
            **data: CommissionPurgeReport fields

        Returns:
            Created report
        """
        report = CommissionPurgeReport(**data)
        self.session.add(report)
        await self.session.flush()
        return report

    async def find_reports(self, year: int, month: int) -> list[CommissionPurgeReport]:
        """Reports for a month, oldest first."""
        stmt = (
            select(CommissionPurgeReport)
            .where(
                CommissionPurgeReport.year == year,
                CommissionPurgeReport.month == month,
            )
            .order_by(CommissionPurgeReport.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
