"""
Monthly activation auditor.

A distributor is active for a calendar month when the points of their
purchases dated inside that month reach the activation threshold.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import tzinfo
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import MONTHLY_ACTIVATION_POINTS_THRESHOLD
from mlm_ledger.config.settings import settings
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.services.base_service import BaseService
from mlm_ledger.utils.datetime_utils import month_range_ms
from mlm_ledger.utils.exceptions import NotFoundError
from mlm_ledger.utils.ledger_normalization import normalize_entry


def compute_monthly_personal_points(
    entries: Iterable[Any],
    year: int,
    month: int,
    tz: tzinfo | None = None,
) -> Decimal:
    """
    Sum the points of purchase entries dated inside a calendar month.

    Entries without a usable timestamp are excluded.

    Args:
        entries: LedgerEntry rows or history documents
        year: Year
        month: Month, 1..12
        tz: Timezone of the month boundaries (defaults to LEDGER_TIMEZONE)

    Returns:
        Points purchased in [startOfMonth, startOfNextMonth)
    """
    start_ms, end_ms = month_range_ms(year, month, tz or settings.tzinfo)
    total = Decimal("0")
    for raw in entries:
        entry = normalize_entry(raw)
        if not entry.is_purchase or entry.timestamp_ms is None:
            continue
        if start_ms <= entry.timestamp_ms < end_ms:
            total += entry.points
    return total


def is_active(monthly_points: Decimal) -> bool:
    """Check the activation threshold."""
    return monthly_points >= MONTHLY_ACTIVATION_POINTS_THRESHOLD


@dataclass
class ActivationStatus:
    """Activation state of an account for a month."""

    account_id: int
    username: str
    year: int
    month: int
    monthly_points: Decimal
    threshold: int = MONTHLY_ACTIVATION_POINTS_THRESHOLD

    @property
    def active(self) -> bool:
        return is_active(self.monthly_points)

    @property
    def missing_points(self) -> Decimal:
        return max(Decimal(self.threshold) - self.monthly_points, Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "accountId": self.account_id,
            "usuario": self.username,
            "year": self.year,
            "month": self.month,
            "monthlyPoints": float(self.monthly_points),
            "threshold": self.threshold,
            "active": self.active,
            "missingPoints": float(self.missing_points),
        }


class ActivationAuditor(BaseService):
    """Reads activation status of accounts from their history."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize activation auditor.

        Args:
            session: Database session
        """
        super().__init__(session)
        self.account_repo = AccountRepository(session)
        self.ledger_repo = LedgerRepository(session)

    async def get_activation_status(
        self, account_id: int, year: int, month: int
    ) -> ActivationStatus:
        """
        Activation status of an account for a month.

        Args:
            account_id: Account ID
            year: Year
            month: Month

        Returns:
            ActivationStatus

        Raises:
            NotFoundError: Account does not exist
        """
        account = await self.account_repo.get_by_id(account_id)
        if account is None:
            raise NotFoundError("Account not found", account_id=account_id)

        entries = await self.ledger_repo.find_by_account(account_id)
        return ActivationStatus(
            account_id=account_id,
            username=account.username,
            year=year,
            month=month,
            monthly_points=compute_monthly_personal_points(entries, year, month),
        )
