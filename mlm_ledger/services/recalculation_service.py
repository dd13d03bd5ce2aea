"""
Recalculate account aggregates from history.

groupPoints, balance and personalPoints are caches over the ledger; this
service rebuilds them and reports the drift.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import (
    BALANCE_DISCREPANCY_TOLERANCE,
    EARNING_TYPES,
    LedgerEntryType,
    points_to_currency,
)
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.activity_log_repository import ActivityLogRepository
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.services.base_service import BaseService, log_operation, transaction
from mlm_ledger.utils.exceptions import NotFoundError
from mlm_ledger.utils.ledger_normalization import (
    effective_group_points,
    effective_personal_points,
    normalize_entry,
    to_decimal,
)


@dataclass
class RebuiltAggregates:
    """Aggregates rebuilt from a history."""

    personal_points: Decimal
    group_points: Decimal
    balance: Decimal
    stamped_entries: list[tuple[int, str]]


def rebuild_aggregates(entries: list[Any]) -> RebuiltAggregates:
    """
    Rebuild personalPoints, groupPoints and balance from ledger entries.

    Commissions add, purges add their (negative) values, withdrawals
    subtract the points they consumed. Results are floored at zero, and the
    balance snaps to groupPoints * POINT_VALUE when they drift apart by more
    than the tolerance.

    Args:
        entries: LedgerEntry rows in insertion order

    Returns:
        RebuiltAggregates, including legacy entries that need a type stamp
    """
    personal = Decimal("0")
    group = Decimal("0")
    balance = Decimal("0")
    stamped: list[tuple[int, str]] = []

    for raw in entries:
        entry = normalize_entry(raw)
        if entry.legacy and entry.type and getattr(raw, "id", None) is not None:
            stamped.append((raw.id, entry.type))

        if entry.type == LedgerEntryType.PURCHASE:
            personal += entry.points
        elif entry.type in EARNING_TYPES or entry.type == LedgerEntryType.COMMISSION_PURGE:
            group += entry.points
            balance += entry.amount
        elif entry.type == LedgerEntryType.WITHDRAW:
            meta = getattr(raw, "meta", None) or {}
            group -= to_decimal(meta.get("pointsUsed", entry.points))
            balance -= entry.amount

    group = max(group, Decimal("0"))
    balance = max(balance, Decimal("0"))

    expected_balance = points_to_currency(group)
    if abs(balance - expected_balance) > BALANCE_DISCREPANCY_TOLERANCE:
        balance = expected_balance

    return RebuiltAggregates(
        personal_points=personal,
        group_points=group,
        balance=balance,
        stamped_entries=stamped,
    )


class RecalculationService(BaseService):
    """Reconciles cached aggregates with the ledger."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize recalculation service.

        Args:
            session: Database session
        """
        super().__init__(session)
        self.account_repo = AccountRepository(session)
        self.ledger_repo = LedgerRepository(session)
        self.activity_repo = ActivityLogRepository(session)

    @log_operation
    @transaction
    async def recalculate(
        self, account_id: int, actor: str = "system", apply: bool = True
    ) -> dict[str, Any]:
        """
        Rebuild an account's aggregates from its history.

        personalPoints never decreases: the rebuilt value only replaces the
        cached one when it is larger.

        Args:
            account_id: Account ID
            actor: Who requested the recalculation
            apply: Write the rebuilt values (False only reports them)

        Returns:
            {accountId, before, after, changes, stampedEntries, applied}

        Raises:
            NotFoundError: Account does not exist
        """
        account = await self.account_repo.get_for_update(account_id)
        if account is None:
            raise NotFoundError("Account not found", account_id=account_id)

        before = {
            "personalPoints": effective_personal_points(account),
            "groupPoints": effective_group_points(account),
            "balance": to_decimal(account.balance),
        }

        entries = await self.ledger_repo.find_by_account(account_id)
        rebuilt = rebuild_aggregates(entries)
        after = {
            "personalPoints": max(rebuilt.personal_points, before["personalPoints"]),
            "groupPoints": rebuilt.group_points,
            "balance": rebuilt.balance,
        }

        if apply:
            for entry_id, entry_type in rebuilt.stamped_entries:
                await self.ledger_repo.stamp_type(entry_id, entry_type)
            await self.account_repo.overwrite_aggregates(
                account_id,
                personal_points=after["personalPoints"],
                group_points=after["groupPoints"],
                balance=after["balance"],
            )
            await self.activity_repo.log(
                "account_recalculated",
                actor,
                account_id,
                {
                    "before": {k: float(v) for k, v in before.items()},
                    "after": {k: float(v) for k, v in after.items()},
                },
            )

        self.logger.info(
            "Account aggregates recalculated",
            extra={
                "account_id": account_id,
                "applied": apply,
                "group_points_before": str(before["groupPoints"]),
                "group_points_after": str(after["groupPoints"]),
                "balance_before": str(before["balance"]),
                "balance_after": str(after["balance"]),
            },
        )

        return {
            "accountId": account_id,
            "usuario": account.username,
            "applied": apply,
            "before": {k: float(v) for k, v in before.items()},
            "after": {k: float(v) for k, v in after.items()},
            "changes": {k: float(after[k] - before[k]) for k in after},
            "stampedEntries": len(rebuilt.stamped_entries) if apply else 0,
        }
