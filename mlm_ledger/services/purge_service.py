"""
Commission purge.

Removes the commissions a distributor earned in a month in which they did
not reach the activation threshold. Each purged account-month gets a
marker row; re-running the purge for the same month skips marked accounts,
so commissions are never removed twice.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import (
    MONTHLY_ACTIVATION_POINTS_THRESHOLD,
    AccountType,
    LedgerEntryType,
)
from mlm_ledger.config.settings import settings
from mlm_ledger.models.ledger_entry import LedgerEntry
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.activity_log_repository import ActivityLogRepository
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.repositories.purge_repository import PurgeRepository
from mlm_ledger.services.activation_service import (
    compute_monthly_personal_points,
    is_active,
)
from mlm_ledger.services.base_service import BaseService, log_operation
from mlm_ledger.utils.datetime_utils import month_range_ms, previous_month
from mlm_ledger.utils.db_decorators import conflict_guard, with_rollback_on_error
from mlm_ledger.utils.exceptions import InvalidRequestError, TransactionConflictError
from mlm_ledger.utils.ledger_normalization import normalize_entry


PURGE_MODES = ("preview", "execute")


class PurgeStatus:
    """Per-account outcome of a purge run."""
    PREVIEW = "preview"
    PURGED = "purged"
    ALREADY_PURGED = "already_purged"


@dataclass
class PurgedUserDetail:
    """Commissions found (and possibly purged) for one inactive account."""

    account_id: int
    username: str
    monthly_personal_points: Decimal
    commissions_count: int
    amount: Decimal
    points: Decimal
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "accountId": self.account_id,
            "usuario": self.username,
            "monthlyPersonalPoints": float(self.monthly_personal_points),
            "commissionsCount": self.commissions_count,
            "amountPurged": float(self.amount),
            "pointsPurged": float(self.points),
            "status": self.status,
        }


@dataclass
class PurgeReport:
    """Result of a purge run."""

    year: int
    month: int
    mode: str
    executed_by: str
    total_users_scanned: int = 0
    active_users: int = 0
    inactive_users: int = 0
    users_with_commissions_purged: int = 0
    total_amount_purged: Decimal = Decimal("0")
    total_points_purged: Decimal = Decimal("0")
    purged_users: list[PurgedUserDetail] = field(default_factory=list)
    report_id: int | None = None

    @property
    def already_purged_users(self) -> list[PurgedUserDetail]:
        return [u for u in self.purged_users if u.status == PurgeStatus.ALREADY_PURGED]

    def add(self, detail: PurgedUserDetail) -> None:
        """Record an account; already-purged accounts do not count in totals."""
        self.purged_users.append(detail)
        if detail.status == PurgeStatus.ALREADY_PURGED:
            return
        self.users_with_commissions_purged += 1
        self.total_amount_purged += detail.amount
        self.total_points_purged += detail.points

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "reportId": self.report_id,
            "year": self.year,
            "month": self.month,
            "mode": self.mode,
            "executedBy": self.executed_by,
            "totalUsersScanned": self.total_users_scanned,
            "activeUsers": self.active_users,
            "inactiveUsers": self.inactive_users,
            "usersWithCommissionsPurged": self.users_with_commissions_purged,
            "alreadyPurgedUsers": len(self.already_purged_users),
            "totalAmountPurged": float(self.total_amount_purged),
            "totalPointsPurged": float(self.total_points_purged),
            "purgedUsers": [u.to_dict() for u in self.purged_users],
        }


class CommissionPurgeService(BaseService):
    """Purges commissions of inactive distributors."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize purge service.

        Args:
            session: Database session
        """
        super().__init__(session)
        self.account_repo = AccountRepository(session)
        self.ledger_repo = LedgerRepository(session)
        self.purge_repo = PurgeRepository(session)
        self.activity_repo = ActivityLogRepository(session)

    @log_operation
    async def purge(
        self,
        year: int | None = None,
        month: int | None = None,
        mode: str = "preview",
        actor: str = "system",
    ) -> PurgeReport:
        """
        Purge (or preview purging) commissions of inactive distributors.

        Args:
            year: Target year (defaults to the previous month's year)
            month: Target month (defaults to the previous month)
            mode: "preview" computes without mutating, "execute" mutates
            actor: Who runs the purge

        Returns:
            PurgeReport (persisted to commissionsPurged)

        Raises:
            InvalidRequestError: Invalid mode or month
        """
        if mode not in PURGE_MODES:
            raise InvalidRequestError(f"Invalid purge mode: {mode}", mode=mode)
        if year is None or month is None:
            year, month = previous_month(tz=settings.tzinfo)
        if not 1 <= month <= 12:
            raise InvalidRequestError(f"Invalid month: {month}", month=month)

        report = PurgeReport(year=year, month=month, mode=mode, executed_by=actor)
        start_ms, end_ms = month_range_ms(year, month, settings.tzinfo)

        distributors = [
            (a.id, a.username)
            for a in await self.account_repo.find_by_account_type(AccountType.DISTRIBUTOR)
        ]
        await self.commit()

        for account_id, username in distributors:
            report.total_users_scanned += 1

            entries = await self.ledger_repo.find_by_account(account_id)
            monthly_points = compute_monthly_personal_points(entries, year, month)
            if is_active(monthly_points):
                report.active_users += 1
                await self.commit()
                continue
            report.inactive_users += 1

            earnings = [
                normalized
                for normalized in (normalize_entry(e) for e in entries)
                if normalized.is_earning
                and normalized.timestamp_ms is not None
                and start_ms <= normalized.timestamp_ms < end_ms
            ]
            amount = sum((e.amount for e in earnings), Decimal("0"))
            points = sum((e.points for e in earnings), Decimal("0"))
            if amount == 0 and points == 0:
                await self.commit()
                continue

            detail = PurgedUserDetail(
                account_id=account_id,
                username=username,
                monthly_personal_points=monthly_points,
                commissions_count=len(earnings),
                amount=amount,
                points=points,
                status=PurgeStatus.PREVIEW,
            )

            marker = await self.purge_repo.get_marker(account_id, year, month)
            if marker is not None:
                detail.status = PurgeStatus.ALREADY_PURGED
                await self.commit()
                report.add(detail)
                continue

            if mode == "execute":
                try:
                    await self._purge_account(detail, entries, year, month, actor)
                    detail.status = PurgeStatus.PURGED
                except TransactionConflictError:
                    detail.status = PurgeStatus.ALREADY_PURGED
            else:
                await self.commit()

            report.add(detail)

        await self._save_report(report)

        self.logger.info(
            "Commission purge finished",
            extra={
                "year": year,
                "month": month,
                "mode": mode,
                "scanned": report.total_users_scanned,
                "inactive": report.inactive_users,
                "purged": report.users_with_commissions_purged,
                "amount": str(report.total_amount_purged),
                "points": str(report.total_points_purged),
            },
        )
        return report

    @with_rollback_on_error
    async def _purge_account(
        self,
        detail: PurgedUserDetail,
        entries: list[LedgerEntry],
        year: int,
        month: int,
        actor: str,
    ) -> None:
        """Marker, floored decrement and purge entry in one transaction."""
        async with conflict_guard(
            "purge_account", account_id=detail.account_id, year=year, month=month
        ):
            await self.purge_repo.add_marker(
                detail.account_id, year, month, detail.amount, detail.points, actor
            )
            await self.account_repo.decrement_commission_floored(
                detail.account_id, detail.points, detail.amount
            )
            await self.ledger_repo.append(
                account_id=detail.account_id,
                entry_type=LedgerEntryType.COMMISSION_PURGE,
                action=(
                    f"Comisiones purgadas por inactividad - {month:02d}/{year} "
                    f"({detail.monthly_personal_points} pts personales, "
                    f"mínimo {MONTHLY_ACTIVATION_POINTS_THRESHOLD})"
                ),
                points=-detail.points,
                amount=-detail.amount,
                by=actor,
                meta={
                    "month": month,
                    "year": year,
                    "purgedCommissionsCount": detail.commissions_count,
                    "monthlyPersonalPoints": float(detail.monthly_personal_points),
                    "reason": "inactive_month",
                },
            )
            for entry in entries:
                if entry.type is None:
                    canonical = normalize_entry(entry).type
                    if canonical:
                        await self.ledger_repo.stamp_type(entry.id, canonical)
            await self.commit()

        self.logger.info(
            "Commissions purged",
            extra={
                "account_id": detail.account_id,
                "usuario": detail.username,
                "year": year,
                "month": month,
                "amount": str(detail.amount),
                "points": str(detail.points),
                "actor": actor,
            },
        )

    @with_rollback_on_error
    async def _save_report(self, report: PurgeReport) -> None:
        saved = await self.purge_repo.save_report(
            month=report.month,
            year=report.year,
            mode=report.mode,
            executed_by=report.executed_by,
            total_users_scanned=report.total_users_scanned,
            active_users=report.active_users,
            inactive_users=report.inactive_users,
            users_with_commissions_purged=report.users_with_commissions_purged,
            total_amount_purged=report.total_amount_purged,
            total_points_purged=report.total_points_purged,
            purged_users=[u.to_dict() for u in report.purged_users],
        )
        await self.activity_repo.log(
            "commission_purge",
            report.executed_by,
            None,
            {
                "year": report.year,
                "month": report.month,
                "mode": report.mode,
                "usersWithCommissionsPurged": report.users_with_commissions_purged,
                "totalAmountPurged": float(report.total_amount_purged),
                "totalPointsPurged": float(report.total_points_purged),
            },
        )
        await self.commit()
        report.report_id = saved.id
