"""
Monthly coin cap.

All games share one monthly ceiling of coins per account. The client-side
pacing uses a decaying multiplier; the server enforces the ceiling under a
row lock.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import MONTHLY_COINS_LIMIT
from mlm_ledger.config.settings import settings
from mlm_ledger.models.game_income_log import GameIncomeLog
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.utils.datetime_utils import current_month_key, utc_now
from mlm_ledger.utils.db_decorators import retry_on_conflict
from mlm_ledger.utils.exceptions import InvalidRequestError, NotFoundError


# (progress lower bound, multiplier), highest bound first
MULTIPLIER_TIERS = (
    (1.0, 0.0),
    (0.8, 0.15),
    (0.6, 0.30),
    (0.4, 0.50),
    (0.2, 0.75),
)


def get_multiplier(earned: int, limit: int = MONTHLY_COINS_LIMIT) -> float:
    """
    Earning multiplier for the fraction of the monthly limit consumed.

    Args:
        earned: Coins earned this month
        limit: Monthly limit

    Returns:
        1.0 below 20%, decaying to 0 at the limit
    """
    if limit <= 0:
        return 0.0
    progress = earned / limit
    for bound, multiplier in MULTIPLIER_TIERS:
        if progress >= bound:
            return multiplier
    return 1.0


def apply_monthly_limit(
    raw_coins: int, earned: int, limit: int = MONTHLY_COINS_LIMIT
) -> int:
    """
    Coins actually awarded for a raw game result.

    Args:
        raw_coins: Coins produced by the game
        earned: Coins already earned this month
        limit: Monthly limit

    Returns:
        min(floor(raw * multiplier), remaining), never negative
    """
    remaining = max(0, limit - earned)
    adjusted = math.floor(max(0, raw_coins) * get_multiplier(earned, limit))
    return min(adjusted, remaining)


def approve_coins(requested: int, earned: int, limit: int = MONTHLY_COINS_LIMIT) -> int:
    """
    Server-side approval: clamp a request to the remaining allowance.

    Args:
        requested: Coins requested
        earned: Coins already earned this month
        limit: Monthly limit

    Returns:
        Approved coins, 0 once the limit is reached
    """
    remaining = max(0, limit - earned)
    return max(0, min(requested, remaining))


@dataclass
class MonthlyCoinTracker:
    """
    Per-account monthly coin accumulator.

    A tracker whose month differs from the current month counts as empty.
    """

    month: str
    total_coins_earned: int = 0
    limit: int = MONTHLY_COINS_LIMIT
    last_updated: str | None = None

    @classmethod
    def load(cls, raw: dict[str, Any] | None, now: datetime | None = None) -> "MonthlyCoinTracker":
        """
        Build the current month's tracker from the stored document.

        Args:
            raw: Stored monthlyCoinsTracker or None
            now: Reference time

        Returns:
            Tracker for the current month
        """
        month = current_month_key(now, settings.tzinfo)
        if not raw or raw.get("month") != month:
            return cls(month=month)
        return cls(
            month=month,
            total_coins_earned=int(raw.get("totalCoinsEarned", 0) or 0),
            limit=int(raw.get("limit", MONTHLY_COINS_LIMIT) or MONTHLY_COINS_LIMIT),
            last_updated=raw.get("lastUpdated"),
        )

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.total_coins_earned)

    @property
    def blocked(self) -> bool:
        return self.total_coins_earned >= self.limit

    @property
    def multiplier(self) -> float:
        return get_multiplier(self.total_coins_earned, self.limit)

    def apply_monthly_limit(self, raw_coins: int) -> int:
        """Coins awarded for a raw game result, given this tracker."""
        return apply_monthly_limit(raw_coins, self.total_coins_earned, self.limit)

    def add_monthly_coins(self, coins: int) -> int:
        """
        Accrue coins, clamped to the remaining allowance.

        Args:
            coins: Coins to add

        Returns:
            Coins actually added
        """
        added = approve_coins(coins, self.total_coins_earned, self.limit)
        self.total_coins_earned += added
        self.last_updated = utc_now().isoformat()
        return added

    def to_document(self) -> dict[str, Any]:
        """Stored monthlyCoinsTracker shape."""
        return {
            "month": self.month,
            "totalCoinsEarned": self.total_coins_earned,
            "limit": self.limit,
            "lastUpdated": self.last_updated,
        }

    def status(self) -> dict[str, Any]:
        """Status response shape."""
        return {
            "month": self.month,
            "earned": self.total_coins_earned,
            "limit": self.limit,
            "remaining": self.remaining,
            "blocked": self.blocked,
            "multiplier": self.multiplier,
        }


class CoinCapService(BaseService):
    """Authoritative monthly coin cap enforcement."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize coin cap service.

        Args:
            session: Database session
        """
        super().__init__(session)
        self.account_repo = AccountRepository(session)

    async def get_status(self, account_id: int) -> dict[str, Any]:
        """
        Current month status.

        Args:
            account_id: Account ID

        Returns:
            {month, earned, limit, remaining, blocked, multiplier}

        Raises:
            NotFoundError: Account does not exist
        """
        account = await self.account_repo.get_fresh(account_id)
        if account is None:
            raise NotFoundError("Account not found", account_id=account_id)
        return MonthlyCoinTracker.load(account.monthly_coins_tracker).status()

    @retry_on_conflict()
    @transaction
    async def earn(
        self,
        account_id: int,
        coins: int,
        game_type: str | None = None,
        level: int | None = None,
    ) -> dict[str, Any]:
        """
        Record coins earned in a game, clamped to the monthly ceiling.

        Args:
            account_id: Account ID
            coins: Coins requested (already paced client-side)
            game_type: Game identifier
            level: Game level

        Returns:
            Status plus approved/requested coins

        Raises:
            InvalidRequestError: coins is not positive
            NotFoundError: Account does not exist
        """
        if coins <= 0:
            raise InvalidRequestError("coins must be positive", coins=coins)

        account = await self.account_repo.get_for_update(account_id)
        if account is None:
            raise NotFoundError("Account not found", account_id=account_id)

        tracker = MonthlyCoinTracker.load(account.monthly_coins_tracker)
        approved = tracker.add_monthly_coins(coins)
        await self.account_repo.set_monthly_coins_tracker(account_id, tracker.to_document())

        if approved > 0:
            self.session.add(GameIncomeLog(
                account_id=account_id,
                game_type=game_type,
                level=level,
                coins_requested=coins,
                coins_approved=approved,
                month=tracker.month,
                total_this_month=tracker.total_coins_earned,
            ))

        self.logger.info(
            "Game coins processed",
            extra={
                "account_id": account_id,
                "requested": coins,
                "approved": approved,
                "month": tracker.month,
                "total": tracker.total_coins_earned,
            },
        )
        return {**tracker.status(), "requested": coins, "approved": approved}
