"""
Withdrawal service.

Moves commission balance to the wallet and consumes group points.
"""

from decimal import ROUND_FLOOR, Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import (
    MIN_WITHDRAW_AMOUNT,
    POINT_VALUE,
    WITHDRAW_MIN_PERSONAL_POINTS,
    LedgerEntryType,
)
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.utils.db_decorators import retry_on_conflict
from mlm_ledger.utils.exceptions import (
    InsufficientBalanceError,
    InsufficientPointsError,
    InvalidRequestError,
    NotFoundError,
    TransactionConflictError,
)
from mlm_ledger.utils.ledger_normalization import (
    effective_group_points,
    effective_personal_points,
    to_decimal,
)


def points_used_for_withdrawal(
    amount: Decimal,
    current_group_points: Decimal,
    points_to_use: Decimal | None = None,
    clear_group_points: bool = False,
) -> Decimal:
    """
    Group points consumed by a withdrawal.

    Args:
        amount: Amount withdrawn
        current_group_points: Group points before the withdrawal
        points_to_use: Explicit number of points to consume
        clear_group_points: Consume all group points

    Returns:
        Points to subtract from groupPoints
    """
    if clear_group_points:
        return current_group_points
    if points_to_use is not None:
        return min(max(points_to_use, Decimal("0")), current_group_points)
    calculated = (amount / POINT_VALUE).to_integral_value(rounding=ROUND_FLOOR)
    return min(calculated, current_group_points)


class WithdrawalService(BaseService):
    """Commission withdrawals (cobro)."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize withdrawal service.

        Args:
            session: Database session
        """
        super().__init__(session)
        self.account_repo = AccountRepository(session)
        self.ledger_repo = LedgerRepository(session)

    @retry_on_conflict()
    @transaction
    async def withdraw(
        self,
        account_id: int,
        amount: Decimal | None = None,
        points_to_use: Decimal | None = None,
        clear_group_points: bool = False,
        actor: str = "system",
    ) -> dict[str, Any]:
        """
        Withdraw commission balance to the wallet.

        Args:
            account_id: Account ID
            amount: Amount to withdraw (whole balance when None)
            points_to_use: Explicit group points to consume
            clear_group_points: Consume all group points
            actor: Who requested the withdrawal

        Returns:
            {withdrawn, newBalance, newWallet, newGroupPoints, pointsUsed}

        Raises:
            NotFoundError: Account does not exist
            InvalidRequestError: Non-positive or below-minimum amount
            InsufficientPointsError: Account may not withdraw yet
            InsufficientBalanceError: Amount exceeds balance
        """
        account = await self.account_repo.get_for_update(account_id)
        if account is None:
            raise NotFoundError("Account not found", account_id=account_id)

        balance = to_decimal(account.balance)
        to_withdraw = balance if amount is None else to_decimal(amount)
        if to_withdraw <= 0:
            raise InvalidRequestError("Invalid withdrawal amount", amount=float(to_withdraw))
        if to_withdraw > balance:
            raise InsufficientBalanceError(
                "Insufficient balance",
                amount=float(to_withdraw),
                balance=float(balance),
            )
        if to_withdraw < MIN_WITHDRAW_AMOUNT:
            raise InvalidRequestError(
                f"Minimum withdrawal amount is {MIN_WITHDRAW_AMOUNT}",
                amount=float(to_withdraw),
            )

        is_root = not account.sponsor_username
        if not is_root and effective_personal_points(account) < WITHDRAW_MIN_PERSONAL_POINTS:
            raise InsufficientPointsError(
                "Personal points below the withdrawal requirement",
                required=WITHDRAW_MIN_PERSONAL_POINTS,
            )

        group_points = effective_group_points(account)
        points_used = points_used_for_withdrawal(
            to_withdraw, group_points, points_to_use, clear_group_points
        )

        updated = await self.account_repo.move_balance_to_wallet(
            account_id, to_withdraw, points_used
        )
        if updated != 1:
            raise TransactionConflictError(
                "Balance changed during withdrawal", account_id=account_id
            )

        await self.ledger_repo.append(
            account_id=account_id,
            entry_type=LedgerEntryType.WITHDRAW,
            action="Cobro de comisiones",
            points=points_used,
            amount=to_withdraw,
            by=actor,
            meta={"pointsUsed": float(points_used)},
        )

        self.logger.info(
            "Commission withdrawal",
            extra={
                "account_id": account_id,
                "amount": str(to_withdraw),
                "points_used": str(points_used),
                "actor": actor,
            },
        )

        return {
            "withdrawn": float(to_withdraw),
            "newBalance": float(balance - to_withdraw),
            "newWallet": float(to_decimal(account.wallet_balance) + to_withdraw),
            "newGroupPoints": float(max(group_points - points_used, Decimal("0"))),
            "pointsUsed": float(points_used),
        }
