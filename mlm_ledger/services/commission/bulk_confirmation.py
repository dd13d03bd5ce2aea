"""
Bulk Quick Start confirmation.

Confirms every pending order of a buyer in one transaction and pays the
Quick Start bonus on their combined points. The first pending order is the
primary order: its id is stored as quickStartOrderId and keys the payout
records of the bulk.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import (
    QUICK_START_THRESHOLD,
    CommissionPath,
    LedgerEntryType,
    quick_start_packages,
)
from mlm_ledger.models.account import Account
from mlm_ledger.models.confirmation import Confirmation
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.activity_log_repository import ActivityLogRepository
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.repositories.order_repository import OrderRepository
from mlm_ledger.services.base_service import BaseService, log_operation
from mlm_ledger.services.commission.distribution_engine import DistributionResult
from mlm_ledger.services.commission.payout_processor import PayoutProcessor
from mlm_ledger.services.commission.sponsor_resolver import SponsorResolver
from mlm_ledger.utils.db_decorators import conflict_guard, with_rollback_on_error
from mlm_ledger.utils.exceptions import (
    AlreadyMasterError,
    AlreadyPaidError,
    AlreadyRegisteredError,
    InsufficientPointsError,
    NotFoundError,
    TransactionConflictError,
)
from mlm_ledger.utils.ledger_normalization import (
    effective_personal_points,
    to_decimal,
)


@dataclass
class BulkConfirmationResult:
    """Result of a bulk Quick Start confirmation."""

    buyer_id: int
    buyer_username: str
    order_ids: list[int]
    total_points: Decimal
    distribution: DistributionResult
    orders_marked: list[int] = field(default_factory=list)

    @property
    def primary_order_id(self) -> int:
        return self.order_ids[0]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "buyerId": self.buyer_id,
            "buyer": self.buyer_username,
            "ordersConfirmed": len(self.order_ids),
            "orderIds": self.order_ids,
            "primaryOrderId": self.primary_order_id,
            "totalPoints": float(self.total_points),
            "packages": quick_start_packages(self.total_points),
            "distribution": self.distribution.to_dict(),
        }


def check_quick_start_latches(buyer: Account) -> None:
    """
    Reject buyers whose Quick Start latches are already set.

    Args:
        buyer: Buyer account

    Raises:
        AlreadyMasterError: isMaster is set
        AlreadyPaidError: quickStartPaid is set
        AlreadyRegisteredError: quickStartOrderId is set
    """
    if buyer.is_master:
        raise AlreadyMasterError("Account is already a Quick Start master", account_id=buyer.id)
    if buyer.quick_start_paid:
        raise AlreadyPaidError("Quick Start bonus already paid", account_id=buyer.id)
    if buyer.quick_start_order_id:
        raise AlreadyRegisteredError(
            "Quick Start order already registered",
            account_id=buyer.id,
            quick_start_order_id=buyer.quick_start_order_id,
        )


class BulkQuickStartConfirmation(BaseService):
    """Confirms all pending orders of a buyer as one Quick Start purchase."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize bulk confirmation service.

        Args:
            session: Database session
        """
        super().__init__(session)
        self.account_repo = AccountRepository(session)
        self.order_repo = OrderRepository(session)
        self.ledger_repo = LedgerRepository(session)
        self.activity_repo = ActivityLogRepository(session)
        self.resolver = SponsorResolver(session)
        self.payout_processor = PayoutProcessor(session, self.resolver)

    @log_operation
    async def confirm_all_quick_start(
        self, buyer_id: int, admin_id: str
    ) -> BulkConfirmationResult:
        """
        Confirm all pending orders of a buyer and pay Quick Start once.

        Args:
            buyer_id: Buyer account ID
            admin_id: Acting admin

        Returns:
            BulkConfirmationResult

        Raises:
            NotFoundError: Buyer, pending orders or direct sponsor missing
            InsufficientPointsError: Combined points below the threshold
            AlreadyMasterError / AlreadyPaidError / AlreadyRegisteredError:
                Quick Start latch already set
            TransactionConflictError: An order was confirmed concurrently
        """
        buyer = await self.account_repo.get_fresh(buyer_id)
        if buyer is None:
            raise NotFoundError("Buyer not found", account_id=buyer_id)

        pending = await self.order_repo.find_pending_by_buyer(buyer_id)
        if not pending:
            raise NotFoundError("No pending orders for buyer", account_id=buyer_id)

        total_points = sum((to_decimal(o.total_points) for o in pending), Decimal("0"))
        if total_points < QUICK_START_THRESHOLD:
            raise InsufficientPointsError(
                "Combined points are below the Quick Start threshold",
                account_id=buyer_id,
                total_points=float(total_points),
                required=QUICK_START_THRESHOLD,
            )

        check_quick_start_latches(buyer)

        sponsor = await self.resolver.direct_sponsor(buyer)
        if sponsor is None:
            raise NotFoundError(
                "Direct sponsor not found",
                account_id=buyer_id,
                sponsor=buyer.sponsor_username,
            )
        await self.commit()

        order_ids, total_points = await self._confirm_all_unit(buyer_id, admin_id)
        primary_order_id = order_ids[0]

        self.logger.info(
            "Bulk Quick Start orders confirmed",
            extra={
                "buyer_id": buyer_id,
                "orders": len(order_ids),
                "total_points": str(total_points),
                "primary_order_id": primary_order_id,
                "admin": admin_id,
            },
        )

        plan = await self.payout_processor.build_plan(
            CommissionPath.QUICK_START, buyer, total_points
        )
        await self.commit()
        payouts, failures = await self.payout_processor.execute_plan(
            primary_order_id,
            plan,
            from_user=buyer.username,
            by=admin_id,
            meta={"orderIds": [str(i) for i in order_ids], "bulk": True},
        )

        distribution = DistributionResult(
            order_id=primary_order_id,
            buyer_id=buyer_id,
            buyer_username=buyer.username,
            order_points=total_points,
            commission_path=CommissionPath.QUICK_START,
            quick_start_applied=True,
            payouts=payouts,
            failures=failures,
            distribution_note=plan.note,
        )
        result = BulkConfirmationResult(
            buyer_id=buyer_id,
            buyer_username=buyer.username,
            order_ids=order_ids,
            total_points=total_points,
            distribution=distribution,
        )

        result.orders_marked = await self._mark_all_distributed(
            order_ids, plan.note, primary_order_id
        )
        await self._write_audit(result, admin_id)
        return result

    @with_rollback_on_error
    async def _confirm_all_unit(
        self, buyer_id: int, admin_id: str
    ) -> tuple[list[int], Decimal]:
        """Atomic confirmation of every pending order plus the latch claim."""
        async with conflict_guard("confirm_all_quick_start", buyer_id=buyer_id):
            buyer = await self.account_repo.get_for_update(buyer_id)
            if buyer is None:
                raise NotFoundError("Buyer not found", account_id=buyer_id)
            check_quick_start_latches(buyer)

            orders = await self.order_repo.find_pending_by_buyer(buyer_id, for_update=True)
            if not orders:
                raise NotFoundError("No pending orders for buyer", account_id=buyer_id)

            total_points = sum((to_decimal(o.total_points) for o in orders), Decimal("0"))
            if total_points < QUICK_START_THRESHOLD:
                raise InsufficientPointsError(
                    "Combined points are below the Quick Start threshold",
                    account_id=buyer_id,
                    total_points=float(total_points),
                    required=QUICK_START_THRESHOLD,
                )

            order_ids = [o.id for o in orders]
            claimed = await self.account_repo.claim_quick_start(
                buyer_id, [str(i) for i in order_ids], total_points
            )
            if not claimed:
                raise AlreadyPaidError("Quick Start bonus already paid", account_id=buyer_id)

            personal_before = effective_personal_points(buyer)
            for order in orders:
                points = to_decimal(order.total_points)
                confirmed = await self.order_repo.confirm_pending(
                    order.id, admin_id, CommissionPath.QUICK_START, bulk_quick_start=True
                )
                if not confirmed:
                    raise TransactionConflictError(
                        "Order was confirmed concurrently",
                        order_id=order.id,
                        buyer_id=buyer_id,
                    )

                await self.account_repo.increment_personal_points(buyer_id, points)
                await self.ledger_repo.append(
                    account_id=buyer_id,
                    entry_type=LedgerEntryType.PURCHASE,
                    action=f"Compra confirmada - {order.product_name or 'producto'} (Quick Start)",
                    points=points,
                    amount=order.total_price,
                    quantity=order.quantity,
                    order_id=order.id,
                    by=admin_id,
                    meta={"quickStartBulkConfirm": True, "productId": order.product_id},
                )

            if personal_before + total_points >= QUICK_START_THRESHOLD:
                await self.account_repo.mark_initial_pack_bought(buyer_id)

            await self.commit()

        return order_ids, total_points

    @with_rollback_on_error
    async def _mark_all_distributed(
        self, order_ids: list[int], note: str, primary_order_id: int
    ) -> list[int]:
        marked = []
        for order_id in order_ids:
            order_note = note if order_id == primary_order_id else (
                f"Quick Start incluido en orden {primary_order_id}"
            )
            if await self.order_repo.mark_distributed(order_id, order_note):
                marked.append(order_id)
        await self.commit()
        return marked

    @with_rollback_on_error
    async def _write_audit(self, result: BulkConfirmationResult, admin_id: str) -> None:
        for order_id in result.order_ids:
            self.session.add(Confirmation(
                order_id=order_id,
                buyer_id=result.buyer_id,
                buyer_username=result.buyer_username,
                points=result.total_points,
                commission_path=CommissionPath.QUICK_START,
                confirmed_by=admin_id,
            ))
        await self.activity_repo.log(
            "quick_start_bulk_confirm",
            admin_id,
            result.buyer_id,
            {
                "orderIds": result.order_ids,
                "totalPoints": float(result.total_points),
                "levelsPaid": len(result.distribution.payouts),
                "failures": [
                    {"level": f.level, "accountId": f.account_id, "reason": f.reason}
                    for f in result.distribution.failures
                ],
            },
        )
        await self.commit()
