"""
Commission distribution engine.

Confirms an order and distributes its commissions:

1. Confirm unit (one transaction): lock buyer and order, flip the order to
   confirmed, credit personal points, append the purchase entry, and claim
   the Quick Start latch when the buyer is eligible.
2. Payout: exactly one path (Quick Start, normal, restaurant or client
   price difference), each sponsor level credited in its own transaction.
3. Mark the order distributed (false -> true exactly once).
4. Audit: confirmation record and activity log for partial failures.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import (
    QUICK_START_THRESHOLD,
    AccountType,
    CommissionPath,
    LedgerEntryType,
    OrderStatus,
)
from mlm_ledger.models.account import Account
from mlm_ledger.models.confirmation import Confirmation
from mlm_ledger.models.order import Order
from mlm_ledger.models.product import Product
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.activity_log_repository import ActivityLogRepository
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.repositories.order_repository import OrderRepository
from mlm_ledger.services.base_service import BaseService, log_operation
from mlm_ledger.services.commission.payout_processor import (
    LevelPayout,
    PayoutPlan,
    PayoutProcessor,
)
from mlm_ledger.services.commission.sponsor_resolver import SponsorResolver
from mlm_ledger.utils.db_decorators import conflict_guard, with_rollback_on_error
from mlm_ledger.utils.exceptions import (
    AlreadyConfirmedError,
    AlreadyDistributedError,
    InvalidOrderError,
    InvalidOrderStateError,
    NotFoundError,
    PartialDistributionFailure,
)
from mlm_ledger.utils.ledger_normalization import (
    effective_personal_points,
    to_decimal,
)


@dataclass
class DistributionResult:
    """Result of confirming and distributing an order."""

    order_id: int
    buyer_id: int
    buyer_username: str
    order_points: Decimal
    commission_path: str | None
    quick_start_applied: bool = False
    payouts: list[LevelPayout] = field(default_factory=list)
    failures: list[PartialDistributionFailure] = field(default_factory=list)
    distribution_note: str | None = None
    already_distributed: bool = False

    @property
    def success(self) -> bool:
        """True when every planned level was credited."""
        return not self.failures

    @property
    def total_points_distributed(self) -> Decimal:
        return sum((p.points for p in self.payouts if not p.already_paid), Decimal("0"))

    @property
    def total_amount_distributed(self) -> Decimal:
        return sum((p.amount for p in self.payouts if not p.already_paid), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "orderId": self.order_id,
            "buyerId": self.buyer_id,
            "buyer": self.buyer_username,
            "points": float(self.order_points),
            "commissionPath": self.commission_path,
            "quickStartApplied": self.quick_start_applied,
            "alreadyDistributed": self.already_distributed,
            "distributionNote": self.distribution_note,
            "levelsPaid": len([p for p in self.payouts if not p.already_paid]),
            "totalPointsDistributed": float(self.total_points_distributed),
            "totalAmountDistributed": float(self.total_amount_distributed),
            "payouts": [p.to_dict() for p in self.payouts],
            "failures": [
                {"level": f.level, "accountId": f.account_id, "reason": f.reason}
                for f in self.failures
            ],
        }


@dataclass
class ConfirmOutcome:
    """What the confirm unit decided."""

    commission_path: str
    quick_start_eligible: bool
    quick_start_applied: bool


def is_quick_start_eligible(buyer: Account, order_points: Decimal) -> bool:
    """
    Quick Start eligibility of a purchase.

    First purchase (no personal points before it), at least one package of
    points, and no latch set yet. Every account type qualifies.

    Args:
        buyer: Buyer account as currently read
        order_points: Points of the order

    Returns:
        True if the order qualifies
    """
    return (
        effective_personal_points(buyer) == 0
        and order_points >= QUICK_START_THRESHOLD
        and not buyer.has_quick_start_latch
    )


class CommissionDistributionEngine(BaseService):
    """
    Confirms orders and distributes commissions up the sponsor chain.

    One engine instance serves one request; the sponsor resolver cache is
    shared between the confirm unit and the payout walk.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize distribution engine.

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
    async def confirm_and_distribute(
        self, order_id: int, admin_id: str
    ) -> DistributionResult:
        """
        Confirm an order and distribute its commissions.

        Args:
            order_id: Order to confirm
            admin_id: Confirming admin (written as confirmedBy / by)

        Returns:
            DistributionResult

        Raises:
            NotFoundError: Order or buyer does not exist
            AlreadyConfirmedError: Order was confirmed before
            InvalidOrderStateError: Order is rejected
            InvalidOrderError: Order has no positive points
            TransactionConflictError: Concurrent modification of order/buyer
        """
        order, buyer = await self._pre_read(order_id)
        points = to_decimal(order.total_points)
        buyer_id, buyer_username = buyer.id, buyer.username
        quantity, product_id = order.quantity, order.product_id

        sponsor = await self.resolver.direct_sponsor(buyer)
        pre_eligible = is_quick_start_eligible(buyer, points)
        await self.commit()

        outcome = await self._confirm_unit(
            order_id, buyer_id, points, sponsor is not None, admin_id
        )
        if pre_eligible != outcome.quick_start_eligible:
            self.logger.warning(
                "Quick Start eligibility changed between pre-read and confirmation",
                extra={
                    "order_id": order_id,
                    "buyer_id": buyer_id,
                    "pre_read": pre_eligible,
                    "confirmed": outcome.quick_start_eligible,
                },
            )

        self.logger.info(
            "Order confirmed",
            extra={
                "order_id": order_id,
                "buyer": buyer_username,
                "points": str(points),
                "commission_path": outcome.commission_path,
                "admin": admin_id,
            },
        )

        result = await self._distribute(
            order_id=order_id,
            buyer=buyer,
            path=outcome.commission_path,
            points=points,
            quantity=quantity,
            product_id=product_id,
            admin_id=admin_id,
        )
        result.quick_start_applied = outcome.quick_start_applied

        await self._write_audit(result, admin_id)
        return result

    @log_operation
    async def resume_distribution(
        self, order_id: int, admin_id: str
    ) -> DistributionResult:
        """
        Credit the levels of a confirmed order that are still missing.

        Re-walks the order's recorded commission path; levels with a payout
        record are skipped. Orders covered by a bulk Quick Start resume the
        primary order of that bulk confirmation.

        Args:
            order_id: Confirmed order
            admin_id: Acting admin

        Returns:
            DistributionResult

        Raises:
            NotFoundError: Order or buyer does not exist
            InvalidOrderStateError: Order is not confirmed or has no recorded path
            AlreadyDistributedError: Order is distributed and no level is missing
        """
        order = await self.order_repo.get_fresh(order_id)
        if order is None:
            raise NotFoundError("Order not found", order_id=order_id)
        if not order.is_confirmed:
            raise InvalidOrderStateError(
                "Only confirmed orders can resume distribution",
                order_id=order_id,
                status=order.status,
            )
        if not order.commission_path:
            raise InvalidOrderStateError(
                "Order has no recorded commission path",
                order_id=order_id,
            )

        buyer = await self.account_repo.get_fresh(order.buyer_id)
        if buyer is None:
            raise NotFoundError("Buyer not found", account_id=order.buyer_id)

        payout_order_id = order_id
        points = to_decimal(order.total_points)
        if order.commission_path == CommissionPath.QUICK_START and buyer.quick_start_order_id:
            payout_order_id = int(buyer.quick_start_order_id)
            points = to_decimal(buyer.quick_start_total_points or points)

        await self.commit()

        result = await self._distribute(
            order_id=payout_order_id,
            buyer=buyer,
            path=order.commission_path,
            points=points,
            quantity=order.quantity,
            product_id=order.product_id,
            admin_id=admin_id,
            resuming=True,
            distributed=order.group_points_distributed,
        )
        result.quick_start_applied = order.commission_path == CommissionPath.QUICK_START

        await self._log_activity(
            "distribution_resumed",
            admin_id,
            buyer.id,
            {
                "orderId": order_id,
                "payoutOrderId": payout_order_id,
                "levelsPaid": len([p for p in result.payouts if not p.already_paid]),
                "failures": len(result.failures),
            },
        )
        return result

    @with_rollback_on_error
    async def reject_order(self, order_id: int, admin_id: str) -> Order:
        """
        Reject a pending order.

        Args:
            order_id: Order ID
            admin_id: Acting admin

        Returns:
            Rejected order

        Raises:
            NotFoundError: Order does not exist
            AlreadyConfirmedError: Order is confirmed
            InvalidOrderStateError: Order is already rejected
        """
        async with conflict_guard("reject_order", order_id=order_id):
            order = await self.order_repo.get_for_update(order_id)
            if order is None:
                raise NotFoundError("Order not found", order_id=order_id)
            if order.is_confirmed:
                raise AlreadyConfirmedError(
                    "Confirmed orders cannot be rejected", order_id=order_id
                )
            if not order.is_pending:
                raise InvalidOrderStateError(
                    "Order is not pending", order_id=order_id, status=order.status
                )

            order.status = OrderStatus.REJECTED
            order.confirmed_by = admin_id
            await self.activity_repo.log(
                "order_rejected",
                admin_id,
                order.buyer_id,
                {"orderId": order_id},
            )
            await self.commit()

        self.logger.info(
            "Order rejected", extra={"order_id": order_id, "admin": admin_id}
        )
        return order

    async def _pre_read(self, order_id: int) -> tuple[Order, Account]:
        """Validate order and buyer before any mutation."""
        order = await self.order_repo.get_fresh(order_id)
        if order is None:
            raise NotFoundError("Order not found", order_id=order_id)
        if order.is_confirmed:
            raise AlreadyConfirmedError("Order already confirmed", order_id=order_id)
        if not order.is_pending:
            raise InvalidOrderStateError(
                "Order is not pending", order_id=order_id, status=order.status
            )
        if to_decimal(order.total_points) <= 0:
            raise InvalidOrderError(
                "Order has no points to credit", order_id=order_id
            )

        buyer = await self.account_repo.get_fresh(order.buyer_id)
        if buyer is None:
            raise NotFoundError("Buyer not found", account_id=order.buyer_id)
        return order, buyer

    def _select_path(
        self, buyer: Account, eligible: bool, has_sponsor: bool
    ) -> str:
        """Choose exactly one payout path."""
        if eligible and has_sponsor:
            return CommissionPath.QUICK_START

        if eligible:
            self.logger.warning(
                "Quick Start eligible but direct sponsor is not resolvable, "
                "falling back to normal distribution",
                extra={"buyer": buyer.username, "sponsor": buyer.sponsor_username},
            )

        if buyer.account_type == AccountType.CLIENT:
            return CommissionPath.CLIENT_PRICE_DIFFERENCE
        if buyer.account_type == AccountType.RESTAURANT:
            return CommissionPath.RESTAURANT
        return CommissionPath.NORMAL

    @with_rollback_on_error
    async def _confirm_unit(
        self,
        order_id: int,
        buyer_id: int,
        points: Decimal,
        has_sponsor: bool,
        admin_id: str,
    ) -> ConfirmOutcome:
        """Atomic confirmation: status, personal points, purchase entry, latch."""
        async with conflict_guard("confirm_order", order_id=order_id, buyer_id=buyer_id):
            # Buyer before order, same lock order as the bulk confirmation
            buyer = await self.account_repo.get_for_update(buyer_id)
            if buyer is None:
                raise NotFoundError("Buyer not found", account_id=buyer_id)

            order = await self.order_repo.get_for_update(order_id)
            if order is None:
                raise NotFoundError("Order not found", order_id=order_id)
            if order.is_confirmed:
                raise AlreadyConfirmedError("Order already confirmed", order_id=order_id)
            if not order.is_pending:
                raise InvalidOrderStateError(
                    "Order is not pending", order_id=order_id, status=order.status
                )

            personal_before = effective_personal_points(buyer)
            eligible = is_quick_start_eligible(buyer, points)
            path = self._select_path(buyer, eligible, has_sponsor)

            if path == CommissionPath.QUICK_START:
                claimed = await self.account_repo.claim_quick_start(
                    buyer_id, [str(order_id)], points
                )
                if not claimed:
                    self.logger.warning(
                        "Quick Start latch already claimed, falling back to non-Quick Start path",
                        extra={"order_id": order_id, "buyer_id": buyer_id},
                    )
                    eligible = False
                    path = self._select_path(buyer, eligible, has_sponsor)

            if not await self.order_repo.confirm_pending(order_id, admin_id, path):
                raise AlreadyConfirmedError(
                    "Order was confirmed concurrently", order_id=order_id
                )

            await self.account_repo.increment_personal_points(buyer_id, points)
            await self.ledger_repo.append(
                account_id=buyer_id,
                entry_type=LedgerEntryType.PURCHASE,
                action=f"Compra confirmada - {order.product_name or 'producto'}",
                points=points,
                amount=order.total_price,
                quantity=order.quantity,
                order_id=order_id,
                by=admin_id,
                meta={"productName": order.product_name, "productId": order.product_id},
            )
            if personal_before + points >= QUICK_START_THRESHOLD:
                await self.account_repo.mark_initial_pack_bought(buyer_id)

            await self.commit()

        return ConfirmOutcome(
            commission_path=path,
            quick_start_eligible=eligible,
            quick_start_applied=path == CommissionPath.QUICK_START,
        )

    async def _distribute(
        self,
        order_id: int,
        buyer: Account,
        path: str,
        points: Decimal,
        quantity: int,
        product_id: int | None,
        admin_id: str,
        resuming: bool = False,
        distributed: bool = False,
    ) -> DistributionResult:
        """
        Run the payout path and mark the order distributed.

        A first distribution skips orders already flagged as distributed. A
        resumed one re-walks the path and credits the levels without a payout
        record.
        """
        result = DistributionResult(
            order_id=order_id,
            buyer_id=buyer.id,
            buyer_username=buyer.username,
            order_points=points,
            commission_path=path,
        )

        if not resuming:
            order = await self.order_repo.get_fresh(order_id)
            if order is not None and order.group_points_distributed:
                await self.commit()
                self.logger.warning(
                    "Group points already distributed for order, skipping payout",
                    extra={"order_id": order_id},
                )
                result.already_distributed = True
                result.distribution_note = order.distribution_note
                return result

        product = None
        if path == CommissionPath.CLIENT_PRICE_DIFFERENCE and product_id is not None:
            product = await self.session.get(Product, product_id)

        plan = await self.payout_processor.build_plan(
            path, buyer, points, quantity=quantity, product=product
        )
        if resuming and distributed:
            paid = {
                p.level for p in await self.payout_processor.payout_repo.find_by_order(order_id)
            }
            if all(planned.level in paid for planned in plan.levels):
                await self.commit()
                raise AlreadyDistributedError(
                    "Every level of the order is already paid",
                    order_id=order_id,
                    levels=sorted(paid),
                )
        await self.commit()

        payouts, failures = await self.payout_processor.execute_plan(
            order_id, plan, from_user=buyer.username, by=admin_id
        )
        result.payouts = payouts
        result.failures = failures
        result.distribution_note = self._note(plan, failures)

        flipped = await self._mark_distributed(order_id, result.distribution_note)
        if not flipped:
            result.already_distributed = True

        self.logger.info(
            "Commission distribution finished",
            extra={
                "order_id": order_id,
                "commission_path": path,
                "levels_paid": len(payouts),
                "failures": len(failures),
                "points": str(result.total_points_distributed),
                "amount": str(result.total_amount_distributed),
            },
        )
        return result

    @staticmethod
    def _note(plan: PayoutPlan, failures: list[PartialDistributionFailure]) -> str:
        if not failures:
            return plan.note
        levels = ", ".join(str(f.level) for f in failures)
        return f"{plan.note} (fallaron niveles: {levels})"

    @with_rollback_on_error
    async def _mark_distributed(self, order_id: int, note: str) -> bool:
        flipped = await self.order_repo.mark_distributed(order_id, note)
        await self.commit()
        return flipped

    async def _write_audit(self, result: DistributionResult, admin_id: str) -> None:
        """Write the confirmation record and partial failure log."""
        try:
            self.session.add(Confirmation(
                order_id=result.order_id,
                buyer_id=result.buyer_id,
                buyer_username=result.buyer_username,
                points=result.order_points,
                commission_path=result.commission_path,
                confirmed_by=admin_id,
            ))
            if result.failures:
                await self.activity_repo.log(
                    "distribution_partial_failure",
                    admin_id,
                    result.buyer_id,
                    {
                        "orderId": result.order_id,
                        "failures": [
                            {
                                "level": f.level,
                                "accountId": f.account_id,
                                "reason": f.reason,
                            }
                            for f in result.failures
                        ],
                    },
                )
            await self.commit()
        except SQLAlchemyError as e:
            # Payouts are committed at this point; audit failures are only logged
            await self.rollback()
            self.logger.error(
                "Failed to write confirmation audit",
                extra={"order_id": result.order_id, "error": str(e)},
                exc_info=True,
            )

    async def _log_activity(
        self,
        action: str,
        actor: str,
        account_id: int | None,
        details: dict[str, Any],
    ) -> None:
        await self.activity_repo.log(action, actor, account_id, details)
        await self.commit()
