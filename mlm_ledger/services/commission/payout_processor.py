"""
Commission payout processor.

Builds the per-level payout plan of a commission path and credits it one
level at a time. Each level is its own unit of work: the payout record,
the balance/groupPoints increment and the ledger entry commit together,
so a retried or resumed walk never pays a level twice.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import (
    MAX_LEVELS_NORMAL,
    MAX_LEVELS_QUICK_START_UPPER,
    POINT_VALUE,
    RESTAURANT_COMMISSION_RATE,
    QUICK_START_DIRECT_POINTS,
    QUICK_START_UPPER_LEVEL_POINTS,
    STANDARD_LEVEL_POINTS,
    AccountType,
    CommissionPath,
    LedgerEntryType,
    points_to_currency,
    quantize_points,
    quick_start_packages,
    restaurant_level_points,
)
from mlm_ledger.models.account import Account
from mlm_ledger.models.commission_payout import CommissionPayout
from mlm_ledger.models.product import Product
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.repositories.payout_repository import PayoutRepository
from mlm_ledger.services.base_service import BaseService
from mlm_ledger.services.commission.sponsor_resolver import SponsorResolver
from mlm_ledger.utils.db_decorators import conflict_guard
from mlm_ledger.utils.exceptions import PartialDistributionFailure


@dataclass
class PlannedPayout:
    """One level of a payout plan."""

    level: int
    account_id: int
    username: str
    entry_type: str
    points: Decimal
    amount: Decimal
    action: str


@dataclass
class LevelPayout:
    """Outcome of crediting one level."""

    level: int
    account_id: int
    username: str
    entry_type: str
    points: Decimal
    amount: Decimal
    already_paid: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "accountId": self.account_id,
            "usuario": self.username,
            "type": self.entry_type,
            "points": float(self.points),
            "amount": float(self.amount),
            "alreadyPaid": self.already_paid,
        }


@dataclass
class PayoutPlan:
    """Payout plan of an order plus the note stored on the order."""

    path: str
    levels: list[PlannedPayout]
    note: str


class PayoutProcessor(BaseService):
    """Plans and credits sponsor-chain payouts."""

    def __init__(
        self, session: AsyncSession, resolver: SponsorResolver | None = None
    ) -> None:
        """
        Initialize payout processor.

        Args:
            session: Database session
            resolver: Shared per-request sponsor resolver
        """
        super().__init__(session)
        self.resolver = resolver or SponsorResolver(session)
        self.account_repo = AccountRepository(session)
        self.ledger_repo = LedgerRepository(session)
        self.payout_repo = PayoutRepository(session)

    async def build_plan(
        self,
        path: str,
        buyer: Account,
        order_points: Decimal,
        quantity: int = 1,
        product: Product | None = None,
    ) -> PayoutPlan:
        """
        Build the payout plan for a commission path.

        Args:
            path: CommissionPath value
            buyer: Buyer account
            order_points: Points of the order (combined points for bulk)
            quantity: Purchased quantity (client price difference)
            product: Purchased product (client price difference)

        Returns:
            PayoutPlan
        """
        if path == CommissionPath.QUICK_START:
            return await self._plan_quick_start(buyer, order_points)
        if path == CommissionPath.CLIENT_PRICE_DIFFERENCE:
            return await self._plan_client_price_difference(buyer, quantity, product)
        if path == CommissionPath.RESTAURANT:
            return await self._plan_restaurant(buyer, order_points)
        return await self._plan_normal(buyer)

    async def _plan_quick_start(
        self, buyer: Account, order_points: Decimal
    ) -> PayoutPlan:
        packages = quick_start_packages(order_points)
        direct_points = Decimal(packages * QUICK_START_DIRECT_POINTS)
        upper_points = Decimal(packages * QUICK_START_UPPER_LEVEL_POINTS)

        chain = await self.resolver.get_chain(
            buyer, max_levels=1 + MAX_LEVELS_QUICK_START_UPPER
        )
        levels: list[PlannedPayout] = []
        for level, sponsor in enumerate(chain, start=1):
            if level == 1:
                entry_type = LedgerEntryType.QUICK_START_BONUS
                points = direct_points
                action = (
                    f"Quick Start Bonus - {packages} paquete(s) de {buyer.username}"
                )
            else:
                entry_type = LedgerEntryType.QUICK_START_UPPER_LEVEL
                points = upper_points
                action = (
                    f"Quick Start nivel {level} - {packages} paquete(s) de {buyer.username}"
                )
            levels.append(PlannedPayout(
                level=level,
                account_id=sponsor.id,
                username=sponsor.username,
                entry_type=entry_type,
                points=points,
                amount=points_to_currency(points),
                action=action,
            ))

        note = f"Quick Start - {packages} paquete(s), {len(levels)} niveles"
        return PayoutPlan(CommissionPath.QUICK_START, levels, note)

    async def _plan_normal(self, buyer: Account) -> PayoutPlan:
        chain = await self.resolver.get_chain(buyer, max_levels=MAX_LEVELS_NORMAL)
        levels = [
            PlannedPayout(
                level=level,
                account_id=sponsor.id,
                username=sponsor.username,
                entry_type=LedgerEntryType.GROUP_POINTS,
                points=STANDARD_LEVEL_POINTS,
                amount=points_to_currency(STANDARD_LEVEL_POINTS),
                action=f"Puntos grupales por compra de {buyer.username} - Nivel {level}",
            )
            for level, sponsor in enumerate(chain, start=1)
        ]
        note = f"Distribución normal - {len(levels)} niveles"
        return PayoutPlan(CommissionPath.NORMAL, levels, note)

    async def _plan_restaurant(
        self, buyer: Account, order_points: Decimal
    ) -> PayoutPlan:
        points = restaurant_level_points(order_points)
        amount = points_to_currency(order_points * RESTAURANT_COMMISSION_RATE)
        chain = await self.resolver.get_chain(buyer, max_levels=MAX_LEVELS_NORMAL)
        levels = [
            PlannedPayout(
                level=level,
                account_id=sponsor.id,
                username=sponsor.username,
                entry_type=LedgerEntryType.RESTAURANT_COMMISSION,
                points=points,
                amount=amount,
                action=(
                    f"Comisión por compra de restaurante (5% = {points} pts) - "
                    f"{buyer.username} - Nivel {level}"
                ),
            )
            for level, sponsor in enumerate(chain, start=1)
        ]
        note = f"Restaurante - {len(levels)} uplines, {points} pts c/u"
        return PayoutPlan(CommissionPath.RESTAURANT, levels, note)

    async def _plan_client_price_difference(
        self, buyer: Account, quantity: int, product: Product | None
    ) -> PayoutPlan:
        path = CommissionPath.CLIENT_PRICE_DIFFERENCE
        if product is None:
            return PayoutPlan(path, [], "Cliente - producto no encontrado")

        difference = product.price_difference * quantity
        if difference <= 0:
            return PayoutPlan(path, [], "Cliente - sin diferencia de precio")

        sponsor = await self.resolver.direct_sponsor(buyer)
        if sponsor is None:
            return PayoutPlan(path, [], "Cliente sin patrocinador")
        if sponsor.account_type != AccountType.DISTRIBUTOR:
            return PayoutPlan(path, [], "Patrocinador no es distribuidor")

        points = quantize_points(difference / POINT_VALUE)
        level = PlannedPayout(
            level=1,
            account_id=sponsor.id,
            username=sponsor.username,
            entry_type=LedgerEntryType.CLIENT_PRICE_DIFFERENCE,
            points=points,
            amount=difference.quantize(Decimal("1"), rounding=ROUND_HALF_UP),
            action=(
                f"Comisión por diferencia de precio - compra de {buyer.username} "
                f"({quantity}x {product.name})"
            ),
        )
        return PayoutPlan(path, [level], f"Cliente - comisión pagada: {level.amount}")

    async def execute_plan(
        self,
        order_id: int,
        plan: PayoutPlan,
        from_user: str,
        by: str,
        meta: dict[str, Any] | None = None,
    ) -> tuple[list[LevelPayout], list[PartialDistributionFailure]]:
        """
        Credit every level of a plan.

        A failing level is recorded and the walk continues with the next one.

        Args:
            order_id: Order the payouts belong to
            plan: Payout plan
            from_user: Buyer username written to ledger entries
            by: Actor
            meta: Extra ledger entry details

        Returns:
            (credited levels, failures)
        """
        payouts: list[LevelPayout] = []
        failures: list[PartialDistributionFailure] = []

        for planned in plan.levels:
            try:
                payouts.append(
                    await self.credit_level(order_id, planned, from_user, by, meta)
                )
            except PartialDistributionFailure as failure:
                failures.append(failure)

        return payouts, failures

    async def credit_level(
        self,
        order_id: int,
        planned: PlannedPayout,
        from_user: str,
        by: str,
        meta: dict[str, Any] | None = None,
    ) -> LevelPayout:
        """
        Credit one level in its own transaction.

        Args:
            order_id: Order ID
            planned: Planned level
            from_user: Buyer username
            by: Actor
            meta: Extra ledger entry details

        Returns:
            LevelPayout (already_paid=True when the level was credited before)

        Raises:
            PartialDistributionFailure: If the level could not be credited
        """
        result = LevelPayout(
            level=planned.level,
            account_id=planned.account_id,
            username=planned.username,
            entry_type=planned.entry_type,
            points=planned.points,
            amount=planned.amount,
        )

        try:
            if await self.payout_repo.is_level_paid(order_id, planned.level):
                await self.commit()
                result.already_paid = True
                self.logger.info(
                    "Level already credited, skipping",
                    extra={"order_id": order_id, "level": planned.level},
                )
                return result

            async with conflict_guard(
                "credit_level", order_id=order_id, level=planned.level
            ):
                self.session.add(CommissionPayout(
                    order_id=order_id,
                    level=planned.level,
                    account_id=planned.account_id,
                    entry_type=planned.entry_type,
                    points=planned.points,
                    amount=planned.amount,
                ))
                await self.session.flush()

                await self.account_repo.increment_commission(
                    planned.account_id, planned.points, planned.amount
                )
                await self.ledger_repo.append(
                    account_id=planned.account_id,
                    entry_type=planned.entry_type,
                    action=planned.action,
                    points=planned.points,
                    amount=planned.amount,
                    order_id=order_id,
                    from_user=from_user,
                    by=by,
                    meta={"level": planned.level, **(meta or {})},
                )
                await self.commit()
        except Exception as e:
            await self.rollback()
            failure = PartialDistributionFailure(
                order_id=order_id,
                level=planned.level,
                account_id=planned.account_id,
                reason=f"{type(e).__name__}: {e}",
            )
            self.logger.error(
                "Commission level payout failed",
                extra={
                    "order_id": order_id,
                    "level": planned.level,
                    "account_id": planned.account_id,
                    "usuario": planned.username,
                    "points": str(planned.points),
                    "amount": str(planned.amount),
                    "error": str(e),
                },
            )
            raise failure from e

        self.logger.info(
            "Commission level credited",
            extra={
                "order_id": order_id,
                "level": planned.level,
                "account_id": planned.account_id,
                "type": planned.entry_type,
                "points": str(planned.points),
                "amount": str(planned.amount),
            },
        )
        return result
