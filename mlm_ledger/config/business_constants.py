"""
Business logic constants for the commission ledger.

Central location for the commission contract. These values are shared by
the distribution engine, the activation auditor, the purge and the coin cap,
so they live in code rather than in environment configuration.
"""

from decimal import ROUND_HALF_UP, Decimal


# Currency value of one point
POINT_VALUE = 2800

# Quick Start
QUICK_START_THRESHOLD = 50  # points per package, also the first-order minimum
QUICK_START_DIRECT_POINTS = 21  # per package, paid to the direct sponsor
QUICK_START_UPPER_LEVEL_POINTS = 1  # per package, levels 2..5
MAX_LEVELS_QUICK_START_UPPER = 4

# Normal path
MAX_LEVELS_NORMAL = 5
STANDARD_LEVEL_POINTS = Decimal("1")
RESTAURANT_COMMISSION_RATE = Decimal("0.05")

# Monthly activation
MONTHLY_ACTIVATION_POINTS_THRESHOLD = 10

# Monthly coin cap shared by all games
MONTHLY_COINS_LIMIT = 20000

# Recalculation tolerance between balance and groupPoints * POINT_VALUE
BALANCE_DISCREPANCY_TOLERANCE = 100

# Withdrawals
MIN_WITHDRAW_AMOUNT = 20000
WITHDRAW_MIN_PERSONAL_POINTS = 50  # root accounts (no sponsor) are exempt

# Points carry at most two decimals
POINTS_QUANTUM = Decimal("0.01")


class LedgerEntryType:
    """Canonical ledger entry types."""
    PURCHASE = "purchase"
    GROUP_POINTS = "group_points"
    QUICK_START_BONUS = "quick_start_bonus"
    QUICK_START_UPPER_LEVEL = "quick_start_upper_level"
    EARNING = "earning"
    WITHDRAW = "withdraw"
    COMMISSION_PURGE = "commission_purge"
    RESTAURANT_COMMISSION = "restaurant_commission"
    CLIENT_PRICE_DIFFERENCE = "client_price_difference"
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_FAILED = "payment_failed"


# Entry types that count as commission earnings (purge and recalculation)
EARNING_TYPES = frozenset({
    LedgerEntryType.EARNING,
    LedgerEntryType.GROUP_POINTS,
    LedgerEntryType.QUICK_START_BONUS,
    LedgerEntryType.QUICK_START_UPPER_LEVEL,
    LedgerEntryType.RESTAURANT_COMMISSION,
    LedgerEntryType.CLIENT_PRICE_DIFFERENCE,
})


class AccountType:
    """Account registration types (persisted as tipoRegistro)."""
    DISTRIBUTOR = "distribuidor"
    RESTAURANT = "restaurante"
    CLIENT = "cliente"


class OrderStatus:
    """Order lifecycle statuses."""
    PENDING = "pending"
    PENDING_DELIVERY = "pending_delivery"
    PENDING_MP = "pending_mp"
    PENDING_CASH = "pending_cash"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


PENDING_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.PENDING_DELIVERY,
    OrderStatus.PENDING_MP,
    OrderStatus.PENDING_CASH,
)


class CommissionPath:
    """Payout path chosen for a confirmed order."""
    QUICK_START = "quick_start"
    NORMAL = "normal"
    RESTAURANT = "restaurant"
    CLIENT_PRICE_DIFFERENCE = "client_price_difference"


class AccountRole:
    """Account roles."""
    ADMIN = "admin"
    USER = "user"


def is_pending_status(status: str | None) -> bool:
    """Check whether an order status counts as pending."""
    return status in PENDING_STATUSES


def quantize_points(points: Decimal | int | float) -> Decimal:
    """
    Round points to two decimals (half-up).

    Args:
        points: Raw points value

    Returns:
        Points with at most two decimals
    """
    return Decimal(str(points)).quantize(POINTS_QUANTUM, rounding=ROUND_HALF_UP)


def points_to_currency(points: Decimal | int | float) -> Decimal:
    """
    Convert points to currency, rounded half-up to whole units.

    Args:
        points: Points amount (may be fractional)

    Returns:
        Currency amount as an integral Decimal
    """
    value = Decimal(str(points)) * POINT_VALUE
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def quick_start_packages(order_points: Decimal | int | float) -> int:
    """
    Number of whole Quick Start packages in an order.

    Args:
        order_points: Points of the (combined) order

    Returns:
        floor(points / QUICK_START_THRESHOLD)
    """
    return int(Decimal(str(order_points)) // QUICK_START_THRESHOLD)


def restaurant_level_points(order_points: Decimal | int | float) -> Decimal:
    """
    Points credited per level for a restaurant purchase.

    Args:
        order_points: Points of the order

    Returns:
        order_points * RESTAURANT_COMMISSION_RATE rounded to two decimals
    """
    return quantize_points(Decimal(str(order_points)) * RESTAURANT_COMMISSION_RATE)
