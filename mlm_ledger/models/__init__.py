"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from mlm_ledger.models.account import Account
from mlm_ledger.models.activity_log import ActivityLog
from mlm_ledger.models.base import Base
from mlm_ledger.models.commission_payout import CommissionPayout
from mlm_ledger.models.confirmation import Confirmation
from mlm_ledger.models.game_income_log import GameIncomeLog
from mlm_ledger.models.ledger_entry import LedgerEntry
from mlm_ledger.models.order import Order
from mlm_ledger.models.product import Product
from mlm_ledger.models.purge_report import (
    CommissionPurgeReport,
    MonthlyPurgeMarker,
)

__all__ = [
    "Account",
    "ActivityLog",
    "Base",
    "CommissionPayout",
    "CommissionPurgeReport",
    "Confirmation",
    "GameIncomeLog",
    "LedgerEntry",
    "MonthlyPurgeMarker",
    "Order",
    "Product",
]
