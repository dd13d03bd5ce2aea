"""
Repositories.

Data access layer over the SQLAlchemy models.
"""

from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.repositories.activity_log_repository import ActivityLogRepository
from mlm_ledger.repositories.base import BaseRepository
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.repositories.order_repository import OrderRepository
from mlm_ledger.repositories.payout_repository import PayoutRepository
from mlm_ledger.repositories.purge_repository import PurgeRepository

__all__ = [
    "AccountRepository",
    "ActivityLogRepository",
    "BaseRepository",
    "LedgerRepository",
    "OrderRepository",
    "PayoutRepository",
    "PurgeRepository",
]
