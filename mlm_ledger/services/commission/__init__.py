"""
Commission distribution.

Sponsor resolution, per-level payouts, order confirmation and bulk
Quick Start confirmation.
"""

from mlm_ledger.services.commission.bulk_confirmation import (
    BulkConfirmationResult,
    BulkQuickStartConfirmation,
)
from mlm_ledger.services.commission.distribution_engine import (
    CommissionDistributionEngine,
    DistributionResult,
    is_quick_start_eligible,
)
from mlm_ledger.services.commission.payout_processor import (
    LevelPayout,
    PayoutPlan,
    PayoutProcessor,
    PlannedPayout,
)
from mlm_ledger.services.commission.sponsor_resolver import SponsorResolver

__all__ = [
    "BulkConfirmationResult",
    "BulkQuickStartConfirmation",
    "CommissionDistributionEngine",
    "DistributionResult",
    "LevelPayout",
    "PayoutPlan",
    "PayoutProcessor",
    "PlannedPayout",
    "SponsorResolver",
    "is_quick_start_eligible",
]
