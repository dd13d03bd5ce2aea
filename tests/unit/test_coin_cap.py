"""
Tests for the monthly coin cap.

Covers:
- Decaying multiplier tiers
- Client-side limit application
- Server-side approval clamping
- Tracker month rollover
"""

from datetime import UTC, datetime

from mlm_ledger.config.business_constants import MONTHLY_COINS_LIMIT
from mlm_ledger.services.coin_cap_service import (
    MonthlyCoinTracker,
    apply_monthly_limit,
    approve_coins,
    get_multiplier,
)


class TestMultiplier:
    """Test multiplier tiers by progress."""

    def test_full_rate_below_twenty_percent(self):
        assert get_multiplier(0) == 1.0
        assert get_multiplier(3999) == 1.0

    def test_tier_boundaries(self):
        assert get_multiplier(4000) == 0.75
        assert get_multiplier(8000) == 0.5
        assert get_multiplier(12000) == 0.3
        assert get_multiplier(16000) == 0.15

    def test_zero_at_limit(self):
        assert get_multiplier(MONTHLY_COINS_LIMIT) == 0.0
        assert get_multiplier(MONTHLY_COINS_LIMIT + 500) == 0.0

    def test_zero_limit(self):
        assert get_multiplier(0, limit=0) == 0.0


class TestApplyMonthlyLimit:
    """Test coins awarded for a raw game result."""

    def test_full_rate(self):
        assert apply_monthly_limit(1000, 0) == 1000

    def test_decayed_rate_is_floored(self):
        # 333 * 0.75 = 249.75 -> 249
        assert apply_monthly_limit(333, 4000) == 249

    def test_clamped_to_remaining(self):
        # 1000 * 0.15 = 150, only 100 remaining
        assert apply_monthly_limit(1000, 19900) == 100

    def test_nothing_after_limit(self):
        assert apply_monthly_limit(1000, 20000) == 0

    def test_negative_raw_coins(self):
        assert apply_monthly_limit(-50, 0) == 0


class TestApproveCoins:
    """Test server-side clamping."""

    def test_within_allowance(self):
        assert approve_coins(500, 1000) == 500

    def test_partial_approval(self):
        assert approve_coins(500, 19800) == 200

    def test_blocked(self):
        assert approve_coins(500, 20000) == 0


class TestMonthlyCoinTracker:
    """Test tracker loading and accrual."""

    NOW = datetime(2025, 3, 15, 12, 0, tzinfo=UTC)

    def test_load_empty(self):
        tracker = MonthlyCoinTracker.load(None, now=self.NOW)

        assert tracker.month == "2025-03"
        assert tracker.total_coins_earned == 0
        assert tracker.remaining == MONTHLY_COINS_LIMIT

    def test_stale_month_resets(self):
        raw = {"month": "2025-02", "totalCoinsEarned": 19000, "limit": 20000}

        tracker = MonthlyCoinTracker.load(raw, now=self.NOW)

        assert tracker.month == "2025-03"
        assert tracker.total_coins_earned == 0
        assert not tracker.blocked

    def test_current_month_is_kept(self):
        raw = {"month": "2025-03", "totalCoinsEarned": 12000, "limit": 20000}

        tracker = MonthlyCoinTracker.load(raw, now=self.NOW)

        assert tracker.total_coins_earned == 12000
        assert tracker.multiplier == 0.3

    def test_add_clamps_and_blocks(self):
        tracker = MonthlyCoinTracker(month="2025-03", total_coins_earned=19500)

        added = tracker.add_monthly_coins(1000)

        assert added == 500
        assert tracker.total_coins_earned == MONTHLY_COINS_LIMIT
        assert tracker.blocked
        assert tracker.add_monthly_coins(10) == 0

    def test_status_shape(self):
        tracker = MonthlyCoinTracker(month="2025-03", total_coins_earned=5000)

        status = tracker.status()

        assert status == {
            "month": "2025-03",
            "earned": 5000,
            "limit": MONTHLY_COINS_LIMIT,
            "remaining": 15000,
            "blocked": False,
            "multiplier": 0.75,
        }

    def test_document_round_trip_fields(self):
        tracker = MonthlyCoinTracker(month="2025-03")
        tracker.add_monthly_coins(100)

        document = tracker.to_document()

        assert document["month"] == "2025-03"
        assert document["totalCoinsEarned"] == 100
        assert document["limit"] == MONTHLY_COINS_LIMIT
        assert document["lastUpdated"] is not None
