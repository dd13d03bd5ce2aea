"""
Tests for ledger normalization of legacy history shapes.

Covers:
- Timestamp resolution order (timestamp, originMs, date)
- Seconds vs milliseconds detection
- Legacy purchase classification
- Legacy point aliases
"""

from datetime import UTC, datetime
from decimal import Decimal

from mlm_ledger.config.business_constants import LedgerEntryType
from mlm_ledger.utils.datetime_utils import to_epoch_ms
from mlm_ledger.utils.ledger_normalization import (
    classify_entry,
    effective_group_points,
    effective_personal_points,
    entry_points,
    normalize_entry,
    resolve_timestamp_ms,
    to_decimal,
)


JAN_15 = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)
JAN_15_MS = to_epoch_ms(JAN_15)


class TestResolveTimestamp:
    """Test timestamp fallbacks."""

    def test_timestamp_ms(self):
        assert resolve_timestamp_ms({"timestamp": JAN_15_MS}) == JAN_15_MS

    def test_timestamp_in_seconds(self):
        assert resolve_timestamp_ms({"timestamp": JAN_15_MS // 1000}) == JAN_15_MS

    def test_origin_ms_fallback(self):
        entry = {"timestamp": None, "originMs": JAN_15_MS}
        assert resolve_timestamp_ms(entry) == JAN_15_MS

    def test_date_string_fallback(self):
        entry = {"date": "2025-01-15T10:00:00Z"}
        assert resolve_timestamp_ms(entry) == JAN_15_MS

    def test_document_timestamp(self):
        entry = {"timestamp": {"seconds": JAN_15_MS // 1000, "nanoseconds": 0}}
        assert resolve_timestamp_ms(entry) == JAN_15_MS

    def test_datetime_value(self):
        assert resolve_timestamp_ms({"timestamp": JAN_15}) == JAN_15_MS

    def test_timestamp_wins_over_date(self):
        entry = {"timestamp": JAN_15_MS, "date": "2024-06-01T00:00:00Z"}
        assert resolve_timestamp_ms(entry) == JAN_15_MS

    def test_unusable_values(self):
        assert resolve_timestamp_ms({}) is None
        assert resolve_timestamp_ms({"date": "15 de enero"}) is None
        assert resolve_timestamp_ms({"timestamp": 0}) is None


class TestClassifyEntry:
    """Test canonical type classification."""

    def test_stored_type_wins(self):
        entry = {"type": LedgerEntryType.EARNING, "action": "Compra"}
        assert classify_entry(entry) == LedgerEntryType.EARNING

    def test_legacy_purchase_by_action(self):
        entry = {"action": "Compra de Pack Inicial", "orderId": "12"}
        assert classify_entry(entry) == LedgerEntryType.PURCHASE

    def test_legacy_action_requires_order(self):
        assert classify_entry({"action": "Compra de Pack Inicial"}) is None

    def test_legacy_purchase_by_meta_action(self):
        entry = {"meta": {"action": "COMPRA confirmada"}}
        assert classify_entry(entry) == LedgerEntryType.PURCHASE

    def test_unknown(self):
        assert classify_entry({"action": "Ajuste manual"}) is None


class TestEntryValues:
    """Test point and amount extraction."""

    def test_points_fallback_to_meta(self):
        assert entry_points({"meta": {"puntos": 7}}) == Decimal("7")

    def test_points_column_wins(self):
        assert entry_points({"points": 3, "meta": {"puntos": 7}}) == Decimal("3")

    def test_to_decimal_garbage(self):
        assert to_decimal("abc") == Decimal("0")
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(True) == Decimal("0")
        assert to_decimal(2.5) == Decimal("2.5")

    def test_normalize_legacy_flag(self):
        legacy = normalize_entry({"action": "compra", "orderId": 9, "points": 50})
        typed = normalize_entry({"type": LedgerEntryType.PURCHASE, "points": 50})

        assert legacy.legacy is True
        assert legacy.is_purchase
        assert legacy.order_id == "9"
        assert typed.legacy is False

    def test_earning_classification(self):
        entry = normalize_entry({"type": LedgerEntryType.QUICK_START_BONUS, "points": 21})
        assert entry.is_earning
        assert not entry.is_purchase


class TestAccountAliases:
    """Test legacy account point aliases."""

    def test_personal_points_preferred(self):
        assert effective_personal_points({"personalPoints": 60, "puntos": 10}) == Decimal("60")

    def test_personal_points_legacy(self):
        assert effective_personal_points({"personalPoints": None, "puntos": 30}) == Decimal("30")

    def test_zero_personal_points_fall_back_to_legacy(self):
        assert effective_personal_points({"personalPoints": 0, "puntos": 30}) == Decimal("30")
        assert effective_personal_points({"personalPoints": 0}) == Decimal("0")

    def test_group_points_legacy(self):
        assert effective_group_points({"puntosGrupales": 4}) == Decimal("4")

    def test_missing_everything(self):
        assert effective_group_points({}) == Decimal("0")
