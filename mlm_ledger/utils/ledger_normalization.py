"""
Ledger normalization.

Single boundary where legacy history shapes are mapped onto the canonical
entry form: timestamp resolution, type classification and the legacy
point aliases (puntos, puntosGrupales).
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from mlm_ledger.config.business_constants import EARNING_TYPES, LedgerEntryType
from mlm_ledger.utils.datetime_utils import to_epoch_ms


# Numbers below this are treated as epoch seconds rather than milliseconds
_EPOCH_SECONDS_CEILING = 10**11

# Deprecated text markers for legacy purchase rows without a type
_LEGACY_PURCHASE_MARKER = "compra"


@dataclass(frozen=True)
class NormalizedEntry:
    """Canonical view of a ledger entry."""

    type: str | None
    points: Decimal
    amount: Decimal
    timestamp_ms: int | None
    order_id: str | None
    legacy: bool

    @property
    def is_purchase(self) -> bool:
        return self.type == LedgerEntryType.PURCHASE

    @property
    def is_earning(self) -> bool:
        return self.type in EARNING_TYPES


def _field(entry: Any, *names: str) -> Any:
    """Read the first present field from a model instance or a document."""
    for name in names:
        if isinstance(entry, Mapping):
            value = entry.get(name)
        else:
            value = getattr(entry, name, None)
        if value is not None:
            return value
    return None


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a stored number to Decimal, treating garbage as zero.

    Args:
        value: int, float, str, Decimal or None

    Returns:
        Decimal value
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def _coerce_ms(value: Any) -> int | None:
    """Convert one timestamp representation to epoch ms."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return to_epoch_ms(value)

    if isinstance(value, date):
        return to_epoch_ms(datetime(value.year, value.month, value.day))

    if isinstance(value, int | float | Decimal):
        number = int(value)
        if number <= 0:
            return None
        if number < _EPOCH_SECONDS_CEILING:
            return number * 1000
        return number

    if isinstance(value, Mapping):
        # Serialized document timestamps: {"seconds": ..., "nanoseconds": ...}
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        return _coerce_ms(int(seconds) * 1000)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.lstrip("-").isdigit():
            return _coerce_ms(int(text))
        try:
            return to_epoch_ms(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return None

    return None


def resolve_timestamp_ms(entry: Any) -> int | None:
    """
    Resolve the time of an entry as epoch milliseconds.

    Tries timestamp, then originMs, then the date display string.

    Args:
        entry: LedgerEntry or history document

    Returns:
        Epoch ms, or None when no usable time exists
    """
    for name in (("timestamp",), ("origin_ms", "originMs"), ("date",)):
        resolved = _coerce_ms(_field(entry, *name))
        if resolved is not None:
            return resolved
    return None


def classify_entry(entry: Any) -> str | None:
    """
    Canonical type of an entry.

    The stored type wins. Legacy rows without a type are classified as
    purchases when their action or meta.action mentions a purchase; this
    text matching is a deprecated compatibility shim.

    Args:
        entry: LedgerEntry or history document

    Returns:
        Canonical type or None when unknown
    """
    entry_type = _field(entry, "type")
    if entry_type:
        return str(entry_type)

    action = _field(entry, "action")
    order_id = _field(entry, "order_id", "orderId")
    if order_id and isinstance(action, str) and _LEGACY_PURCHASE_MARKER in action.lower():
        return LedgerEntryType.PURCHASE

    meta = _field(entry, "meta")
    if isinstance(meta, Mapping):
        meta_action = meta.get("action")
        if isinstance(meta_action, str) and _LEGACY_PURCHASE_MARKER in meta_action.lower():
            return LedgerEntryType.PURCHASE

    return None


def entry_points(entry: Any) -> Decimal:
    """Points of an entry, falling back to legacy meta.puntos."""
    points = _field(entry, "points")
    if points is None:
        meta = _field(entry, "meta")
        if isinstance(meta, Mapping):
            points = meta.get("puntos", meta.get("points"))
    return to_decimal(points)


def normalize_entry(entry: Any) -> NormalizedEntry:
    """
    Build the canonical view of an entry.

    Args:
        entry: LedgerEntry or history document

    Returns:
        NormalizedEntry
    """
    order_id = _field(entry, "order_id", "orderId")
    return NormalizedEntry(
        type=classify_entry(entry),
        points=entry_points(entry),
        amount=to_decimal(_field(entry, "amount")),
        timestamp_ms=resolve_timestamp_ms(entry),
        order_id=str(order_id) if order_id is not None else None,
        legacy=not _field(entry, "type"),
    )


def effective_personal_points(account: Any) -> Decimal:
    """personalPoints, falling back to the legacy puntos alias when unset or zero."""
    current = to_decimal(_field(account, "personal_points", "personalPoints"))
    if current:
        return current
    return to_decimal(_field(account, "legacy_points", "puntos"))


def effective_group_points(account: Any) -> Decimal:
    """groupPoints, falling back to the legacy puntosGrupales alias."""
    return to_decimal(
        _field(account, "group_points", "groupPoints", "legacy_group_points", "puntosGrupales")
    )
