"""
Datetime utilities.

Provides timezone-aware datetime functions and calendar-month helpers used
by the activation audit, the purge and the coin cap.
"""

from datetime import UTC, datetime, tzinfo


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return to_epoch_ms(utc_now())


def to_epoch_ms(value: datetime) -> int:
    """
    Convert a datetime to epoch milliseconds.

    Naive datetimes are treated as UTC.

    Args:
        value: Datetime to convert

    Returns:
        Epoch milliseconds
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


def month_range_ms(year: int, month: int, tz: tzinfo = UTC) -> tuple[int, int]:
    """
    Half-open [start, end) epoch-ms range of a calendar month.

    Args:
        year: Calendar year
        month: Calendar month, 1..12
        tz: Timezone that defines the month boundaries

    Returns:
        (start_ms, end_ms) where end_ms is the start of the next month

    Raises:
        ValueError: If month is outside 1..12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    start = datetime(year, month, 1, tzinfo=tz)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=tz)
    else:
        end = datetime(year, month + 1, 1, tzinfo=tz)
    return to_epoch_ms(start), to_epoch_ms(end)


def month_key(value: datetime) -> str:
    """Format a datetime as a YYYY-MM month key."""
    return f"{value.year:04d}-{value.month:02d}"


def current_month_key(now: datetime | None = None, tz: tzinfo = UTC) -> str:
    """
    Current month as YYYY-MM.

    Args:
        now: Reference time, defaults to utc_now()
        tz: Timezone that defines the month boundaries

    Returns:
        Month key
    """
    reference = (now or utc_now()).astimezone(tz)
    return month_key(reference)


def previous_month(now: datetime | None = None, tz: tzinfo = UTC) -> tuple[int, int]:
    """
    Year and month of the previous calendar month.

    Args:
        now: Reference time, defaults to utc_now()
        tz: Timezone that defines the month boundaries

    Returns:
        (year, month)
    """
    reference = (now or utc_now()).astimezone(tz)
    if reference.month == 1:
        return reference.year - 1, 12
    return reference.year, reference.month - 1
