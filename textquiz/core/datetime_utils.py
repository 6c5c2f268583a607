"""Centralized datetime utilities for consistent timezone handling.

All persisted timestamps are naive UTC (SQLAlchemy models use naive UTC
columns). Per-user delivery preferences are a wall-clock "HH:MM" plus an IANA
zone name; `local_time_to_utc` is the single place those become instants.

Usage:
    from textquiz.core.datetime_utils import local_time_to_utc, utc_now

    scheduled_for = local_time_to_utc(date(2026, 7, 15), "21:00", "America/Los_Angeles")
    # -> datetime(2026, 7, 16, 4, 0)
"""

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from textquiz.core.errors import InvalidDeliveryTime, InvalidTimezone


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Returns naive datetime for database compatibility.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def get_cutoff(now: datetime | None = None, hours: float = 0, minutes: float = 0) -> datetime:
    """Get a naive UTC cutoff datetime `hours`/`minutes` before `now`."""
    return (now or utc_now()) - timedelta(hours=hours, minutes=minutes)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


# =============================================================================
# Per-user timezone utilities
# =============================================================================


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name.

    Raises:
        InvalidTimezone: If the name is not in the timezone database
    """
    if not tz_name:
        raise InvalidTimezone(tz_name)
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezone(tz_name) from e


def is_valid_timezone(tz_name: str) -> bool:
    """Check if a timezone name is valid IANA identifier."""
    try:
        get_zone(tz_name)
        return True
    except InvalidTimezone:
        return False


def parse_delivery_time(delivery_time_local: str) -> time:
    """Parse a delivery time string (HH:MM) into a time object.

    Args:
        delivery_time_local: Time in "HH:MM" format (e.g., "08:00", "8:05")

    Raises:
        InvalidDeliveryTime: If the string is not a valid 24h wall-clock time
    """
    try:
        hour_str, minute_str = delivery_time_local.strip().split(":")
        return time(hour=int(hour_str), minute=int(minute_str))
    except (AttributeError, ValueError) as e:
        raise InvalidDeliveryTime(str(delivery_time_local)) from e


def normalize_delivery_time(delivery_time_local: str) -> str:
    """Return the canonical zero-padded "HH:MM" form of a delivery time."""
    parsed = parse_delivery_time(delivery_time_local)
    return f"{parsed.hour:02d}:{parsed.minute:02d}"


def local_time_to_utc(on_date: date, delivery_time_local: str, timezone: str) -> datetime:
    """Convert a local wall-clock time on a calendar date to a naive UTC instant.

    DST transitions resolve with fold=0: an ambiguous time (fall back) maps
    to its first occurrence, and a skipped time (spring forward) is
    interpreted with the pre-transition offset, so 02:30 on a US
    spring-forward day becomes 03:30 local daylight time.

    Args:
        on_date: The user's local calendar date
        delivery_time_local: Wall-clock time in "HH:MM" format
        timezone: IANA timezone name

    Returns:
        Naive UTC datetime

    Raises:
        InvalidDeliveryTime: Malformed time string
        InvalidTimezone: Unknown timezone name
    """
    wall_clock = parse_delivery_time(delivery_time_local)
    zone = get_zone(timezone)
    local_dt = datetime.combine(on_date, wall_clock, tzinfo=zone).replace(fold=0)
    return to_naive_utc(local_dt)
