"""Timezone resolution and time-of-day helpers."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def resolve_timezone(tz_name: str) -> tzinfo:
    """Resolve an IANA timezone name reported by the metering provider.

    Unknown or empty names fall back to UTC with a warning rather than
    failing the cycle for that system.
    """
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to UTC", tz_name)
    return timezone.utc


def parse_time_of_day(value: str) -> timedelta:
    """Parse "HH:MM" into an offset from midnight."""
    parsed = time.fromisoformat(value)
    return timedelta(hours=parsed.hour, minutes=parsed.minute)


def offset_into_day(dt: datetime) -> timedelta:
    """Time elapsed since local midnight for an aware or naive datetime."""
    return timedelta(
        hours=dt.hour,
        minutes=dt.minute,
        seconds=dt.second,
        microseconds=dt.microsecond,
    )
