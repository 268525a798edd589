# fieldsched/timezone_utils.py
#
# Timezone utilities for consistent datetime handling

from datetime import date, datetime, time
from typing import Optional

import pytz

from config.settings import APP_TIMEZONE

# Default timezone (Saskatoon, SK stays on UTC-6 all year)
# America/Regina has no daylight saving shifts
DEFAULT_TIMEZONE = APP_TIMEZONE
_tz = pytz.timezone(DEFAULT_TIMEZONE)


def make_aware(dt: datetime, tz: Optional[str] = None) -> datetime:
    """
    Make a naive datetime timezone-aware.

    Args:
        dt: Naive datetime
        tz: Timezone name (default: DEFAULT_TIMEZONE)

    Returns:
        Timezone-aware datetime
    """
    if dt.tzinfo is not None:
        return dt

    tz_obj = pytz.timezone(tz) if tz else _tz
    return tz_obj.localize(dt)


def localize(day: date, clock: time) -> datetime:
    """
    Combine a calendar date and a wall-clock time into an absolute instant
    in the business timezone.
    """
    return _tz.localize(datetime.combine(day, clock))


def parse_iso_with_tz(iso_string: str) -> datetime:
    """
    Parse ISO format string and ensure timezone awareness.
    If no timezone info, assumes the business timezone.
    """
    dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
    return make_aware(dt)
