# time_window.py
#
# Pure helpers for turning a job's (date, time-of-day, duration) into an
# absolute interval and comparing intervals.
# - All intervals are half-open: [start, end)
# - Times of day travel as "HH:MM" strings, the way the store keeps them

import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from config.settings import DEFAULT_DURATION_HOURS, DEFAULT_JOB_TIME
from fieldsched.errors import ValidationError
from fieldsched.timezone_utils import localize

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$")


def parse_time_of_day(text) -> Optional[int]:
    """
    Parse "HH:MM" into minutes since midnight.
    Returns None for missing or malformed input, never raises.
    """
    if not text or not isinstance(text, str):
        return None
    match = _TIME_RE.match(text)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour * 60 + minute


def format_time_of_day(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def resolve_time_of_day(time_of_day: Optional[str], fallback_time: Optional[str] = None) -> str:
    """
    Pick the time a window starts at: the requested time, else the job's
    stored time, else DEFAULT_JOB_TIME (09:00). Result is normalised "HH:MM".
    """
    for candidate in (time_of_day, fallback_time, DEFAULT_JOB_TIME):
        minutes = parse_time_of_day(candidate)
        if minutes is not None:
            return format_time_of_day(minutes)
    raise ValidationError(f"Cannot resolve a time of day from {time_of_day!r}")


def compute_window(day: Optional[date], time_of_day: Optional[str],
                   duration_hours: Optional[float] = None,
                   fallback_time: Optional[str] = None) -> Tuple[datetime, datetime]:
    """
    Build the absolute [start, end) window for a job.
    Args:
        day (date): calendar date of the visit
        time_of_day (str): "HH:MM" start, may be None
        duration_hours (float): job length, None falls back to DEFAULT_DURATION_HOURS
        fallback_time (str): the job's previously stored time, used when time_of_day is missing
    Returns:
        (start, end) timezone-aware datetimes in the business timezone
    """
    if day is None:
        raise ValidationError("A target date is required to compute a schedule window")

    minutes = parse_time_of_day(resolve_time_of_day(time_of_day, fallback_time))
    if duration_hours is None:
        duration_hours = DEFAULT_DURATION_HOURS

    start = localize(day, time(minutes // 60, minutes % 60))
    return start, start + timedelta(hours=duration_hours)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """
    Half-open overlap test. Touching boundaries (one window ending exactly
    when the other begins) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def snap_to_hour(time_of_day: str) -> str:
    """Truncate "HH:MM" to the top of its hour ("10:45" -> "10:00")."""
    minutes = parse_time_of_day(time_of_day)
    if minutes is None:
        raise ValidationError(f"Invalid time of day: {time_of_day!r}")
    return format_time_of_day(minutes - minutes % 60)
