"""
Standardized UTC Calendar Helpers

All progression dates are UTC calendar days:
1. Streak history and challenge weeks are keyed by YYYY-MM-DD date keys
2. Weeks run Monday 00:00:00 UTC through Sunday 23:59:59 UTC
3. Timestamps (unlock times, last_updated) are timezone-aware UTC datetimes

CRITICAL RULES:
- Never compare naive and aware datetimes
- Date keys cross component boundaries, never change their YYYY-MM-DD shape
"""

import logging
import math
from datetime import datetime, date, time, timedelta
from typing import Tuple, Union
from zoneinfo import ZoneInfo

from pet_progression.exceptions import ValidationError

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")
DATE_KEY_FORMAT = "%Y-%m-%d"


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def today_utc() -> date:
    """Get today's UTC calendar date"""
    return now_utc().date()


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        logger.debug(f"Received naive datetime, assuming UTC: {dt}")
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_date_key(value: Union[date, datetime]) -> str:
    """
    Format a date (or the UTC calendar day of a datetime) as YYYY-MM-DD
    """
    if isinstance(value, datetime):
        value = ensure_utc(value).date()
    return value.strftime(DATE_KEY_FORMAT)


def parse_date_key(date_key: str) -> date:
    """
    Parse a YYYY-MM-DD date key

    Raises:
        ValidationError: If date_key is not in YYYY-MM-DD form
    """
    try:
        return datetime.strptime(date_key, DATE_KEY_FORMAT).date()
    except (TypeError, ValueError) as e:
        raise ValidationError(
            message=f"Invalid date key '{date_key}'. Expected YYYY-MM-DD",
            field="date",
            value=date_key,
            cause=e
        ) from e


def coerce_date(value: Union[str, date, datetime]) -> date:
    """Accept a date key, date, or datetime and return the UTC calendar date"""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    return parse_date_key(value)


def days_between(earlier: date, later: date) -> int:
    """Signed number of calendar days from earlier to later"""
    return (later - earlier).days


def is_consecutive_day(previous: date, current: date) -> bool:
    """True when current is exactly one calendar day after previous"""
    return days_between(previous, current) == 1


def get_week_start(day: date) -> date:
    """Monday of the ISO week containing day"""
    return day - timedelta(days=day.weekday())


def get_week_end(day: date) -> date:
    """Sunday of the ISO week containing day"""
    return get_week_start(day) + timedelta(days=6)


def get_week_bounds(day: date) -> Tuple[datetime, datetime]:
    """
    UTC datetime bounds of the week containing day

    Returns:
        (Monday 00:00:00 UTC, Sunday 23:59:59.999999 UTC)
    """
    start = datetime.combine(get_week_start(day), time.min, tzinfo=UTC)
    end = datetime.combine(get_week_end(day), time.max, tzinfo=UTC)
    return start, end


def format_time_remaining(remaining: timedelta) -> str:
    """
    Human-readable countdown

    Examples:
        3 days 5 hours -> "3d 5h remaining"
        5 hours       -> "5h remaining"
        <= 0          -> "Expired"
    """
    total_seconds = int(remaining.total_seconds())
    if total_seconds <= 0:
        return "Expired"

    days, seconds = divmod(total_seconds, 86400)
    hours = seconds // 3600

    if days > 0:
        return f"{days}d {hours}h remaining"
    return f"{hours}h remaining"


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round half away from zero for non-negative values

    The built-in round() uses banker's rounding (round(2.5) == 2); targets and
    percentages round 0.5 up.
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor
