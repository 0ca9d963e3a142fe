"""Pure local-calendar arithmetic for recurrence expansion.

All deltas are computed from calendar fields (proleptic ordinals, years and
months), never from epoch timestamps, so daylight-saving transitions and host
timezones cannot shift a result by a day.

Weekdays follow the appointment convention: Sunday=0 ... Saturday=6.
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import Optional, Union

from .lunar import LunarConverter

logger = logging.getLogger(__name__)

YearLike = Union[date, int]

_LOCAL_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LOCAL_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


def days_between(a: date, b: date) -> int:
    """Return the signed number of days from a to b."""
    return b.toordinal() - a.toordinal()


def weeks_between(a: date, b: date) -> int:
    """Return the signed number of whole weeks from a to b (floored)."""
    return days_between(a, b) // 7


def months_between(a: date, b: date) -> int:
    """Return the calendar-month field delta from a to b, ignoring the day."""
    return (b.year - a.year) * 12 + (b.month - a.month)


def years_between(a: YearLike, b: YearLike) -> int:
    """Return the calendar-year delta from a to b (dates or plain years)."""
    year_a = a.year if isinstance(a, date) else a
    year_b = b.year if isinstance(b, date) else b
    return year_b - year_a


def weekday(d: date) -> int:
    """Return the day of week with Sunday=0."""
    return (d.weekday() + 1) % 7


def start_of_week(d: date) -> date:
    """Return the Sunday starting the week that contains d."""
    return d - timedelta(days=weekday(d))


def day_before(d: date) -> date:
    return d - timedelta(days=1)


def format_local(d: date) -> str:
    """Format a local date as YYYY-MM-DD."""
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def parse_local(value: str) -> date:
    """Parse a strict YYYY-MM-DD local date.

    Raises:
        ValueError: If value is not exactly YYYY-MM-DD or not a real date
    """
    if not isinstance(value, str) or not _LOCAL_DATE_RE.match(value.strip()):
        raise ValueError(f"Expected local date in YYYY-MM-DD form, got {value!r}")
    return date.fromisoformat(value.strip())


def parse_time(value: str) -> tuple[int, int]:
    """Parse a 24-hour HH:MM time of day into (hour, minute).

    Raises:
        ValueError: If value is not a valid HH:MM time
    """
    match = _LOCAL_TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Expected time of day in HH:MM form, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Time of day out of range: {value!r}")
    return hour, minute


def format_time(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def resolve_yearly(
    anchor: date,
    target_year: int,
    is_lunar: bool,
    converter: Optional[LunarConverter] = None,
) -> Optional[date]:
    """Resolve the anchor's month/day into a concrete date for target_year.

    For solar rules the anchor's month/day are reused as-is; dates that do not
    exist in target_year (Feb 29 outside leap years) resolve to None and that
    year is skipped. For lunar rules the anchor's month/day are a lunar
    month/day and are resolved through the converter. A missing converter, a
    None answer or a converter failure all resolve to None for this one year.

    Args:
        anchor: Series anchor date
        target_year: Calendar year (lunar year for lunar rules) to resolve
        is_lunar: Interpret anchor month/day as a lunar date
        converter: Lunar converter, required for lunar rules

    Returns:
        The resolved local date, or None if there is no occurrence that year
    """
    if not is_lunar:
        try:
            return anchor.replace(year=target_year)
        except ValueError:
            return None

    if converter is None:
        logger.warning(
            "No lunar converter available; skipping lunar %02d-%02d for %d",
            anchor.month,
            anchor.day,
            target_year,
        )
        return None

    try:
        solar = converter.lunar_to_solar(target_year, anchor.month, anchor.day, False)
    except Exception as e:
        logger.warning(
            "Lunar converter failed for %d-%02d-%02d: %s",
            target_year,
            anchor.month,
            anchor.day,
            e,
        )
        return None

    if solar is None:
        logger.debug(
            "Lunar %d-%02d-%02d has no solar equivalent", target_year, anchor.month, anchor.day
        )
        return None
    if isinstance(solar, date):
        return solar
    try:
        return date(solar.year, solar.month, solar.day)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("Lunar converter returned an invalid date %r: %s", solar, e)
        return None
