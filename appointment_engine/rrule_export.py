"""Export solar recurrence rules as dateutil/RFC 5545 RRULEs.

Lets series be shared with iCalendar tooling. Lunar rules have no RRULE
equivalent and are rejected.
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Optional

from dateutil.rrule import DAILY, FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, YEARLY, rrule, rruleset

from .calendar_math import parse_time
from .exceptions import InvalidRuleError
from .models import RecurrenceKind, Series

logger = logging.getLogger(__name__)

# Indexed by the engine's weekday convention (Sunday=0)
_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)

_FREQUENCIES = {
    RecurrenceKind.DAILY: DAILY,
    RecurrenceKind.WEEKLY: WEEKLY,
    RecurrenceKind.MONTHLY: MONTHLY,
    RecurrenceKind.YEARLY: YEARLY,
}


def _start_datetime(series: Series) -> datetime:
    hour, minute = parse_time(series.time)
    return datetime.combine(series.anchor_date, time(hour, minute))


def to_rrule(series: Series) -> Optional[rrule]:
    """Build a dateutil rrule equivalent to the series' rule.

    Returns:
        rrule starting at the anchor date and time, or None for one-off series
        and weekly rules without weekdays (which never occur)

    Raises:
        InvalidRuleError: If the rule is lunar
    """
    rule = series.rule
    if not rule.is_recurring:
        return None
    if rule.is_lunar:
        raise InvalidRuleError(f"Lunar series {series.id} cannot be expressed as an RRULE")
    if rule.kind == RecurrenceKind.WEEKLY and not rule.days_of_week:
        logger.debug("Weekly series %s has no weekdays; no RRULE exported", series.id)
        return None

    kwargs: dict = {
        "dtstart": _start_datetime(series),
        "interval": rule.interval,
        "wkst": SU,
    }
    if rule.kind == RecurrenceKind.WEEKLY:
        kwargs["byweekday"] = [_WEEKDAYS[day] for day in sorted(rule.days_of_week)]
    if rule.end_date is not None:
        kwargs["until"] = datetime.combine(rule.end_date, time(23, 59, 59))

    return rrule(_FREQUENCIES[rule.kind], **kwargs)


def to_rruleset(series: Series) -> Optional[rruleset]:
    """Like to_rrule(), with the series' exceptions added as EXDATEs."""
    base = to_rrule(series)
    if base is None:
        return None
    rule_set = rruleset()
    rule_set.rrule(base)
    for excluded in exdates(series):
        rule_set.exdate(excluded)
    return rule_set


def to_rrule_string(series: Series) -> Optional[str]:
    """Serialize the series' rule as DTSTART/RRULE lines, or None if not exportable."""
    base = to_rrule(series)
    if base is None:
        return None
    return str(base)


def exdates(series: Series) -> list[datetime]:
    """Return the series' exceptions as datetimes at the series start time."""
    hour, minute = parse_time(series.time)
    return [datetime.combine(d, time(hour, minute)) for d in sorted(series.exceptions)]
