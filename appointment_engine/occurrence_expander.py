"""Occurrence expansion for appointment series.

Materializes the concrete dates a series yields inside a local-date window.
Daily, weekly and monthly rules are evaluated by walking the clipped window one
day at a time; yearly rules resolve one candidate per year (solar or lunar).
Every call is bounded by ``EngineSettings.max_scan_iterations``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta
from typing import TYPE_CHECKING, Callable, Optional

from .calendar_math import (
    days_between,
    format_local,
    months_between,
    resolve_yearly,
    start_of_week,
    weekday,
    weeks_between,
    years_between,
)
from .config_manager import EngineSettings
from .lunar import LunarConverter
from .models import ExpansionReport, Occurrence, RecurrenceKind, RecurrenceRule, Series

if TYPE_CHECKING:
    from .occurrence_cache import OccurrenceCache

logger = logging.getLogger(__name__)

OccurrenceFilter = Callable[[Occurrence], bool]


def exclude_categories(*categories: str) -> OccurrenceFilter:
    """Build a filter that hides occurrences whose meeting_type is listed."""
    hidden = frozenset(categories)

    def _predicate(occurrence: Occurrence) -> bool:
        return occurrence.payload.meeting_type not in hidden

    return _predicate


def validate_rule(rule: RecurrenceRule) -> list[str]:
    """Return warnings for rules that are valid but will not behave as expected.

    Args:
        rule: Rule to inspect

    Returns:
        Human-readable warnings; empty when the rule looks sound
    """
    warnings: list[str] = []
    if rule.kind == RecurrenceKind.WEEKLY and not rule.days_of_week:
        warnings.append("weekly rule has no days_of_week and yields no occurrences")
    if rule.kind != RecurrenceKind.WEEKLY and rule.days_of_week:
        warnings.append(f"days_of_week is ignored for {rule.kind.value} rules")
    if rule.is_lunar and rule.kind != RecurrenceKind.YEARLY:
        warnings.append(f"is_lunar is ignored for {rule.kind.value} rules")
    if rule.kind == RecurrenceKind.NONE and rule.end_date is not None:
        warnings.append("end_date is ignored for non-recurring series")
    return warnings


class OccurrenceExpander:
    """Expands series into occurrences within a window."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        converter: Optional[LunarConverter] = None,
    ):
        """Initialize expander.

        Args:
            settings: Engine limits (defaults to EngineSettings())
            converter: Default lunar converter used when a call passes none
        """
        self.settings = settings or EngineSettings()
        self.converter = converter

    def expand(
        self,
        series: Series,
        window_start: date,
        window_end: date,
        converter: Optional[LunarConverter] = None,
        *,
        occurrence_filter: Optional[OccurrenceFilter] = None,
    ) -> list[Occurrence]:
        """Return the occurrences of series inside [window_start, window_end].

        Results are sorted ascending and never include excepted dates. If the
        safety cap is reached the list is partial; use expand_with_report() to
        detect that case.
        """
        report = self.expand_with_report(
            series, window_start, window_end, converter, occurrence_filter=occurrence_filter
        )
        return report.occurrences

    def expand_with_report(
        self,
        series: Series,
        window_start: date,
        window_end: date,
        converter: Optional[LunarConverter] = None,
        *,
        occurrence_filter: Optional[OccurrenceFilter] = None,
    ) -> ExpansionReport:
        """Expand a series and report whether the safety cap truncated the scan.

        Args:
            series: Series to expand
            window_start: First local date of the window (inclusive)
            window_end: Last local date of the window (inclusive)
            converter: Lunar converter for lunar yearly rules
            occurrence_filter: Caller predicate; occurrences for which it
                returns False are dropped

        Returns:
            ExpansionReport with sorted occurrences and truncation details
        """
        report = self._expand_unfiltered(series, window_start, window_end, converter)
        if occurrence_filter is None:
            return report
        kept = [occ for occ in report.occurrences if _passes(occurrence_filter, occ)]
        return report.model_copy(update={"occurrences": kept})

    def expand_all(
        self,
        series_list: Iterable[Series],
        window_start: date,
        window_end: date,
        converter: Optional[LunarConverter] = None,
        *,
        occurrence_filter: Optional[OccurrenceFilter] = None,
        cache: Optional["OccurrenceCache"] = None,
    ) -> list[Occurrence]:
        """Expand many series and merge them ordered by (date, time, series id).

        Args:
            series_list: Series to expand
            window_start: First local date of the window (inclusive)
            window_end: Last local date of the window (inclusive)
            converter: Lunar converter for lunar yearly rules
            occurrence_filter: Caller predicate applied to every occurrence
            cache: Optional memoization of unfiltered per-series expansions

        Returns:
            Merged occurrence list
        """
        merged: list[Occurrence] = []
        for series in series_list:
            if cache is not None:
                occurrences = cache.get_or_expand(
                    series,
                    window_start,
                    window_end,
                    lambda s=series: self._expand_unfiltered(
                        s, window_start, window_end, converter
                    ).occurrences,
                )
            else:
                occurrences = self._expand_unfiltered(
                    series, window_start, window_end, converter
                ).occurrences
            if occurrence_filter is not None:
                occurrences = [occ for occ in occurrences if _passes(occurrence_filter, occ)]
            merged.extend(occurrences)

        merged.sort(key=lambda occ: (occ.occurrence_date, occ.time, occ.series_id))
        return merged

    def is_occurrence(
        self, series: Series, target: date, converter: Optional[LunarConverter] = None
    ) -> bool:
        """Return True if series produces an occurrence on target."""
        return bool(self._expand_unfiltered(series, target, target, converter).occurrences)

    def _expand_unfiltered(
        self,
        series: Series,
        window_start: date,
        window_end: date,
        converter: Optional[LunarConverter],
    ) -> ExpansionReport:
        if window_start > window_end:
            logger.debug(
                "Empty window for series %s: %s > %s", series.id, window_start, window_end
            )
            return ExpansionReport()

        rule = series.rule
        if rule.kind == RecurrenceKind.NONE:
            anchor = series.anchor_date
            if window_start <= anchor <= window_end and anchor not in series.exceptions:
                return ExpansionReport(occurrences=[Occurrence.from_series(series, anchor)])
            return ExpansionReport()

        first = max(series.anchor_date, window_start)
        last = window_end if rule.end_date is None else min(window_end, rule.end_date)
        if first > last:
            return ExpansionReport()

        if rule.kind == RecurrenceKind.YEARLY:
            dates, iterations, scanned_until, truncated = self._scan_years(
                series, first, last, converter or self.converter
            )
        elif rule.kind == RecurrenceKind.WEEKLY and not rule.days_of_week:
            logger.debug("Weekly series %s has no days_of_week; nothing to expand", series.id)
            return ExpansionReport()
        else:
            dates, iterations, scanned_until, truncated = self._scan_days(series, first, last)

        if truncated:
            logger.warning(
                "Expansion of series %s stopped at %s after %d iterations "
                "(window end %s); result is partial",
                series.id,
                format_local(scanned_until) if scanned_until else "-",
                iterations,
                format_local(last),
            )

        occurrences = [Occurrence.from_series(series, d) for d in dates]
        logger.debug(
            "Expanded series %s (%s) over %s..%s: %d occurrences in %d iterations",
            series.id,
            rule.kind.value,
            format_local(first),
            format_local(last),
            len(occurrences),
            iterations,
        )
        return ExpansionReport(
            occurrences=occurrences,
            truncated=truncated,
            scanned_until=scanned_until,
            iterations=iterations,
        )

    def _scan_days(
        self, series: Series, first: date, last: date
    ) -> tuple[list[date], int, Optional[date], bool]:
        cap = self.settings.max_scan_iterations
        dates: list[date] = []
        iterations = 0
        scanned_until: Optional[date] = None
        cursor = first
        while cursor <= last:
            if iterations >= cap:
                return dates, iterations, scanned_until, True
            iterations += 1
            if _matches_day(series, cursor) and cursor not in series.exceptions:
                dates.append(cursor)
            scanned_until = cursor
            cursor += timedelta(days=1)
        return dates, iterations, scanned_until, False

    def _scan_years(
        self,
        series: Series,
        first: date,
        last: date,
        converter: Optional[LunarConverter],
    ) -> tuple[list[date], int, Optional[date], bool]:
        rule = series.rule
        anchor = series.anchor_date
        if rule.is_lunar and converter is None:
            logger.warning(
                "Series %s is lunar but no lunar converter is available; no occurrences",
                series.id,
            )
            return [], 0, None, False

        # A lunar date late in the lunar year can land in the next solar year
        start_year = first.year - 1 if rule.is_lunar else first.year
        start_year = max(start_year, anchor.year)

        cap = self.settings.max_scan_iterations
        found: set[date] = set()
        iterations = 0
        scanned_until: Optional[date] = None
        for year in range(start_year, last.year + 1):
            if iterations >= cap:
                return sorted(found), iterations, scanned_until, True
            iterations += 1
            scanned_until = date(year, 1, 1)
            if years_between(anchor.year, year) % rule.interval != 0:
                continue
            candidate = resolve_yearly(anchor, year, rule.is_lunar, converter)
            if candidate is None:
                continue
            if first <= candidate <= last and candidate not in series.exceptions:
                found.add(candidate)
        return sorted(found), iterations, scanned_until, False


def _matches_day(series: Series, d: date) -> bool:
    rule = series.rule
    anchor = series.anchor_date
    if rule.kind == RecurrenceKind.DAILY:
        return days_between(anchor, d) % rule.interval == 0
    if rule.kind == RecurrenceKind.WEEKLY:
        if weekday(d) not in rule.days_of_week:
            return False
        return weeks_between(start_of_week(anchor), start_of_week(d)) % rule.interval == 0
    if rule.kind == RecurrenceKind.MONTHLY:
        return d.day == anchor.day and months_between(anchor, d) % rule.interval == 0
    return False


def _passes(occurrence_filter: OccurrenceFilter, occurrence: Occurrence) -> bool:
    try:
        return bool(occurrence_filter(occurrence))
    except Exception as e:
        logger.warning(
            "Occurrence filter raised for %s: %s; keeping occurrence",
            occurrence.occurrence_id,
            e,
        )
        return True


def expand(
    series: Series,
    window_start: date,
    window_end: date,
    converter: Optional[LunarConverter] = None,
    *,
    occurrence_filter: Optional[OccurrenceFilter] = None,
    settings: Optional[EngineSettings] = None,
) -> list[Occurrence]:
    """Expand one series over [window_start, window_end]. See OccurrenceExpander.expand."""
    return OccurrenceExpander(settings).expand(
        series, window_start, window_end, converter, occurrence_filter=occurrence_filter
    )


def expand_with_report(
    series: Series,
    window_start: date,
    window_end: date,
    converter: Optional[LunarConverter] = None,
    *,
    occurrence_filter: Optional[OccurrenceFilter] = None,
    settings: Optional[EngineSettings] = None,
) -> ExpansionReport:
    return OccurrenceExpander(settings).expand_with_report(
        series, window_start, window_end, converter, occurrence_filter=occurrence_filter
    )


def expand_all(
    series_list: Iterable[Series],
    window_start: date,
    window_end: date,
    converter: Optional[LunarConverter] = None,
    *,
    occurrence_filter: Optional[OccurrenceFilter] = None,
    settings: Optional[EngineSettings] = None,
    cache: Optional["OccurrenceCache"] = None,
) -> list[Occurrence]:
    """Expand many series into one ordered list. See OccurrenceExpander.expand_all."""
    return OccurrenceExpander(settings).expand_all(
        series_list,
        window_start,
        window_end,
        converter,
        occurrence_filter=occurrence_filter,
        cache=cache,
    )


def is_occurrence(
    series: Series,
    target: date,
    converter: Optional[LunarConverter] = None,
    *,
    settings: Optional[EngineSettings] = None,
) -> bool:
    return OccurrenceExpander(settings).is_occurrence(series, target, converter)
