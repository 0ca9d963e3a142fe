"""Edit and delete operations on appointment series.

Every operation is computed, not applied: callers receive UpdateInPlace, Split
or DeleteSeries results and persist them. The input series is never modified,
and a rejected operation raises before any result exists.

Scopes:
- ALL: rewrite the whole series in place.
- SINGLE: except the date from the series and (for edits) insert a one-off.
- FUTURE: end the series the day before the date and (for edits) start a new
  series on that date.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import date
from typing import Any, Callable, Optional, Union

from .calendar_math import day_before, format_local, resolve_yearly
from .config_manager import EngineSettings
from .exceptions import InvalidOccurrenceError, InvalidRuleError
from .lunar import LunarConverter
from .models import (
    AppointmentPayload,
    DeleteResult,
    DeleteSeries,
    EditResult,
    EditScope,
    RecurrenceKind,
    RecurrenceRule,
    Series,
    SeriesStatus,
    Split,
    UpdateInPlace,
)
from .occurrence_expander import OccurrenceExpander

logger = logging.getLogger(__name__)

PayloadLike = Union[AppointmentPayload, Mapping[str, Any]]


class SeriesMutator:
    """Computes the series records that result from an edit or delete."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        converter: Optional[LunarConverter] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """Initialize mutator.

        Args:
            settings: Engine settings (scan cap, id prefix)
            converter: Default lunar converter for membership checks
            id_factory: Zero-argument callable returning fresh series ids
        """
        self.settings = settings or EngineSettings()
        self.converter = converter
        self._expander = OccurrenceExpander(self.settings, converter)
        self._id_factory = id_factory or self._new_id

    def apply_edit(
        self,
        series: Series,
        occurrence_date: date,
        scope: Union[EditScope, str],
        new_payload: Optional[PayloadLike] = None,
        new_rule: Optional[RecurrenceRule] = None,
        *,
        converter: Optional[LunarConverter] = None,
        new_time: Optional[str] = None,
        new_end_time: Optional[str] = None,
    ) -> EditResult:
        """Apply an edit to one occurrence, to it and all later ones, or to the series.

        Args:
            series: Series being edited
            occurrence_date: Occurrence the user acted on
            scope: SINGLE, FUTURE or ALL
            new_payload: Replacement payload (None keeps the current one)
            new_rule: Replacement rule for FUTURE/ALL (None keeps the current one)
            converter: Lunar converter for lunar yearly series
            new_time: Replacement start time HH:MM (None keeps the current one)
            new_end_time: Replacement end time HH:MM (None keeps the current one)

        Returns:
            UpdateInPlace or Split

        Raises:
            InvalidOccurrenceError: If the series does not produce occurrence_date
        """
        scope = EditScope(scope)
        converter = converter or self.converter
        self._require_occurrence(series, occurrence_date, converter)

        payload = _coerce_payload(new_payload, series.payload)
        changes: dict[str, Any] = {"payload": payload}
        if new_time is not None:
            changes["time"] = new_time
        if new_end_time is not None:
            changes["end_time"] = new_end_time

        if not series.is_recurring:
            if scope != EditScope.SINGLE and new_rule is not None:
                changes["rule"] = new_rule
            logger.debug("Edit of one-off series %s applied in place", series.id)
            return UpdateInPlace(series=_bump(series, changes))

        if scope == EditScope.ALL:
            if new_rule is not None:
                changes["rule"] = new_rule
            logger.debug("Edit of whole series %s applied in place", series.id)
            return UpdateInPlace(series=_bump(series, changes))

        if scope == EditScope.SINGLE:
            return self._split_single(series, occurrence_date, changes)

        return self._split_future(series, occurrence_date, new_rule, changes, converter)

    def delete(
        self,
        series: Series,
        occurrence_date: date,
        scope: Union[EditScope, str],
        *,
        converter: Optional[LunarConverter] = None,
    ) -> DeleteResult:
        """Delete one occurrence, it and all later ones, or the whole series.

        A FUTURE delete whose date lies after an existing end_date that already
        hides it returns the series unchanged, so repeating a FUTURE delete is
        harmless.

        Raises:
            InvalidOccurrenceError: If the series does not produce occurrence_date
        """
        scope = EditScope(scope)
        converter = converter or self.converter

        if scope == EditScope.FUTURE and self._already_truncated(series, occurrence_date, converter):
            logger.debug(
                "Series %s already ends before %s; future delete is a no-op",
                series.id,
                format_local(occurrence_date),
            )
            return UpdateInPlace(series=series)

        self._require_occurrence(series, occurrence_date, converter)

        if scope == EditScope.ALL or not series.is_recurring:
            logger.debug("Deleting series %s", series.id)
            return DeleteSeries(series_id=series.id)

        if scope == EditScope.SINGLE:
            updated = _bump(series, {"exceptions": series.exceptions | {occurrence_date}})
            logger.debug(
                "Excepted %s from series %s", format_local(occurrence_date), series.id
            )
            return UpdateInPlace(series=updated)

        updated = _bump(series, {"rule": _truncated_rule(series.rule, occurrence_date)})
        logger.debug(
            "Series %s now ends on %s", series.id, format_local(updated.rule.end_date)
        )
        return UpdateInPlace(series=updated)

    def set_occurrence_status(
        self,
        series: Series,
        occurrence_date: date,
        status: Union[SeriesStatus, str],
        *,
        converter: Optional[LunarConverter] = None,
    ) -> EditResult:
        """Mark one occurrence completed/postponed/cancelled/scheduled.

        One-off series are updated in place. For recurring series the
        occurrence is split off as a one-off carrying the new status, leaving
        the rest of the series untouched.

        Raises:
            InvalidOccurrenceError: If the series does not produce occurrence_date
        """
        status = SeriesStatus(status)
        converter = converter or self.converter
        self._require_occurrence(series, occurrence_date, converter)

        if not series.is_recurring:
            return UpdateInPlace(series=_bump(series, {"status": status}))

        return self._split_single(
            series, occurrence_date, {"payload": series.payload, "status": status}
        )

    def _split_single(self, series: Series, occurrence_date: date, changes: dict[str, Any]) -> Split:
        truncated = _bump(series, {"exceptions": series.exceptions | {occurrence_date}})
        new_series = Series(
            id=self._id_factory(),
            anchor_date=occurrence_date,
            time=changes.get("time", series.time),
            end_time=changes.get("end_time", series.end_time),
            rule=RecurrenceRule(),
            status=changes.get("status", series.status),
            payload=changes["payload"],
        )
        logger.debug(
            "Split occurrence %s of series %s into one-off %s",
            format_local(occurrence_date),
            series.id,
            new_series.id,
        )
        return Split(truncated_original=truncated, new_series=new_series)

    def _split_future(
        self,
        series: Series,
        occurrence_date: date,
        new_rule: Optional[RecurrenceRule],
        changes: dict[str, Any],
        converter: Optional[LunarConverter],
    ) -> Split:
        rule = new_rule if new_rule is not None else series.rule
        anchor = self._forward_anchor(series, occurrence_date, rule, converter)
        # Later exceptions move with the dates they suppress so the two halves
        # together still expand to exactly the original dates
        carried = frozenset(d for d in series.exceptions if d > occurrence_date)

        truncated = _bump(series, {"rule": _truncated_rule(series.rule, occurrence_date)})
        new_series = Series(
            id=self._id_factory(),
            anchor_date=anchor,
            time=changes.get("time", series.time),
            end_time=changes.get("end_time", series.end_time),
            rule=rule,
            exceptions=carried,
            status=series.status,
            payload=changes["payload"],
        )
        logger.debug(
            "Split series %s at %s: original ends %s, new series %s",
            series.id,
            format_local(occurrence_date),
            format_local(truncated.rule.end_date),
            new_series.id,
        )
        return Split(truncated_original=truncated, new_series=new_series)

    def _forward_anchor(
        self,
        series: Series,
        occurrence_date: date,
        rule: RecurrenceRule,
        converter: Optional[LunarConverter],
    ) -> date:
        """Anchor for the part of a series starting at occurrence_date.

        Lunar yearly anchors hold a lunar month/day, so a lunar rule carried
        forward keeps the lunar month/day and only moves to the lunar year
        that produced occurrence_date.
        """
        original = series.rule
        if not (
            rule.kind == RecurrenceKind.YEARLY
            and rule.is_lunar
            and original.kind == RecurrenceKind.YEARLY
            and original.is_lunar
        ):
            return occurrence_date

        anchor = series.anchor_date
        for year in (occurrence_date.year - 1, occurrence_date.year):
            if resolve_yearly(anchor, year, True, converter) != occurrence_date:
                continue
            try:
                return anchor.replace(year=year)
            except ValueError as e:
                raise InvalidRuleError(
                    f"Lunar anchor {anchor.month:02d}-{anchor.day:02d} of series {series.id} "
                    f"cannot be re-based onto {year}"
                ) from e
        raise InvalidOccurrenceError(
            f"{format_local(occurrence_date)} does not resolve from the lunar anchor of series "
            f"{series.id}",
            series_id=series.id,
            occurrence_date=occurrence_date,
        )

    def _require_occurrence(
        self, series: Series, occurrence_date: date, converter: Optional[LunarConverter]
    ) -> None:
        if not self._expander.is_occurrence(series, occurrence_date, converter):
            raise InvalidOccurrenceError(
                f"Series {series.id} has no occurrence on {format_local(occurrence_date)}",
                series_id=series.id,
                occurrence_date=occurrence_date,
            )

    def _already_truncated(
        self, series: Series, occurrence_date: date, converter: Optional[LunarConverter]
    ) -> bool:
        end_date = series.rule.end_date
        if not series.is_recurring or end_date is None or occurrence_date <= end_date:
            return False
        unbounded = series.model_copy(
            update={"rule": series.rule.model_copy(update={"end_date": None})}
        )
        return self._expander.is_occurrence(unbounded, occurrence_date, converter)

    def _new_id(self) -> str:
        return f"{self.settings.id_prefix}{uuid.uuid4().hex}"


def _bump(series: Series, changes: dict[str, Any]) -> Series:
    """Return a re-validated copy of series with changes applied and version bumped."""
    data = dict(series)
    data.update(changes)
    data["version"] = series.version + 1
    return Series.model_validate(data)


def _truncated_rule(rule: RecurrenceRule, occurrence_date: date) -> RecurrenceRule:
    """Return rule ending the day before occurrence_date; an earlier end_date wins."""
    end_date = day_before(occurrence_date)
    if rule.end_date is not None and rule.end_date < end_date:
        end_date = rule.end_date
    return rule.model_copy(update={"end_date": end_date})


def _coerce_payload(
    new_payload: Optional[PayloadLike], current: AppointmentPayload
) -> AppointmentPayload:
    if new_payload is None:
        return current
    if isinstance(new_payload, AppointmentPayload):
        return new_payload
    return AppointmentPayload.model_validate(dict(new_payload))


def apply_edit(
    series: Series,
    occurrence_date: date,
    scope: Union[EditScope, str],
    new_payload: Optional[PayloadLike] = None,
    new_rule: Optional[RecurrenceRule] = None,
    *,
    converter: Optional[LunarConverter] = None,
    new_time: Optional[str] = None,
    new_end_time: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
) -> EditResult:
    """Edit a series occurrence. See SeriesMutator.apply_edit."""
    return SeriesMutator(settings).apply_edit(
        series,
        occurrence_date,
        scope,
        new_payload,
        new_rule,
        converter=converter,
        new_time=new_time,
        new_end_time=new_end_time,
    )


def delete(
    series: Series,
    occurrence_date: date,
    scope: Union[EditScope, str],
    *,
    converter: Optional[LunarConverter] = None,
    settings: Optional[EngineSettings] = None,
) -> DeleteResult:
    """Delete series occurrences. See SeriesMutator.delete."""
    return SeriesMutator(settings).delete(series, occurrence_date, scope, converter=converter)


def set_occurrence_status(
    series: Series,
    occurrence_date: date,
    status: Union[SeriesStatus, str],
    *,
    converter: Optional[LunarConverter] = None,
    settings: Optional[EngineSettings] = None,
) -> EditResult:
    return SeriesMutator(settings).set_occurrence_status(
        series, occurrence_date, status, converter=converter
    )
