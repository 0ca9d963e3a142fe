"""Unit tests for appointment_engine.series_mutator."""

from datetime import date

import pytest
from pydantic import ValidationError

from appointment_engine.exceptions import EditError, InvalidOccurrenceError
from appointment_engine.models import (
    AppointmentPayload,
    DeleteSeries,
    EditScope,
    RecurrenceKind,
    RecurrenceRule,
    SeriesStatus,
    Split,
    UpdateInPlace,
)
from appointment_engine.occurrence_expander import expand
from appointment_engine.series_mutator import (
    SeriesMutator,
    apply_edit,
    delete,
    set_occurrence_status,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def mutator(id_factory):
    return SeriesMutator(id_factory=id_factory)


def _dates(occurrences):
    return [occ.occurrence_date for occ in occurrences]


class TestEditSingle:
    """Editing one occurrence of a recurring series."""

    def test_split_off_as_one_off(self, make_series, mutator):
        series = make_series()
        result = mutator.apply_edit(
            series, date(2024, 1, 15), EditScope.SINGLE, new_payload={"title": "Moved review"}
        )

        assert isinstance(result, Split)
        original = result.truncated_original
        assert original.id == "series-1"
        assert original.exceptions == frozenset({date(2024, 1, 15)})
        assert original.rule == series.rule
        assert original.version == series.version + 1

        new = result.new_series
        assert new.id == "new-1"
        assert new.anchor_date == date(2024, 1, 15)
        assert new.rule.kind == RecurrenceKind.NONE
        assert new.payload.title == "Moved review"
        assert new.time == series.time

    def test_occurrence_set_is_preserved(self, make_series, mutator):
        """The edited date now comes from the one-off, every other date is unchanged."""
        series = make_series()
        result = mutator.apply_edit(series, date(2024, 1, 15), EditScope.SINGLE)
        window = (date(2024, 1, 1), date(2024, 1, 31))
        original_dates = _dates(expand(result.truncated_original, *window))
        new_dates = _dates(expand(result.new_series, *window))
        assert date(2024, 1, 15) not in original_dates
        assert new_dates == [date(2024, 1, 15)]
        assert sorted(original_dates + new_dates) == _dates(expand(series, *window))

    def test_new_time_applies_to_one_off_only(self, make_series, mutator):
        series = make_series()
        result = mutator.apply_edit(series, date(2024, 1, 3), "single", new_time="13:00")
        assert result.new_series.time == "13:00"
        assert result.truncated_original.time == "09:00"

    def test_payload_model_is_accepted(self, make_series, mutator):
        payload = AppointmentPayload(title="Intake", customer_id="c-9")
        result = mutator.apply_edit(make_series(), date(2024, 1, 2), EditScope.SINGLE, payload)
        assert result.new_series.payload == payload

    def test_input_series_unchanged(self, make_series, mutator):
        series = make_series()
        before = series.model_dump()
        mutator.apply_edit(series, date(2024, 1, 15), EditScope.SINGLE, {"title": "x"})
        assert series.model_dump() == before


class TestEditFuture:
    """Editing an occurrence and every later one."""

    def test_split_with_new_rule(self, make_series, mutator):
        series = make_series()
        new_rule = RecurrenceRule(kind=RecurrenceKind.DAILY, interval=2)
        result = mutator.apply_edit(series, date(2024, 1, 15), EditScope.FUTURE, new_rule=new_rule)

        assert isinstance(result, Split)
        assert result.truncated_original.rule.end_date == date(2024, 1, 14)
        assert result.new_series.anchor_date == date(2024, 1, 15)
        assert result.new_series.rule == new_rule
        assert result.new_series.id == "new-1"

        new_dates = _dates(expand(result.new_series, date(2024, 1, 1), date(2024, 1, 21)))
        assert new_dates == [date(2024, 1, 15), date(2024, 1, 17), date(2024, 1, 19), date(2024, 1, 21)]

    def test_split_completeness_without_rule_change(self, make_series, mutator):
        series = make_series(exceptions=[date(2024, 1, 10), date(2024, 1, 20)])
        result = mutator.apply_edit(series, date(2024, 1, 15), EditScope.FUTURE, {"title": "Renamed"})
        window = (date(2024, 1, 1), date(2024, 2, 29))
        combined = _dates(expand(result.truncated_original, *window)) + _dates(
            expand(result.new_series, *window)
        )
        assert sorted(combined) == _dates(expand(series, *window))

    def test_later_exceptions_move_to_new_series(self, make_series, mutator):
        series = make_series(exceptions=[date(2024, 1, 10), date(2024, 1, 20)])
        result = mutator.apply_edit(series, date(2024, 1, 15), EditScope.FUTURE)
        assert result.new_series.exceptions == frozenset({date(2024, 1, 20)})
        assert date(2024, 1, 10) in result.truncated_original.exceptions

    def test_existing_end_date_is_kept_on_new_series(self, make_series, mutator):
        series = make_series(end_date=date(2024, 1, 31))
        result = mutator.apply_edit(series, date(2024, 1, 15), EditScope.FUTURE)
        assert result.new_series.rule.end_date == date(2024, 1, 31)
        assert result.truncated_original.rule.end_date == date(2024, 1, 14)

    def test_first_occurrence_still_splits(self, make_series, mutator):
        """At the anchor the original keeps no dates but the result is still a split."""
        series = make_series()
        new_rule = RecurrenceRule(kind=RecurrenceKind.WEEKLY, days_of_week=frozenset({1}))
        result = mutator.apply_edit(series, date(2024, 1, 1), EditScope.FUTURE, new_rule=new_rule)

        assert isinstance(result, Split)
        assert result.truncated_original.rule.end_date == date(2023, 12, 31)
        assert expand(result.truncated_original, date(2024, 1, 1), date(2024, 1, 31)) == []
        assert result.new_series.anchor_date == date(2024, 1, 1)
        assert result.new_series.rule == new_rule

    def test_first_occurrence_after_anchor_splits(self, make_series, mutator):
        """Anchor on a Sunday with Monday-only days: Monday is the first occurrence."""
        series = make_series(anchor=date(2023, 12, 31), kind=RecurrenceKind.WEEKLY, days=[1])
        result = mutator.apply_edit(series, date(2024, 1, 1), EditScope.FUTURE, {"title": "x"})

        assert isinstance(result, Split)
        assert result.truncated_original.rule.end_date == date(2023, 12, 31)
        assert result.new_series.anchor_date == date(2024, 1, 1)
        assert result.new_series.payload.title == "x"

        window = (date(2023, 12, 1), date(2024, 1, 31))
        assert _dates(expand(result.truncated_original, *window)) == []
        assert _dates(expand(result.new_series, *window)) == _dates(expand(series, *window))

    def test_lunar_split_keeps_lunar_month_and_day(self, make_series, mutator, lunar_converter):
        series = make_series(anchor=date(2020, 8, 15), kind=RecurrenceKind.YEARLY, is_lunar=True)
        result = mutator.apply_edit(
            series,
            date(2021, 9, 21),
            EditScope.FUTURE,
            {"title": "Chuseok visit"},
            converter=lunar_converter,
        )
        assert isinstance(result, Split)
        assert result.truncated_original.rule.end_date == date(2021, 9, 20)
        assert result.new_series.anchor_date == date(2021, 8, 15)
        assert result.new_series.rule.is_lunar is True

        window = (date(2020, 1, 1), date(2023, 12, 31))
        assert _dates(expand(result.truncated_original, *window, lunar_converter)) == [date(2020, 10, 1)]
        assert _dates(expand(result.new_series, *window, lunar_converter)) == [
            date(2021, 9, 21),
            date(2023, 9, 29),
        ]


class TestEditAll:
    """Editing a whole series."""

    def test_update_in_place(self, make_series, mutator):
        series = make_series()
        result = mutator.apply_edit(
            series, date(2024, 1, 15), EditScope.ALL, {"title": "All hands"}, new_time="11:30"
        )
        assert isinstance(result, UpdateInPlace)
        assert result.series.id == series.id
        assert result.series.payload.title == "All hands"
        assert result.series.time == "11:30"
        assert result.series.anchor_date == series.anchor_date
        assert result.series.version == 2

    def test_rule_replaced(self, make_series, mutator):
        new_rule = RecurrenceRule(kind=RecurrenceKind.MONTHLY)
        result = mutator.apply_edit(make_series(), date(2024, 1, 3), EditScope.ALL, new_rule=new_rule)
        assert result.series.rule == new_rule

    def test_invalid_new_time_rejected(self, make_series, mutator):
        with pytest.raises(ValidationError):
            mutator.apply_edit(make_series(), date(2024, 1, 3), EditScope.ALL, new_time="25:00")


class TestEditOneOff:
    """Non-recurring series are always updated in place."""

    @pytest.mark.parametrize("scope", list(EditScope))
    def test_every_scope_updates_in_place(self, make_series, mutator, scope):
        series = make_series(kind=RecurrenceKind.NONE, anchor=date(2024, 2, 2))
        result = mutator.apply_edit(series, date(2024, 2, 2), scope, {"title": "Moved"})
        assert isinstance(result, UpdateInPlace)
        assert result.series.payload.title == "Moved"
        assert result.series.rule.kind == RecurrenceKind.NONE

    def test_future_edit_can_make_it_recurring(self, make_series, mutator):
        series = make_series(kind=RecurrenceKind.NONE, anchor=date(2024, 2, 2))
        new_rule = RecurrenceRule(kind=RecurrenceKind.DAILY)
        result = mutator.apply_edit(series, date(2024, 2, 2), EditScope.FUTURE, new_rule=new_rule)
        assert result.series.rule == new_rule


class TestInvalidOccurrence:
    """Targets the series does not produce."""

    def test_date_not_matching_rule(self, make_series, mutator):
        series = make_series(kind=RecurrenceKind.WEEKLY, days=[1])
        with pytest.raises(InvalidOccurrenceError) as exc_info:
            mutator.apply_edit(series, date(2024, 1, 2), EditScope.SINGLE)
        assert exc_info.value.series_id == "series-1"
        assert exc_info.value.occurrence_date == date(2024, 1, 2)

    def test_excepted_date(self, make_series, mutator):
        series = make_series(exceptions=[date(2024, 1, 5)])
        with pytest.raises(InvalidOccurrenceError):
            mutator.delete(series, date(2024, 1, 5), EditScope.SINGLE)

    def test_before_anchor(self, make_series, mutator):
        with pytest.raises(InvalidOccurrenceError):
            mutator.apply_edit(make_series(), date(2023, 12, 31), EditScope.ALL)

    def test_after_end_date(self, make_series, mutator):
        series = make_series(end_date=date(2024, 1, 10))
        with pytest.raises(EditError):
            mutator.set_occurrence_status(series, date(2024, 1, 11), SeriesStatus.COMPLETED)

    def test_one_off_other_day(self, make_series, mutator):
        series = make_series(kind=RecurrenceKind.NONE)
        with pytest.raises(InvalidOccurrenceError):
            mutator.delete(series, date(2024, 1, 2), EditScope.ALL)


class TestDelete:
    """Deleting occurrences."""

    def test_single_adds_exception(self, make_series, mutator):
        series = make_series()
        result = mutator.delete(series, date(2024, 1, 15), EditScope.SINGLE)
        assert isinstance(result, UpdateInPlace)
        assert result.series.exceptions == frozenset({date(2024, 1, 15)})
        assert result.series.version == 2

    def test_all_deletes_series(self, make_series, mutator):
        result = mutator.delete(make_series(), date(2024, 1, 15), EditScope.ALL)
        assert result == DeleteSeries(series_id="series-1")
        assert result.ids_to_delete == ["series-1"]
        assert result.records_to_save == []

    def test_future_truncates(self, make_series, mutator):
        result = mutator.delete(make_series(), date(2024, 1, 15), EditScope.FUTURE)
        assert isinstance(result, UpdateInPlace)
        assert result.series.rule.end_date == date(2024, 1, 14)
        dates = _dates(expand(result.series, date(2024, 1, 1), date(2024, 1, 31)))
        assert dates[-1] == date(2024, 1, 14)

    def test_future_shortens_existing_end_date(self, make_series, mutator):
        series = make_series(anchor=date(2024, 1, 1), kind=RecurrenceKind.WEEKLY, days=[1], end_date=date(2024, 1, 20))
        result = mutator.delete(series, date(2024, 1, 15), EditScope.FUTURE)
        assert result.series.rule.end_date == date(2024, 1, 14)

    def test_future_delete_is_idempotent(self, make_series, mutator):
        once = mutator.delete(make_series(), date(2024, 1, 15), EditScope.FUTURE).series
        twice = mutator.delete(once, date(2024, 1, 15), EditScope.FUTURE)
        assert isinstance(twice, UpdateInPlace)
        assert twice.series == once

    def test_future_delete_past_end_date_is_noop(self, make_series, mutator):
        series = make_series(end_date=date(2024, 1, 14))
        result = mutator.delete(series, date(2024, 1, 20), EditScope.FUTURE)
        assert result.series == series
        assert result.series.version == series.version

    def test_future_from_first_occurrence_truncates(self, make_series, mutator):
        series = make_series()
        result = mutator.delete(series, date(2024, 1, 1), EditScope.FUTURE)

        assert isinstance(result, UpdateInPlace)
        assert result.series.id == "series-1"
        assert result.series.rule.end_date == date(2023, 12, 31)
        assert expand(result.series, date(2024, 1, 1), date(2024, 12, 31)) == []

    def test_future_from_first_occurrence_is_idempotent(self, make_series, mutator):
        once = mutator.delete(make_series(), date(2024, 1, 1), EditScope.FUTURE).series
        twice = mutator.delete(once, date(2024, 1, 1), EditScope.FUTURE)
        assert twice.series == once

    @pytest.mark.parametrize("scope", list(EditScope))
    def test_one_off_always_deleted(self, make_series, mutator, scope):
        series = make_series(kind=RecurrenceKind.NONE)
        result = mutator.delete(series, date(2024, 1, 1), scope)
        assert isinstance(result, DeleteSeries)


class TestSetOccurrenceStatus:
    """Per-occurrence status changes."""

    def test_recurring_splits_one_off_with_status(self, make_series, mutator):
        series = make_series()
        result = mutator.set_occurrence_status(series, date(2024, 1, 8), "completed")
        assert isinstance(result, Split)
        assert result.new_series.status == SeriesStatus.COMPLETED
        assert result.new_series.anchor_date == date(2024, 1, 8)
        assert result.truncated_original.status == SeriesStatus.SCHEDULED
        assert date(2024, 1, 8) in result.truncated_original.exceptions

    def test_one_off_updated_in_place(self, make_series, mutator):
        series = make_series(kind=RecurrenceKind.NONE)
        result = mutator.set_occurrence_status(series, date(2024, 1, 1), SeriesStatus.CANCELLED)
        assert isinstance(result, UpdateInPlace)
        assert result.series.status == SeriesStatus.CANCELLED

    def test_unknown_status_rejected(self, make_series, mutator):
        with pytest.raises(ValueError):
            mutator.set_occurrence_status(make_series(), date(2024, 1, 1), "archived")


class TestModuleFunctions:
    """Functional wrappers with generated ids."""

    def test_generated_ids_use_prefix(self, make_series):
        result = apply_edit(make_series(), date(2024, 1, 2), EditScope.SINGLE)
        assert result.new_series.id.startswith("appt-")
        assert len(result.new_series.id) == len("appt-") + 32

    def test_generated_ids_are_unique(self, make_series):
        series = make_series()
        first = apply_edit(series, date(2024, 1, 2), EditScope.SINGLE).new_series.id
        second = apply_edit(series, date(2024, 1, 2), EditScope.SINGLE).new_series.id
        assert first != second

    def test_delete_and_status_wrappers(self, make_series):
        series = make_series()
        assert isinstance(delete(series, date(2024, 1, 2), EditScope.ALL), DeleteSeries)
        assert isinstance(set_occurrence_status(series, date(2024, 1, 2), "postponed"), Split)
