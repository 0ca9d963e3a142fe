"""Shared fixtures for appointment_engine tests."""

import itertools
import logging
from collections.abc import Callable, Iterable
from datetime import date
from typing import Any, Optional

import pytest

from appointment_engine.engine_logging import ENGINE_MODULES
from appointment_engine.lunar import SolarDate
from appointment_engine.models import (
    AppointmentPayload,
    RecurrenceKind,
    RecurrenceRule,
    Series,
    SeriesStatus,
)


class FakeLunarConverter:
    """Table-driven lunar converter.

    Maps (lunar_year, lunar_month, lunar_day) to a solar date; anything not in
    the table resolves to None. Calls are recorded for assertions.
    """

    def __init__(self, table: dict[tuple[int, int, int], date]):
        self.table = table
        self.calls: list[tuple[int, int, int, bool]] = []

    def lunar_to_solar(
        self, year: int, month: int, day: int, is_leap_month: bool = False
    ) -> Optional[SolarDate]:
        self.calls.append((year, month, day, is_leap_month))
        solar = self.table.get((year, month, day))
        if solar is None:
            return None
        return SolarDate(solar.year, solar.month, solar.day)


@pytest.fixture
def make_series() -> Callable[..., Series]:
    """Factory for series with sensible defaults.

    Defaults to a daily series anchored 2024-01-01 at 09:00.
    """

    def _make(
        anchor: date = date(2024, 1, 1),
        kind: RecurrenceKind = RecurrenceKind.DAILY,
        interval: int = 1,
        days: Iterable[int] = (),
        end_date: Optional[date] = None,
        exceptions: Iterable[date] = (),
        is_lunar: bool = False,
        series_id: str = "series-1",
        time: str = "09:00",
        end_time: Optional[str] = "10:00",
        status: SeriesStatus = SeriesStatus.SCHEDULED,
        **payload: Any,
    ) -> Series:
        return Series(
            id=series_id,
            anchor_date=anchor,
            time=time,
            end_time=end_time,
            rule=RecurrenceRule(
                kind=kind,
                interval=interval,
                days_of_week=frozenset(days),
                end_date=end_date,
                is_lunar=is_lunar,
            ),
            exceptions=frozenset(exceptions),
            status=status,
            payload=AppointmentPayload(**({"title": "Weekly review"} | payload)),
        )

    return _make


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic id generator: new-1, new-2, ..."""
    counter = itertools.count(1)
    return lambda: f"new-{next(counter)}"


@pytest.fixture
def lunar_converter() -> FakeLunarConverter:
    """Converter for lunar 8/15 (2020-2023, 2022 missing) and lunar 12/20 of 2023."""
    return FakeLunarConverter(
        {
            (2020, 8, 15): date(2020, 10, 1),
            (2021, 8, 15): date(2021, 9, 21),
            (2023, 8, 15): date(2023, 9, 29),
            (2024, 8, 15): date(2024, 9, 17),
            (2023, 12, 20): date(2024, 1, 30),
        }
    )


@pytest.fixture
def restore_logging(monkeypatch):
    """Undo logger levels and root handlers changed by configure_engine_logging."""
    monkeypatch.delenv("APPOINTMENT_ENGINE_DEBUG", raising=False)
    monkeypatch.delenv("APPOINTMENT_ENGINE_LOG_LEVEL", raising=False)
    root = logging.getLogger()
    saved_root = (root.level, list(root.handlers))
    saved_levels = {name: logging.getLogger(name).level for name in ENGINE_MODULES}
    yield
    root.setLevel(saved_root[0])
    root.handlers[:] = saved_root[1]
    for name, level in saved_levels.items():
        logging.getLogger(name).setLevel(level)
