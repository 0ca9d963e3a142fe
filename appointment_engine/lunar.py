"""Lunar calendar conversion for lunar-anchored yearly appointments.

The engine only consumes the LunarConverter protocol. KoreanLunarConverter is a
thin adapter over the optional ``korean-lunar-calendar`` distribution
(``pip install appointment-engine[lunar]``).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, NamedTuple, Optional, Protocol, runtime_checkable

from .exceptions import ConverterUnavailableError

logger = logging.getLogger(__name__)


class SolarDate(NamedTuple):
    """Solar (Gregorian) calendar date returned by a lunar converter."""

    year: int
    month: int
    day: int

    def to_date(self) -> date:
        """Return the equivalent ``datetime.date``.

        Raises:
            ValueError: If the fields do not form a real calendar date
        """
        return date(self.year, self.month, self.day)


@runtime_checkable
class LunarConverter(Protocol):
    """Anything that can resolve a lunar month/day in a given lunar year."""

    def lunar_to_solar(
        self, year: int, month: int, day: int, is_leap_month: bool
    ) -> Optional[SolarDate]:
        """Return the solar date, or None if the lunar date does not exist that year."""
        ...


class KoreanLunarConverter:
    """LunarConverter backed by ``korean_lunar_calendar.KoreanLunarCalendar``.

    The library keeps conversion state on the calendar instance, so a fresh
    instance is used per call to keep the converter safe to share.
    """

    def __init__(self) -> None:
        try:
            from korean_lunar_calendar import KoreanLunarCalendar
        except ImportError as e:
            raise ConverterUnavailableError(
                "korean-lunar-calendar is not installed; "
                "install appointment-engine[lunar] to resolve lunar dates"
            ) from e
        self._calendar_cls: Any = KoreanLunarCalendar

    def lunar_to_solar(
        self, year: int, month: int, day: int, is_leap_month: bool = False
    ) -> Optional[SolarDate]:
        calendar = self._calendar_cls()
        if not calendar.setLunarDate(year, month, day, is_leap_month):
            logger.debug(
                "Lunar date %04d-%02d-%02d (leap=%s) rejected by converter",
                year,
                month,
                day,
                is_leap_month,
            )
            return None
        return SolarDate(calendar.solarYear, calendar.solarMonth, calendar.solarDay)


def get_default_converter(required: bool = False) -> Optional[LunarConverter]:
    """Return the bundled lunar converter when its library is installed.

    Args:
        required: Raise instead of returning None when unavailable

    Returns:
        A LunarConverter, or None when unavailable and not required

    Raises:
        ConverterUnavailableError: If required and the library is missing
    """
    try:
        return KoreanLunarConverter()
    except ConverterUnavailableError:
        if required:
            raise
        logger.debug("No lunar converter available; lunar series will not expand")
        return None
