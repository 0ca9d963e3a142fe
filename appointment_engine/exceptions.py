"""Custom exception hierarchy for the appointment recurrence engine.

Expansion never raises; these types are raised by the mutation entry points
(apply_edit, delete, set_occurrence_status) and by rule validation so callers
can tell a rejected edit apart from a programming error.
"""

from __future__ import annotations

from datetime import date
from typing import Optional


class EngineError(Exception):
    """Base exception for all appointment engine errors."""


class EditError(EngineError):
    """A proposed edit or delete was rejected.

    Raised before any result is produced, so the caller's series records are
    left exactly as they were.
    """


class InvalidOccurrenceError(EditError):
    """The targeted date is not an occurrence the series actually produces.

    Raised when:
    - The date falls outside the series' anchor/end bounds
    - The date does not match the recurrence pattern
    - The date is already listed in the series' exceptions
    """

    def __init__(
        self,
        message: str,
        series_id: Optional[str] = None,
        occurrence_date: Optional[date] = None,
    ) -> None:
        super().__init__(message)
        self.series_id = series_id
        self.occurrence_date = occurrence_date


class InvalidRuleError(EngineError):
    """Recurrence rule data is invalid or cannot be represented.

    Raised when:
    - interval is lower than 1
    - a weekday index is outside 0-6
    - a lunar rule is exported to RRULE form
    - a lunar anchor cannot be re-based onto another year
    """


class ConverterUnavailableError(EngineError):
    """No lunar calendar converter could be obtained.

    Inside expansion this is never fatal: the affected yearly candidates are
    skipped and a warning is logged.
    """
