"""Data models for recurring appointments.

Series are the persisted unit; occurrences are derived per window and never
stored. All models are frozen so engine calls cannot mutate caller records;
changes are expressed as new, re-validated instances.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_serializer, field_validator

from .calendar_math import format_local, parse_time
from .exceptions import InvalidRuleError


class RecurrenceKind(str, Enum):
    """Recurrence frequency of a series."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SeriesStatus(str, Enum):
    """Appointment status."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


class EditScope(str, Enum):
    """How much of a series an edit or delete affects."""

    SINGLE = "single"
    FUTURE = "future"
    ALL = "all"


class RecurrenceRule(BaseModel):
    """Recurrence rule attached to a series."""

    kind: RecurrenceKind = Field(default=RecurrenceKind.NONE, description="Recurrence frequency")
    interval: int = Field(default=1, description="Step in days/weeks/months/years")
    days_of_week: frozenset[int] = Field(
        default_factory=frozenset, description="Weekly days, Sunday=0 ... Saturday=6"
    )
    end_date: Optional[date] = Field(default=None, description="Inclusive last date")
    is_lunar: bool = Field(default=False, description="Yearly rule anchored on a lunar date")

    model_config = ConfigDict(frozen=True)

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: int) -> int:
        if value < 1:
            raise InvalidRuleError(f"Recurrence interval must be >= 1, got {value}")
        return value

    @field_validator("days_of_week")
    @classmethod
    def _check_days_of_week(cls, value: frozenset[int]) -> frozenset[int]:
        invalid = sorted(day for day in value if not 0 <= day <= 6)
        if invalid:
            raise InvalidRuleError(f"Weekday indexes must be within 0-6, got {invalid}")
        return value

    @property
    def is_recurring(self) -> bool:
        return self.kind != RecurrenceKind.NONE

    @field_serializer("days_of_week")
    def serialize_days_of_week(self, days: frozenset[int]) -> list[int]:
        return sorted(days)

    @field_serializer("end_date", when_used="unless-none")
    def serialize_end_date(self, value: date) -> str:
        return format_local(value)


class AppointmentPayload(BaseModel):
    """Descriptive appointment fields copied verbatim onto every occurrence.

    Unknown fields are kept so records from other tools round-trip unchanged.
    """

    title: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    location: Optional[str] = None
    meeting_type: Optional[str] = Field(default=None, description="Appointment category")
    notes: str = ""

    model_config = ConfigDict(frozen=True, extra="allow")


class Series(BaseModel):
    """A persisted appointment: one-off or recurring."""

    id: str = Field(..., description="Stable unique identifier")
    anchor_date: date = Field(..., description="Reference date recurrence offsets are computed from")
    time: str = Field(..., description="Start time of day, HH:MM")
    end_time: Optional[str] = Field(default=None, description="End time of day, HH:MM")
    rule: RecurrenceRule = Field(default_factory=RecurrenceRule)
    exceptions: frozenset[date] = Field(
        default_factory=frozenset, description="Suppressed occurrence dates"
    )
    status: SeriesStatus = SeriesStatus.SCHEDULED
    payload: AppointmentPayload = Field(default_factory=AppointmentPayload)
    version: int = Field(default=1, ge=1, description="Bumped on every mutation")

    model_config = ConfigDict(frozen=True)

    @field_validator("time", "end_time")
    @classmethod
    def _check_time(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parse_time(value)
        return value.strip()

    @property
    def is_recurring(self) -> bool:
        return self.rule.is_recurring

    @field_serializer("anchor_date")
    def serialize_anchor_date(self, value: date) -> str:
        return format_local(value)

    @field_serializer("exceptions")
    def serialize_exceptions(self, values: frozenset[date]) -> list[str]:
        return [format_local(value) for value in sorted(values)]

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-ready persistence record for this series."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Series":
        """Build a series from a record produced by ``to_record``."""
        return cls.model_validate(record)

    @classmethod
    def from_legacy_record(cls, record: dict[str, Any]) -> "Series":
        """Build a series from a flat camelCase appointment record.

        Missing arrays are normalized to empty and a missing interval to 1,
        matching how those records were normalized when loaded.
        """
        kind = record.get("recurrenceType") or RecurrenceKind.NONE.value
        rule = RecurrenceRule(
            kind=kind,
            interval=record.get("recurrenceInterval") or 1,
            days_of_week=frozenset(record.get("recurrenceDays") or []),
            end_date=record.get("recurrenceEndDate") or None,
            is_lunar=bool(record.get("isLunar", False)),
        )
        payload = AppointmentPayload(
            title=record.get("title"),
            customer_id=record.get("customerId"),
            customer_name=record.get("customerName"),
            location=record.get("location"),
            meeting_type=record.get("meetingType"),
            notes=record.get("notes") or "",
        )
        return cls(
            id=record["id"],
            anchor_date=record["date"],
            time=record.get("time") or "00:00",
            end_time=record.get("endTime") or None,
            rule=rule,
            exceptions=frozenset(record.get("exceptions") or []),
            status=record.get("status") or SeriesStatus.SCHEDULED.value,
            payload=payload,
        )


class Occurrence(BaseModel):
    """One concrete dated instance of a series. Never persisted."""

    series_id: str
    occurrence_date: date
    time: str
    end_time: Optional[str] = None
    payload: AppointmentPayload
    status: SeriesStatus
    is_recurring: bool = False

    model_config = ConfigDict(frozen=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def occurrence_id(self) -> str:
        """Display/selection identity, unique across series and dates."""
        if not self.is_recurring:
            return self.series_id
        return f"{self.series_id}@{format_local(self.occurrence_date)}"

    @field_serializer("occurrence_date")
    def serialize_occurrence_date(self, value: date) -> str:
        return format_local(value)

    @classmethod
    def from_series(cls, series: Series, occurrence_date: date) -> "Occurrence":
        return cls(
            series_id=series.id,
            occurrence_date=occurrence_date,
            time=series.time,
            end_time=series.end_time,
            payload=series.payload,
            status=series.status,
            is_recurring=series.is_recurring,
        )


class ExpansionReport(BaseModel):
    """Expansion output plus whether the safety cap cut it short."""

    occurrences: list[Occurrence] = Field(default_factory=list)
    truncated: bool = Field(default=False, description="Safety cap reached before window end")
    scanned_until: Optional[date] = Field(
        default=None, description="Last date (or year start) evaluated before stopping"
    )
    iterations: int = 0


class UpdateInPlace(BaseModel):
    """The series keeps its id and is saved over its previous record."""

    kind: Literal["update_in_place"] = "update_in_place"
    series: Series

    model_config = ConfigDict(frozen=True)

    @property
    def records_to_save(self) -> list[Series]:
        return [self.series]

    @property
    def ids_to_delete(self) -> list[str]:
        return []


class Split(BaseModel):
    """The original is rewritten and a new series is inserted beside it."""

    kind: Literal["split"] = "split"
    truncated_original: Series
    new_series: Series

    model_config = ConfigDict(frozen=True)

    @property
    def records_to_save(self) -> list[Series]:
        return [self.truncated_original, self.new_series]

    @property
    def ids_to_delete(self) -> list[str]:
        return []


class DeleteSeries(BaseModel):
    """The whole series record must be removed."""

    kind: Literal["delete_series"] = "delete_series"
    series_id: str

    model_config = ConfigDict(frozen=True)

    @property
    def records_to_save(self) -> list[Series]:
        return []

    @property
    def ids_to_delete(self) -> list[str]:
        return [self.series_id]


EditResult = Union[UpdateInPlace, Split]
DeleteResult = Union[UpdateInPlace, DeleteSeries]
