"""appointment_engine - recurring appointment expansion and mutation engine.

Expands persisted appointment series into dated occurrences for any local-date
window, and computes the series records that result from editing or deleting a
single occurrence, an occurrence and all later ones, or a whole series.
"""

__version__ = "0.1.0"

from .config_manager import ConfigManager, EngineSettings
from .engine_logging import configure_engine_logging
from .exceptions import (
    ConverterUnavailableError,
    EditError,
    EngineError,
    InvalidOccurrenceError,
    InvalidRuleError,
)
from .lunar import KoreanLunarConverter, LunarConverter, SolarDate, get_default_converter
from .models import (
    AppointmentPayload,
    DeleteResult,
    DeleteSeries,
    EditResult,
    EditScope,
    ExpansionReport,
    Occurrence,
    RecurrenceKind,
    RecurrenceRule,
    Series,
    SeriesStatus,
    Split,
    UpdateInPlace,
)
from .occurrence_cache import OccurrenceCache
from .occurrence_expander import (
    OccurrenceExpander,
    exclude_categories,
    expand,
    expand_all,
    expand_with_report,
    is_occurrence,
    validate_rule,
)
from .series_mutator import SeriesMutator, apply_edit, delete, set_occurrence_status
from .series_store import JsonSeriesStore, SeriesRepository, commit

__all__ = [
    "AppointmentPayload",
    "ConfigManager",
    "ConverterUnavailableError",
    "DeleteResult",
    "DeleteSeries",
    "EditError",
    "EditResult",
    "EditScope",
    "EngineError",
    "EngineSettings",
    "ExpansionReport",
    "InvalidOccurrenceError",
    "InvalidRuleError",
    "JsonSeriesStore",
    "KoreanLunarConverter",
    "LunarConverter",
    "Occurrence",
    "OccurrenceCache",
    "OccurrenceExpander",
    "RecurrenceKind",
    "RecurrenceRule",
    "Series",
    "SeriesMutator",
    "SeriesRepository",
    "SeriesStatus",
    "SolarDate",
    "Split",
    "UpdateInPlace",
    "apply_edit",
    "commit",
    "configure_engine_logging",
    "delete",
    "exclude_categories",
    "expand",
    "expand_all",
    "expand_with_report",
    "get_default_converter",
    "is_occurrence",
    "set_occurrence_status",
    "validate_rule",
]
