"""JSON-backed series repository with atomic writes.

The engine never performs I/O itself. This module is a convenience for callers:
a repository protocol, a file-backed implementation, and commit() to persist
the results returned by apply_edit/delete/set_occurrence_status.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol, Union

from pydantic import ValidationError

from .exceptions import InvalidRuleError
from .models import DeleteSeries, Series, Split, UpdateInPlace

logger = logging.getLogger(__name__)

MutationResult = Union[UpdateInPlace, Split, DeleteSeries]


class SeriesRepository(Protocol):
    """Persistence operations the engine's callers rely on."""

    def get(self, series_id: str) -> Optional[Series]: ...

    def list_all(self) -> list[Series]: ...

    def save(self, series: Series) -> None: ...

    def delete(self, series_id: str) -> bool: ...


class JsonSeriesStore:
    """Persistent series store.

    The on-disk format is a JSON object mapping series id -> series record
    (see Series.to_record()). Records that fail validation on load are skipped
    with a warning rather than failing the whole store.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        """Create a JsonSeriesStore.

        Args:
            path: Path to the JSON file; created on first save
        """
        self._path = Path(path)
        self._lock = threading.Lock()
        self._series: dict[str, Series] = {}
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Load JSON from disk (if it exists) and replace the in-memory state."""
        with self._lock:
            if not self._path.exists():
                logger.debug("Series store file not found; starting empty: %s", self._path)
                self._series = {}
                return

            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
                if not isinstance(data, dict):
                    raise ValueError("series store JSON root must be an object")  # noqa: TRY004
            except (OSError, ValueError) as exc:
                logger.warning("Failed to read series store %s: %s", self._path, exc)
                self._series = {}
                return

            loaded: dict[str, Series] = {}
            for series_id, record in data.items():
                if not isinstance(record, dict):
                    logger.warning("Skipping non-object record %r in %s", series_id, self._path)
                    continue
                try:
                    series = Series.from_record(record)
                except (ValidationError, InvalidRuleError) as exc:
                    logger.warning("Skipping invalid series record %r: %s", series_id, exc)
                    continue
                loaded[series.id] = series
            self._series = loaded
            logger.debug("Loaded %d series from %s", len(loaded), self._path)

    def get(self, series_id: str) -> Optional[Series]:
        with self._lock:
            return self._series.get(series_id)

    def list_all(self) -> list[Series]:
        with self._lock:
            return sorted(self._series.values(), key=lambda s: (s.anchor_date, s.time, s.id))

    def save(self, series: Series) -> None:
        with self._lock:
            self._series[series.id] = series
            self._write_locked()

    def delete(self, series_id: str) -> bool:
        """Remove a series. Returns False if it was not stored."""
        with self._lock:
            if series_id not in self._series:
                return False
            del self._series[series_id]
            self._write_locked()
            return True

    def _write_locked(self) -> None:
        """Write the store atomically. Caller must hold the lock."""
        payload = {series_id: s.to_record() for series_id, s in sorted(self._series.items())}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".series-", suffix=".json", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except Exception:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise


def commit(repository: SeriesRepository, result: MutationResult) -> None:
    """Persist an edit/delete result: save updated/new records, delete removed ids."""
    for series in result.records_to_save:
        repository.save(series)
    for series_id in result.ids_to_delete:
        if not repository.delete(series_id):
            logger.warning("Series %s was already absent from the repository", series_id)
    logger.debug(
        "Committed %s: saved %d, deleted %d",
        result.kind,
        len(result.records_to_save),
        len(result.ids_to_delete),
    )
