"""Version-keyed memoization of per-series expansions."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from datetime import date
from typing import Callable, Optional

from .config_manager import EngineSettings
from .models import Occurrence, Series

logger = logging.getLogger(__name__)

CacheKey = tuple[str, int, date, date]


class OccurrenceCache:
    """Bounded LRU cache of unfiltered expansions.

    Entries are keyed by (series_id, series_version, window_start, window_end).
    Seeing a newer version of a series drops every entry for its older
    versions, so edited series are never served stale occurrences. Filters
    are applied by the caller after lookup and never stored.

    One cache should be used with one lunar converter; the converter is not
    part of the key.
    """

    def __init__(self, max_entries: Optional[int] = None, settings: Optional[EngineSettings] = None):
        """Create a cache.

        Args:
            max_entries: Maximum cached windows (defaults to settings.occurrence_cache_size)
            settings: Engine settings used for the default size
        """
        settings = settings or EngineSettings()
        self.max_entries = max_entries if max_entries is not None else settings.occurrence_cache_size
        if self.max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._lock = threading.Lock()
        self._entries: OrderedDict[CacheKey, tuple[Occurrence, ...]] = OrderedDict()
        self._versions: dict[str, int] = {}
        self._hits = 0
        self._misses = 0

    def get_or_expand(
        self,
        series: Series,
        window_start: date,
        window_end: date,
        expand_fn: Callable[[], list[Occurrence]],
    ) -> list[Occurrence]:
        """Return cached occurrences for the window, computing them on a miss.

        Args:
            series: Series being expanded
            window_start: Window start (inclusive)
            window_end: Window end (inclusive)
            expand_fn: Zero-argument callable producing the unfiltered expansion

        Returns:
            A new list of occurrences (callers may modify it freely)
        """
        key: CacheKey = (series.id, series.version, window_start, window_end)
        with self._lock:
            self._observe_version(series)
            cached = self._entries.get(key)
            if cached is not None:
                self._entries.move_to_end(key)
                self._hits += 1
                return list(cached)
            self._misses += 1

        occurrences = expand_fn()

        with self._lock:
            # Another caller may have stored a newer version meanwhile
            if self._versions.get(series.id, series.version) <= series.version:
                self._entries[key] = tuple(occurrences)
                self._entries.move_to_end(key)
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("Evicted cached expansion %s", evicted)
        return list(occurrences)

    def invalidate(self, series_id: str) -> int:
        """Drop every cached window for series_id and return how many were removed."""
        with self._lock:
            removed = self._drop_series(series_id)
            self._versions.pop(series_id, None)
        if removed:
            logger.debug("Invalidated %d cached windows for series %s", removed, series_id)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._versions.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "size": len(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _observe_version(self, series: Series) -> None:
        known = self._versions.get(series.id)
        if known is None or series.version > known:
            if known is not None:
                removed = self._drop_series(series.id)
                logger.debug(
                    "Series %s moved from version %d to %d; dropped %d cached windows",
                    series.id,
                    known,
                    series.version,
                    removed,
                )
            self._versions[series.id] = series.version

    def _drop_series(self, series_id: str) -> int:
        stale = [key for key in self._entries if key[0] == series_id]
        for key in stale:
            del self._entries[key]
        return len(stale)
