# vnshelf/services/filter_service.py

"""Library view filter service.

Provides LibraryViewPreferences (frozen dataclass) and
LibraryFilterService, which turns the raw library collection into the
ordered view shown in the library grid. Sort and visibility preferences
persist through Config; the search query lives only in memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Iterable, Sequence

from vnshelf.services.filter_constants import ALL_SORT_KEYS, SortDirection, SortKey

if TYPE_CHECKING:
    from vnshelf.config import Config
    from vnshelf.core.models import LibraryEntry

logger = logging.getLogger("vnshelf.filter_service")

__all__ = [
    "ALL_SORT_KEYS",
    "LibraryFilterService",
    "LibraryViewPreferences",
    "SortDirection",
    "SortKey",
    "filter_library",
    "sort_entries",
]


@dataclass(frozen=True)
class LibraryViewPreferences:
    """Immutable snapshot of the durable view preferences.

    Attributes:
        sort_key: Current sort key (default: TITLE).
        sort_direction: Only affects TITLE, see ``sort_entries``.
        show_hidden: Whether hidden entries are listed.
    """

    sort_key: SortKey = SortKey.TITLE
    sort_direction: SortDirection = SortDirection.ASC
    show_hidden: bool = False


def sort_entries(entries: Iterable[LibraryEntry], preferences: LibraryViewPreferences) -> list[LibraryEntry]:
    """Stable sort of library entries; ties keep their collection order.

    TITLE sorts A-Z and DESC reverses it. LAST_PLAYED (most recent first,
    never-played as the epoch) and PLAY_TIME (most played first) are
    descending by default and ignore ``sort_direction``: DESC on a time key
    already means "largest first", and ASC keeps that convenience default.

    Args:
        entries: The entries to sort.
        preferences: Supplies the sort key and direction.

    Returns:
        A new sorted list.
    """
    if preferences.sort_key == SortKey.PLAY_TIME:
        return sorted(entries, key=lambda e: e.play_time, reverse=True)
    if preferences.sort_key == SortKey.LAST_PLAYED:
        return sorted(entries, key=lambda e: e.last_played_timestamp, reverse=True)
    # Default: TITLE. reverse=True keeps equal titles in collection order.
    return sorted(
        entries,
        key=lambda e: e.title.lower(),
        reverse=preferences.sort_direction == SortDirection.DESC,
    )


def filter_library(
    entries: Iterable[LibraryEntry],
    preferences: LibraryViewPreferences,
    query: str = "",
) -> tuple[LibraryEntry, ...]:
    """Applies the full view pipeline.

    Filter pipeline:
    1. Hidden entries are dropped unless ``show_hidden``.
    2. Case-insensitive substring match of ``query`` on the title.
    3. Stable sort (see ``sort_entries``).

    Args:
        entries: The raw library collection.
        preferences: Durable view preferences.
        query: Free-text search; blank matches everything.

    Returns:
        The ordered view.
    """
    result = list(entries)

    if not preferences.show_hidden:
        result = [e for e in result if not e.is_hidden]

    needle = query.strip().lower()
    if needle:
        result = [e for e in result if needle in e.title.lower()]

    return tuple(sort_entries(result, preferences))


class LibraryFilterService:
    """Holds view preferences plus the search query and memoizes the view.

    ``apply()`` recomputes only when the collection, the preferences or the
    query differ from the previous call.
    """

    def __init__(self, settings: Config | None = None) -> None:
        """Initializes the service and restores persisted preferences.

        Args:
            settings: Config to load from and persist to (default: global config).
        """
        if settings is None:
            from vnshelf.config import config as settings

        self._config = settings
        self._preferences = self._load_preferences()
        self._query = ""

        self._memo_key: tuple | None = None
        self._memo_result: tuple[LibraryEntry, ...] = ()

    @property
    def preferences(self) -> LibraryViewPreferences:
        return self._preferences

    @property
    def query(self) -> str:
        return self._query

    def _load_preferences(self) -> LibraryViewPreferences:
        """Reads the persisted preferences, falling back to defaults on bad values."""
        try:
            sort_key = SortKey(self._config.LIBRARY_SORT_KEY)
        except ValueError:
            logger.warning("Unknown persisted sort key: %s, falling back to title", self._config.LIBRARY_SORT_KEY)
            sort_key = SortKey.TITLE
        try:
            direction = SortDirection(self._config.LIBRARY_SORT_DIRECTION)
        except ValueError:
            logger.warning("Unknown persisted sort direction: %s", self._config.LIBRARY_SORT_DIRECTION)
            direction = SortDirection.ASC
        return LibraryViewPreferences(
            sort_key=sort_key,
            sort_direction=direction,
            show_hidden=bool(self._config.LIBRARY_SHOW_HIDDEN),
        )

    def _store(self, preferences: LibraryViewPreferences) -> None:
        """Replaces the preferences and persists them if they changed."""
        if preferences == self._preferences:
            return
        self._preferences = preferences
        self._config.LIBRARY_SORT_KEY = preferences.sort_key.value
        self._config.LIBRARY_SORT_DIRECTION = preferences.sort_direction.value
        self._config.LIBRARY_SHOW_HIDDEN = preferences.show_hidden
        self._config.save()

    def set_query(self, query: str) -> None:
        """Sets the in-memory search query (never persisted)."""
        self._query = query

    def set_sort_key(self, key: SortKey | str) -> None:
        """Sets the sort key.

        Args:
            key: A SortKey or one of "title", "lastPlayed", "playTime".
        """
        if not isinstance(key, SortKey):
            if key not in ALL_SORT_KEYS:
                logger.warning("Unknown sort key: %s, falling back to title", key)
                key = SortKey.TITLE.value
            key = SortKey(key)
        self._store(replace(self._preferences, sort_key=key))

    def set_sort_direction(self, direction: SortDirection | str) -> None:
        if not isinstance(direction, SortDirection):
            try:
                direction = SortDirection(direction)
            except ValueError:
                logger.warning("Unknown sort direction: %s", direction)
                return
        self._store(replace(self._preferences, sort_direction=direction))

    def toggle_sort_direction(self) -> SortDirection:
        """Flips between ASC and DESC and returns the new direction."""
        flipped = SortDirection.DESC if self._preferences.sort_direction == SortDirection.ASC else SortDirection.ASC
        self._store(replace(self._preferences, sort_direction=flipped))
        return flipped

    def set_show_hidden(self, show: bool) -> None:
        self._store(replace(self._preferences, show_hidden=bool(show)))

    def restore_preferences(self, preferences: LibraryViewPreferences) -> None:
        """Replaces the preferences with the given snapshot.

        Args:
            preferences: A frozen LibraryViewPreferences to restore from.
        """
        self._store(preferences)

    def apply(self, entries: Sequence[LibraryEntry]) -> tuple[LibraryEntry, ...]:
        """Returns the filtered and sorted view of ``entries``.

        Args:
            entries: The raw library collection.

        Returns:
            The ordered view, reused from the previous call when no input changed.
        """
        key = (tuple(entries), self._preferences, self._query)
        if key == self._memo_key:
            return self._memo_result

        self._memo_result = filter_library(key[0], self._preferences, self._query)
        self._memo_key = key
        return self._memo_result
