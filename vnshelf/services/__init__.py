from __future__ import annotations

from vnshelf.services.catalog_store import CatalogStore
from vnshelf.services.filter_service import LibraryFilterService, LibraryViewPreferences
from vnshelf.services.game_store import GameLifecycleStore
from vnshelf.services.search_service import SearchDebouncer
from vnshelf.services.update_service import UpdateService, UpdateSession, UpdateStatus

__all__: list[str] = [
    "CatalogStore",
    "GameLifecycleStore",
    "LibraryFilterService",
    "LibraryViewPreferences",
    "SearchDebouncer",
    "UpdateService",
    "UpdateSession",
    "UpdateStatus",
]
