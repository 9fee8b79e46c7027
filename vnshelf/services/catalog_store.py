"""Holder for the catalog data of the currently viewed title.

This module provides the CatalogStore class. It keeps the last successful
detail, character list and user-list record for one title, plus the
current catalog search results. Caching itself is the backend's job; the
store only forwards the caller's refresh intent.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from PyQt6.QtCore import QObject, pyqtSignal

from vnshelf.core.backend import CatalogBackend
from vnshelf.core.errors import BackendError
from vnshelf.core.models import (
    AuthInfo,
    CatalogCharacter,
    CatalogDetail,
    CatalogSearchResult,
    UserListEntry,
)

logger = logging.getLogger("vnshelf.catalog_store")

__all__ = ["CatalogStore"]


class CatalogStore(QObject):
    """Typed, stateful holder of the last successful catalog results.

    Reads never clobber held data on failure. User-list mutations are
    always followed by a re-read, and the held record is only ever
    replaced by what the server returned.

    Signals:
        detail_changed: Detail was replaced or cleared.
        characters_changed: Character list was replaced or cleared.
        user_entry_changed: User-list record was replaced or cleared.
        search_results_changed: Search results were replaced or cleared.
        searching_changed: Emitted with the new searching flag.
        refreshing_changed: Emitted with the new refreshing flag.
        auth_changed: Emitted with the AuthInfo (or None) after an auth check.
        operation_failed: Emitted with (operation, error_message).
    """

    detail_changed = pyqtSignal()
    characters_changed = pyqtSignal()
    user_entry_changed = pyqtSignal()
    search_results_changed = pyqtSignal()
    searching_changed = pyqtSignal(bool)
    refreshing_changed = pyqtSignal(bool)
    auth_changed = pyqtSignal(object)
    operation_failed = pyqtSignal(str, str)

    def __init__(self, backend: CatalogBackend, parent: Any = None):
        """Initializes the store.

        Args:
            backend: Catalog access (normally a VndbClient).
            parent: Parent QObject.
        """
        super().__init__(parent)
        self._backend = backend

        self._catalog_id: str | None = None
        self._detail: CatalogDetail | None = None
        self._characters: tuple[CatalogCharacter, ...] = ()
        self._user_entry: UserListEntry | None = None
        self._user_entry_confirmed = True

        self._search_results: tuple[CatalogSearchResult, ...] = ()
        self._searching = False
        self._refreshing = False
        self._auth_user: AuthInfo | None = None

    # ── State ──────────────────────────────────────────

    @property
    def catalog_id(self) -> str | None:
        """Id of the title opened with ``open_title``."""
        return self._catalog_id

    @property
    def detail(self) -> CatalogDetail | None:
        return self._detail

    @property
    def characters(self) -> tuple[CatalogCharacter, ...]:
        return self._characters

    @property
    def user_entry(self) -> UserListEntry | None:
        return self._user_entry

    @property
    def user_entry_confirmed(self) -> bool:
        """False when the last user-list read failed.

        The held ``user_entry`` is then the last value the server confirmed,
        which may predate a mutation that was just sent.
        """
        return self._user_entry_confirmed

    @property
    def search_results(self) -> tuple[CatalogSearchResult, ...]:
        return self._search_results

    @property
    def is_searching(self) -> bool:
        return self._searching

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    @property
    def auth_user(self) -> AuthInfo | None:
        return self._auth_user

    @property
    def has_credentials(self) -> bool:
        return self._backend.has_credentials

    def _fail(self, operation: str, error: BackendError) -> None:
        logger.warning("%s failed: %s", operation, error)
        self.operation_failed.emit(operation, str(error))

    # ── Reads ──────────────────────────────────────────

    def fetch_detail(self, catalog_id: str, *, force_refresh: bool) -> CatalogDetail | None:
        """Fetches title detail.

        Args:
            catalog_id: Catalog id of the title.
            force_refresh: True bypasses the backend cache.

        Returns:
            The detail, or None on failure (the held detail is kept).
        """
        try:
            detail = self._backend.fetch_catalog_detail(catalog_id, force_refresh)
        except BackendError as e:
            self._fail("fetch_detail", e)
            return None

        self._detail = detail
        self.detail_changed.emit()
        return detail

    def fetch_characters(self, catalog_id: str, *, force_refresh: bool) -> list[CatalogCharacter] | None:
        """Fetches the characters of a title.

        Args:
            catalog_id: Catalog id of the title.
            force_refresh: True bypasses the backend cache.

        Returns:
            The characters, or None on failure (the held list is kept).
        """
        try:
            characters = list(self._backend.fetch_catalog_characters(catalog_id, force_refresh))
        except BackendError as e:
            self._fail("fetch_characters", e)
            return None

        self._characters = tuple(characters)
        self.characters_changed.emit()
        return characters

    def _read_user_entry(self, catalog_id: str) -> bool:
        """Re-reads the user-list record; True when the server answered."""
        try:
            entry = self._backend.fetch_user_entry(catalog_id)
        except BackendError as e:
            self._user_entry_confirmed = False
            self._fail("fetch_user_entry", e)
            self.user_entry_changed.emit()
            return False

        self._user_entry = entry
        self._user_entry_confirmed = True
        self.user_entry_changed.emit()
        return True

    def fetch_user_entry(self, catalog_id: str) -> UserListEntry | None:
        """Fetches the user's list record for a title.

        Without credentials nothing is requested. A title that is not on
        the user's list yields None, which is not an error.

        Args:
            catalog_id: Catalog id of the title.

        Returns:
            The held record after the read.
        """
        if not self._backend.has_credentials:
            logger.debug("No catalog credentials, skipping user entry for %s", catalog_id)
            return None
        self._read_user_entry(catalog_id)
        return self._user_entry

    def open_title(self, catalog_id: str, force_refresh: bool = False) -> bool:
        """Loads everything the detail view needs for a title.

        Switching to another title drops the previous title's data first.

        Args:
            catalog_id: Catalog id of the title.
            force_refresh: True bypasses the backend cache.

        Returns:
            True if the detail was loaded.
        """
        if catalog_id != self._catalog_id:
            self.clear_detail()
        self._catalog_id = catalog_id

        detail = self.fetch_detail(catalog_id, force_refresh=force_refresh)
        self.fetch_characters(catalog_id, force_refresh=force_refresh)
        self.fetch_user_entry(catalog_id)
        return detail is not None

    def refresh(self) -> bool:
        """Re-opens the current title, bypassing the backend cache."""
        if self._catalog_id is None:
            return False

        self._refreshing = True
        self.refreshing_changed.emit(True)
        try:
            return self.open_title(self._catalog_id, force_refresh=True)
        finally:
            self._refreshing = False
            self.refreshing_changed.emit(False)

    # ── User-list mutations ────────────────────────────

    def _mutate(self, operation: str, catalog_id: str, command: Callable[[], None]) -> bool:
        """Runs a mutation and then re-reads the record from the server.

        Returns:
            True only if both the mutation and the re-read succeeded.
        """
        try:
            command()
        except BackendError as e:
            self._fail(operation, e)
            return False

        return self._read_user_entry(catalog_id)

    def set_status(self, catalog_id: str, label_id: int) -> bool:
        """Sets the list status label (1-6) of a title."""
        return self._mutate(
            "set_status", catalog_id, lambda: self._backend.set_user_status(catalog_id, label_id)
        )

    def set_vote(self, catalog_id: str, vote: int) -> bool:
        """Sets the user's vote (10..100) for a title.

        Args:
            catalog_id: Catalog id of the title.
            vote: Vote on the catalog's 10..100 scale.

        Returns:
            True if the vote was stored and read back.
        """
        return self._mutate("set_vote", catalog_id, lambda: self._backend.set_user_vote(catalog_id, vote))

    def remove_vote(self, catalog_id: str) -> bool:
        return self._mutate("remove_vote", catalog_id, lambda: self._backend.remove_user_vote(catalog_id))

    # ── Search ─────────────────────────────────────────

    def search_catalog(self, query: str) -> list[CatalogSearchResult]:
        """Runs a catalog search without touching store state.

        Safe to call from a worker thread.

        Raises:
            BackendError: When the search fails.
        """
        return list(self._backend.search_catalog(query))

    def apply_search_results(self, results: list[CatalogSearchResult] | tuple[CatalogSearchResult, ...]) -> None:
        self._search_results = tuple(results)
        self.search_results_changed.emit()

    def set_searching(self, searching: bool) -> None:
        if searching != self._searching:
            self._searching = searching
            self.searching_changed.emit(searching)

    def clear_search(self) -> None:
        """Drops search results and the searching flag."""
        if self._search_results:
            self._search_results = ()
            self.search_results_changed.emit()
        self.set_searching(False)

    def clear_detail(self) -> None:
        """Drops the held detail, characters and user record."""
        self._catalog_id = None
        if self._detail is not None:
            self._detail = None
            self.detail_changed.emit()
        if self._characters:
            self._characters = ()
            self.characters_changed.emit()
        if self._user_entry is not None or not self._user_entry_confirmed:
            self._user_entry = None
            self._user_entry_confirmed = True
            self.user_entry_changed.emit()

    # ── Account and cache ──────────────────────────────

    def check_auth(self) -> AuthInfo | None:
        """Validates the configured token.

        Returns:
            The account behind the token, or None when there is no token or
            the check failed.
        """
        auth: AuthInfo | None = None
        if self._backend.has_credentials:
            try:
                auth = self._backend.check_auth()
            except BackendError as e:
                self._fail("check_auth", e)

        self._auth_user = auth
        self.auth_changed.emit(auth)
        return auth

    def clear_cache(self, catalog_id: str | None = None) -> bool:
        """Drops the backend's cached data for one title, or for all titles."""
        try:
            self._backend.clear_cache(catalog_id)
        except BackendError as e:
            self._fail("clear_cache", e)
            return False
        return True
