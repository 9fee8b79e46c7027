"""Abstract backend command surface consumed by the stores.

Every method may block and may raise ``BackendError``. Stores decide
whether to call them directly or on a worker thread.

Three independent interfaces keep hosts free to mix implementations:
library persistence and process tracking are host-provided, the catalog
is served by ``VndbClient`` and the update channel by ``ReleaseClient``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from vnshelf.core.models import (
    AuthInfo,
    CatalogCharacter,
    CatalogDetail,
    CatalogSearchResult,
    LibraryEntry,
    UpdateMetadata,
    UpdateProgressEvent,
    UserListEntry,
)

__all__ = ["CatalogBackend", "LibraryBackend", "UpdateBackend"]


class LibraryBackend(ABC):
    """Local library persistence plus the single tracked process."""

    @abstractmethod
    def get_all_library(self) -> list[LibraryEntry]:
        """Returns the full persisted library snapshot."""

    @abstractmethod
    def add_local(self, path: str) -> LibraryEntry:
        """Registers an executable and returns the new record."""

    @abstractmethod
    def remove_entry(self, entry_id: str) -> None:
        """Deletes a record."""

    @abstractmethod
    def set_hidden(self, entry_id: str, hidden: bool) -> None:
        """Persists the visibility flag of a record."""

    @abstractmethod
    def update_entry(self, entry: LibraryEntry) -> None:
        """Replaces a persisted record with ``entry``."""

    @abstractmethod
    def launch(self, entry_id: str) -> None:
        """Starts the executable and begins tracking it.

        The backend is the authority on whether a second launch is allowed
        while another process is tracked.
        """

    @abstractmethod
    def stop_tracking(self) -> int:
        """Abandons tracking without killing the process.

        Returns:
            Minutes recorded for the abandoned session.
        """

    @abstractmethod
    def poll_running(self) -> str | None:
        """Returns the id of the tracked process if it is still alive."""

    def elapsed_seconds(self) -> int:
        """Seconds since the tracked process started, 0 when none is tracked."""
        return 0


class CatalogBackend(ABC):
    """Remote catalog (VNDB) access with a backend-owned cache."""

    @property
    @abstractmethod
    def has_credentials(self) -> bool:
        """True when an API token is configured for user-list commands."""

    @abstractmethod
    def search_catalog(self, query: str) -> list[CatalogSearchResult]:
        """Free-text title search."""

    @abstractmethod
    def fetch_catalog_detail(self, catalog_id: str, force_refresh: bool) -> CatalogDetail:
        """Returns title detail; ``force_refresh`` bypasses the backend cache."""

    @abstractmethod
    def fetch_catalog_characters(self, catalog_id: str, force_refresh: bool) -> list[CatalogCharacter]:
        """Returns the characters of a title; ``force_refresh`` bypasses the cache."""

    @abstractmethod
    def fetch_user_entry(self, catalog_id: str) -> UserListEntry | None:
        """Returns the user's list record, or None when the title is not listed."""

    @abstractmethod
    def set_user_status(self, catalog_id: str, label_id: int) -> None:
        """Sets the user's list status label."""

    @abstractmethod
    def set_user_vote(self, catalog_id: str, vote: int) -> None:
        """Sets the user's vote (10..100)."""

    @abstractmethod
    def remove_user_vote(self, catalog_id: str) -> None:
        """Clears the user's vote."""

    @abstractmethod
    def check_auth(self) -> AuthInfo:
        """Validates the configured token and returns the account behind it."""

    def clear_cache(self, catalog_id: str | None = None) -> None:
        """Drops cached catalog data for one title, or everything."""


class UpdateBackend(ABC):
    """Update-artifact host."""

    @abstractmethod
    def check_for_update(self) -> UpdateMetadata | None:
        """Returns metadata of a newer release, or None when up to date."""

    @abstractmethod
    def download_and_install_update(
        self,
        metadata: UpdateMetadata,
        on_progress: Callable[[UpdateProgressEvent], None],
    ) -> None:
        """Downloads and installs ``metadata``, reporting chunk-level progress."""

    @abstractmethod
    def restart(self) -> None:
        """Restarts into the installed update."""
