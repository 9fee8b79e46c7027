"""Library state and the lifecycle of the one tracked game process.

This module provides the GameLifecycleStore class which owns the library
collection and the id of the running game, and folds process-exit
notifications back into the affected record.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

from PyQt6.QtCore import QObject, pyqtSignal

from vnshelf.core.backend import LibraryBackend
from vnshelf.core.errors import BackendError
from vnshelf.core.events import ProcessEvents, Subscription
from vnshelf.core.models import CatalogSearchResult, LibraryEntry

logger = logging.getLogger("vnshelf.game_store")

__all__ = ["GameLifecycleStore"]


class GameLifecycleStore(QObject):
    """Owner of the library collection and the running-game slot.

    The running id is written only by ``launch``, ``stop_tracking``,
    ``on_exit`` and the reconciliation in ``load``. Collection mutations
    other than ``on_exit`` are applied only after the backend confirms them.
    Both fields are updated before any signal is emitted, so a view never
    sees one without the other.

    Signals:
        games_changed: The collection was replaced or patched.
        running_changed: Emitted with the new running id (or None).
        loading_changed: Emitted with the new loading flag.
        operation_failed: Emitted with (operation, error_message) when the
            backend rejects a command.
    """

    games_changed = pyqtSignal()
    running_changed = pyqtSignal(object)
    loading_changed = pyqtSignal(bool)
    operation_failed = pyqtSignal(str, str)

    def __init__(self, backend: LibraryBackend, events: ProcessEvents | None = None, parent: Any = None):
        """Initializes the store.

        Args:
            backend: Library persistence and process tracking.
            events: Channel delivering process-exit notifications.
            parent: Parent QObject.
        """
        super().__init__(parent)
        self._backend = backend
        self._games: list[LibraryEntry] = []
        self._running_id: str | None = None
        self._loading = False

        self._subscription: Subscription | None = None
        if events is not None:
            self._subscription = events.subscribe_exited(self.on_exit)

    # ── State ──────────────────────────────────────────

    @property
    def games(self) -> tuple[LibraryEntry, ...]:
        return tuple(self._games)

    @property
    def running_id(self) -> str | None:
        return self._running_id

    @property
    def loading(self) -> bool:
        return self._loading

    def get(self, entry_id: str) -> LibraryEntry | None:
        """Returns the entry with the given id, or None."""
        for entry in self._games:
            if entry.id == entry_id:
                return entry
        return None

    def is_running(self, entry_id: str) -> bool:
        return self._running_id is not None and self._running_id == entry_id

    def elapsed_seconds(self) -> int:
        """Seconds the running game has been tracked, 0 when nothing runs."""
        if self._running_id is None:
            return 0
        try:
            return self._backend.elapsed_seconds()
        except BackendError as e:
            logger.debug("Could not read elapsed time: %s", e)
            return 0

    # ── Internals ──────────────────────────────────────

    def _fail(self, operation: str, error: BackendError) -> None:
        logger.warning("%s failed: %s", operation, error)
        self.operation_failed.emit(operation, str(error))

    def _set_loading(self, loading: bool) -> None:
        if loading != self._loading:
            self._loading = loading
            self.loading_changed.emit(loading)

    def _patch(self, entry_id: str, change: Callable[[LibraryEntry], LibraryEntry]) -> bool:
        """Replaces one entry of the current collection with ``change(entry)``."""
        patched = False
        games = []
        for entry in self._games:
            if entry.id == entry_id:
                entry = change(entry)
                patched = True
            games.append(entry)
        self._games = games
        return patched

    # ── Loading ────────────────────────────────────────

    def load(self) -> bool:
        """Replaces the collection with the backend snapshot.

        Also reconciles the running id with the backend's tracked process.
        On failure the previous collection is kept.

        Returns:
            True if the snapshot was loaded.
        """
        self._set_loading(True)
        try:
            games = list(self._backend.get_all_library())
        except BackendError as e:
            self._set_loading(False)
            self._fail("load", e)
            return False

        try:
            running = self._backend.poll_running()
        except BackendError as e:
            logger.debug("Could not poll running process: %s", e)
            running = self._running_id

        if running is not None and not any(entry.id == running for entry in games):
            running = None

        previous = self._running_id
        self._games = games
        self._running_id = running
        self._set_loading(False)

        logger.info("Loaded %d library entries", len(games))
        self.games_changed.emit()
        if running != previous:
            self.running_changed.emit(running)
        return True

    # ── Process lifecycle ──────────────────────────────

    def launch(self, entry_id: str) -> bool:
        """Starts a game and marks it as running.

        A second launch while something is tracked is passed to the backend,
        which decides whether it is allowed.

        Args:
            entry_id: Id of an entry in the collection.

        Returns:
            True if the backend started the process.
        """
        if self.get(entry_id) is None:
            logger.warning("Cannot launch unknown entry: %s", entry_id)
            return False

        try:
            self._backend.launch(entry_id)
        except BackendError as e:
            self._fail("launch", e)
            return False

        self._running_id = entry_id
        logger.info("Launched %s", entry_id)
        self.running_changed.emit(entry_id)
        return True

    def stop_tracking(self) -> int | None:
        """Stops tracking the running game without killing it.

        Reloads the library afterwards to pick up the play time the backend
        recorded.

        Returns:
            Minutes recorded by the backend, or None if it rejected the stop.
        """
        try:
            minutes = self._backend.stop_tracking()
        except BackendError as e:
            self._fail("stop_tracking", e)
            return None

        previous = self._running_id
        self._running_id = None
        if previous is not None:
            self.running_changed.emit(None)

        self.load()
        return minutes

    def on_exit(self, entry_id: str, elapsed_minutes: int) -> None:
        """Handles a process-exit notification.

        Notifications for anything but the running id are stale and dropped.
        Otherwise the running id is cleared and the minutes are added to the
        entry in place, with ``last_played`` set to now.

        Args:
            entry_id: Id of the entry whose process exited.
            elapsed_minutes: Session length in minutes.
        """
        if self._running_id is None or self._running_id != entry_id:
            logger.debug("Ignoring exit notification for %s (running: %s)", entry_id, self._running_id)
            return

        minutes = max(0, int(elapsed_minutes))
        now = datetime.now(timezone.utc)
        self._patch(
            entry_id,
            lambda entry: replace(entry, play_time=entry.play_time + minutes, last_played=now),
        )
        self._running_id = None

        logger.info("%s exited after %d minutes", entry_id, minutes)
        self.running_changed.emit(None)
        self.games_changed.emit()

    # ── Confirmed mutations ────────────────────────────

    def add_local(self, path: str) -> LibraryEntry | None:
        """Registers an executable.

        Args:
            path: Path to the executable.

        Returns:
            The new entry, or None if the backend rejected it.
        """
        try:
            entry = self._backend.add_local(path)
        except BackendError as e:
            self._fail("add_local", e)
            return None

        self._games = [*self._games, entry]
        self.games_changed.emit()
        return entry

    def remove(self, entry_id: str) -> bool:
        try:
            self._backend.remove_entry(entry_id)
        except BackendError as e:
            self._fail("remove", e)
            return False

        self._games = [entry for entry in self._games if entry.id != entry_id]
        self.games_changed.emit()
        return True

    def set_hidden(self, entry_id: str, hidden: bool) -> bool:
        try:
            self._backend.set_hidden(entry_id, hidden)
        except BackendError as e:
            self._fail("set_hidden", e)
            return False

        if self._patch(entry_id, lambda entry: replace(entry, is_hidden=hidden)):
            self.games_changed.emit()
        return True

    def update(self, entry: LibraryEntry) -> bool:
        """Persists a modified entry and applies it once confirmed.

        Args:
            entry: The full replacement record.

        Returns:
            True if the backend accepted the update.
        """
        try:
            self._backend.update_entry(entry)
        except BackendError as e:
            self._fail("update", e)
            return False

        if self._patch(entry.id, lambda _: entry):
            self.games_changed.emit()
        return True

    def link_catalog(self, entry_id: str, result: CatalogSearchResult) -> bool:
        """Links an entry to a catalog title, taking over its title and cover.

        Args:
            entry_id: Id of the entry to link.
            result: The chosen catalog search hit.

        Returns:
            True if the backend accepted the update.
        """
        entry = self.get(entry_id)
        if entry is None:
            logger.warning("Cannot link unknown entry: %s", entry_id)
            return False

        linked = replace(
            entry,
            title=result.title or entry.title,
            catalog_id=result.id,
            cover_url=result.image.url if result.image else entry.cover_url,
        )
        return self.update(linked)

    # ── Teardown ───────────────────────────────────────

    def close(self) -> None:
        """Releases the exit-notification subscription."""
        if self._subscription is not None:
            self._subscription.release()
            self._subscription = None
