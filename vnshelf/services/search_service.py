# vnshelf/services/search_service.py

"""Debounced catalog search.

Turns a stream of keystrokes into a sparse stream of catalog searches.
Each committed search carries a SearchRequest token; a result is applied
only if its token still matches the query on screen, so a slow response
for an older query never replaces the results of a newer one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from vnshelf.services.catalog_store import CatalogStore
from vnshelf.workers.backend_worker import BackendCallWorker

logger = logging.getLogger("vnshelf.search_service")

__all__ = ["DEFAULT_DEBOUNCE_MS", "SearchDebouncer", "SearchRequest"]

DEFAULT_DEBOUNCE_MS = 300


@dataclass(frozen=True)
class SearchRequest:
    """Token identifying one committed search.

    Attributes:
        serial: Increases with every commit (and every clear).
        query: The stripped query text the search was issued for.
    """

    serial: int
    query: str


class SearchDebouncer(QObject):
    """Debounces search input and applies only current results.

    Signals:
        query_changed: Emitted with the raw query text on every keystroke.
    """

    query_changed = pyqtSignal(str)

    def __init__(self, store: CatalogStore, debounce_ms: int | None = None, parent: Any = None):
        """Initializes the debouncer.

        Args:
            store: Receives results and the searching flag.
            debounce_ms: Quiet period before a search is issued
                (default: ``Config.SEARCH_DEBOUNCE_MS``).
            parent: Parent QObject.
        """
        super().__init__(parent)
        if debounce_ms is None:
            from vnshelf.config import config

            debounce_ms = config.SEARCH_DEBOUNCE_MS

        self._store = store
        self._query = ""
        self._serial = 0
        self._applied_serial = 0
        self._closed = False
        self._workers: list[BackendCallWorker] = []

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(debounce_ms)
        self._timer.timeout.connect(self._commit)

    @property
    def query(self) -> str:
        return self._query

    @property
    def is_pending(self) -> bool:
        """True while a search is armed but not yet issued."""
        return self._timer.isActive()

    def set_query(self, text: str) -> None:
        """Handles one keystroke.

        The displayed query updates immediately. Blank text clears the
        results at once; anything else re-arms the debounce timer.

        Args:
            text: The full current text of the search field.
        """
        self._query = text
        self.query_changed.emit(text)
        self._timer.stop()

        if not text.strip():
            self._clear()
            return

        self._timer.start()

    def search_now(self) -> None:
        """Issues the search for the current text without waiting."""
        self._timer.stop()
        if not self._query.strip():
            self._clear()
            return
        self._commit()

    def close(self) -> None:
        """Stops the timer and waits for running searches.

        Results still in flight are discarded.
        """
        self._timer.stop()
        self._closed = True
        for worker in list(self._workers):
            worker.quit()
            worker.wait()
        self._workers.clear()

    def _clear(self) -> None:
        # Results of any in-flight search are now stale.
        self._serial += 1
        self._store.clear_search()

    def _commit(self) -> None:
        query = self._query.strip()
        if self._closed or not query:
            return

        self._serial += 1
        request = SearchRequest(self._serial, query)
        logger.debug("Searching catalog for %r (#%d)", query, request.serial)

        self._store.set_searching(True)
        worker = BackendCallWorker(request, self._store.search_catalog, query)
        worker.succeeded.connect(self._on_succeeded)
        worker.failed.connect(self._on_failed)
        worker.finished.connect(lambda w=worker: self._forget_worker(w))
        self._workers.append(worker)
        self._start_worker(worker)

    def _start_worker(self, worker: BackendCallWorker) -> None:
        worker.start()

    def _forget_worker(self, worker: BackendCallWorker) -> None:
        if worker in self._workers:
            self._workers.remove(worker)
        worker.deleteLater()

    def _is_current(self, request: SearchRequest) -> bool:
        return (
            not self._closed
            and request.query == self._query.strip()
            and request.serial > self._applied_serial
        )

    def _on_succeeded(self, request: SearchRequest, results: Any) -> None:
        if request.serial == self._serial:
            self._store.set_searching(False)

        if not self._is_current(request):
            logger.debug("Dropping stale results for %r (#%d)", request.query, request.serial)
            return

        self._applied_serial = request.serial
        self._store.apply_search_results(results)

    def _on_failed(self, request: SearchRequest, message: str) -> None:
        if request.serial == self._serial:
            self._store.set_searching(False)
        logger.warning("Catalog search for %r failed: %s", request.query, message)
