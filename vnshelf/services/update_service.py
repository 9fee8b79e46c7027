"""Self-update state machine.

Drives the update flow idle -> checking -> available / up-to-date / error,
then available -> downloading -> ready / error. Backend calls run on
worker threads; their results come back on the main thread tagged with
the session serial they were started under, and anything started before
the latest dismissal is discarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from vnshelf.core.backend import UpdateBackend
from vnshelf.core.errors import BackendError
from vnshelf.core.models import ProgressKind, UpdateMetadata, UpdateProgressEvent
from vnshelf.workers.backend_worker import BackendCallWorker

__all__ = ["UpdateService", "UpdateSession", "UpdateStatus"]

logger = logging.getLogger("vnshelf.update")


class UpdateStatus(Enum):
    IDLE = "idle"
    CHECKING = "checking"
    AVAILABLE = "available"
    UP_TO_DATE = "up-to-date"
    DOWNLOADING = "downloading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class UpdateSession:
    """User-visible state of the update flow.

    Args:
        status: Current visible status.
        metadata: The pending update, if one was found.
        progress: Download progress in percent, 0..100.
        error: Message of the failure that put the session in ERROR.
    """

    status: UpdateStatus = UpdateStatus.IDLE
    metadata: UpdateMetadata | None = None
    progress: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class _Job:
    serial: int
    kind: str
    silent: bool = False


class UpdateService(QObject):
    """Checks for, downloads and installs application updates.

    A silent check (the scheduled one) never shows checking, up-to-date or
    error, but a found update still becomes AVAILABLE.

    Signals:
        session_changed: Emitted with the new UpdateSession.
        update_available: Emitted with UpdateMetadata when a newer version is found.
    """

    session_changed = pyqtSignal(object)
    update_available = pyqtSignal(object)

    def __init__(self, backend: UpdateBackend, parent: Any = None) -> None:
        """Initializes the service.

        Args:
            backend: Update-artifact host (normally a ReleaseClient).
            parent: Parent QObject.
        """
        super().__init__(parent)
        self._backend = backend
        self._session = UpdateSession()
        self._serial = 0
        self._pending_check: int | None = None
        self._pending_silent = False
        self._workers: list[BackendCallWorker] = []

        self._startup_timer = QTimer(self)
        self._startup_timer.setSingleShot(True)
        self._startup_timer.timeout.connect(self._scheduled_check)

        self._interval_timer = QTimer(self)
        self._interval_timer.timeout.connect(self._scheduled_check)

    # ── State ──────────────────────────────────────────

    @property
    def session(self) -> UpdateSession:
        return self._session

    @property
    def status(self) -> UpdateStatus:
        return self._session.status

    @property
    def progress(self) -> float:
        return self._session.progress

    @property
    def is_checking(self) -> bool:
        """True while a check runs, silent or not."""
        return self._pending_check is not None

    def _set_session(self, session: UpdateSession) -> None:
        if session != self._session:
            self._session = session
            self.session_changed.emit(session)

    # ── Workers ────────────────────────────────────────

    def _run(self, job: _Job, func: Any, *args: Any, with_progress: bool = False) -> None:
        worker = BackendCallWorker(job, func, *args, with_progress=with_progress)
        worker.succeeded.connect(self._on_succeeded)
        worker.failed.connect(self._on_failed)
        if with_progress:
            worker.progress.connect(self._on_progress)
        worker.finished.connect(lambda w=worker: self._forget_worker(w))
        self._workers.append(worker)
        self._start_worker(worker)

    def _start_worker(self, worker: BackendCallWorker) -> None:
        worker.start()

    def _forget_worker(self, worker: BackendCallWorker) -> None:
        if worker in self._workers:
            self._workers.remove(worker)
        worker.deleteLater()

    def _is_stale(self, job: _Job) -> bool:
        if job.serial != self._serial:
            logger.debug("Discarding %s result from session #%d", job.kind, job.serial)
            return True
        return False

    # ── Operations ─────────────────────────────────────

    def check_for_updates(self, silent: bool = False) -> bool:
        """Starts an update check.

        A visible check requested while a silent one runs does not start a
        second check; the running one becomes visible instead.

        Args:
            silent: Keep checking, up-to-date and error out of the visible state.

        Returns:
            False if a check is already running or a download is in progress
            or finished.
        """
        if self._session.status in (UpdateStatus.DOWNLOADING, UpdateStatus.READY):
            logger.debug("Not checking for updates while %s", self._session.status.value)
            return False
        if self.is_checking:
            if self._pending_silent and not silent:
                logger.debug("Showing the running silent update check")
                self._pending_silent = False
                self._set_session(replace(self._session, status=UpdateStatus.CHECKING, error=None))
            else:
                logger.debug("Update check already running")
            return False

        job = _Job(self._serial, "check", silent)
        self._pending_check = job.serial
        self._pending_silent = silent
        if not silent:
            self._set_session(replace(self._session, status=UpdateStatus.CHECKING, error=None))

        self._run(job, self._backend.check_for_update)
        return True

    def download_and_install(self) -> bool:
        """Downloads and installs the pending update.

        Returns:
            False if there is no available update to install.
        """
        metadata = self._session.metadata
        if self._session.status != UpdateStatus.AVAILABLE or metadata is None:
            logger.warning("No update available to download")
            return False

        self._serial += 1
        self._pending_check = None
        self._pending_silent = False
        self._set_session(UpdateSession(status=UpdateStatus.DOWNLOADING, metadata=metadata, progress=0.0))
        logger.info("Downloading update %s", metadata.version)

        job = _Job(self._serial, "download")
        self._run(job, self._backend.download_and_install_update, metadata, with_progress=True)
        return True

    def dismiss(self) -> bool:
        """Returns to idle and forgets the pending update.

        Not possible while idle or while a download is in progress. Results
        of work started before the dismissal are discarded.

        Returns:
            True if the session was dismissed.
        """
        if self._session.status in (UpdateStatus.IDLE, UpdateStatus.DOWNLOADING):
            return False

        self._serial += 1
        self._pending_check = None
        self._pending_silent = False
        self._set_session(UpdateSession())
        return True

    def restart(self) -> bool:
        """Restarts into the installed update. Only valid once READY."""
        if self._session.status != UpdateStatus.READY:
            logger.warning("Restart requested while %s", self._session.status.value)
            return False
        try:
            self._backend.restart()
        except BackendError as e:
            logger.error("Failed to restart app: %s", e)
            return False
        return True

    # ── Schedule ───────────────────────────────────────

    def start_schedule(self, delay_ms: int | None = None, interval_ms: int | None = None) -> None:
        """Arms the silent startup check and the optional periodic check.

        Args:
            delay_ms: Delay of the first check (default: ``Config.UPDATE_CHECK_DELAY_MS``).
            interval_ms: Period of later checks, 0 disables them
                (default: ``Config.UPDATE_CHECK_INTERVAL_MS``).
        """
        if delay_ms is None or interval_ms is None:
            from vnshelf.config import config

            delay_ms = config.UPDATE_CHECK_DELAY_MS if delay_ms is None else delay_ms
            interval_ms = config.UPDATE_CHECK_INTERVAL_MS if interval_ms is None else interval_ms

        self._startup_timer.start(max(0, delay_ms))
        if interval_ms > 0:
            self._interval_timer.start(interval_ms)

    def stop_schedule(self) -> None:
        self._startup_timer.stop()
        self._interval_timer.stop()

    def close(self) -> None:
        """Stops the schedule and waits for running workers.

        Results of work started before the close are discarded. Waiting on
        a download blocks until the backend finishes or fails it.
        """
        self.stop_schedule()
        self._serial += 1
        self._pending_check = None
        self._pending_silent = False
        for worker in list(self._workers):
            worker.quit()
            worker.wait()
        self._workers.clear()

    def _scheduled_check(self) -> None:
        self.check_for_updates(silent=True)

    # ── Worker results ─────────────────────────────────

    def _on_succeeded(self, job: _Job, result: Any) -> None:
        if job.kind == "check":
            self._on_check_finished(job, result)
            return
        if self._is_stale(job):
            return
        logger.info("Update installed, restart required")
        self._set_session(replace(self._session, status=UpdateStatus.READY, progress=100.0, error=None))

    def _finish_check(self, job: _Job) -> bool:
        """Clears the pending check and returns whether it ended silent."""
        silent = job.silent
        if job.serial == self._pending_check:
            silent = self._pending_silent
            self._pending_check = None
            self._pending_silent = False
        return silent

    def _on_failed(self, job: _Job, message: str) -> None:
        if job.kind == "check":
            silent = self._finish_check(job)
            if self._is_stale(job):
                return
            if silent:
                logger.warning("Silent update check failed: %s", message)
                return
            logger.warning("Update check failed: %s", message)
            self._set_session(replace(self._session, status=UpdateStatus.ERROR, error=message))
            return

        if self._is_stale(job):
            return
        logger.error("Update download failed: %s", message)
        self._set_session(replace(self._session, status=UpdateStatus.ERROR, error=message))

    def _on_check_finished(self, job: _Job, metadata: UpdateMetadata | None) -> None:
        silent = self._finish_check(job)
        if self._is_stale(job):
            return

        if metadata is not None:
            logger.info("Update available: %s", metadata.version)
            self._set_session(UpdateSession(status=UpdateStatus.AVAILABLE, metadata=metadata))
            self.update_available.emit(metadata)
            return

        logger.info("Application is up to date")
        if not silent:
            self._set_session(UpdateSession(status=UpdateStatus.UP_TO_DATE))

    def _on_progress(self, job: _Job, event: UpdateProgressEvent) -> None:
        if job.serial != self._serial or self._session.status != UpdateStatus.DOWNLOADING:
            return

        progress = self._session.progress
        if event.kind == ProgressKind.PROGRESS:
            progress += event.chunk_length / (event.content_length or 1) * 100
        elif event.kind == ProgressKind.FINISHED:
            progress = 100.0
        self._set_session(replace(self._session, progress=min(progress, 100.0)))
