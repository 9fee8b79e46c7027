"""
Worker thread for blocking backend calls.

This module contains the BackendCallWorker thread that runs one backend
method off the UI thread and reports the outcome through signals. The
receiving store lives on the main thread, so the signals arrive queued
and its slots run between two renders.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from PyQt6.QtCore import QThread, pyqtSignal

from vnshelf.core.errors import BackendError

__all__ = ["BackendCallWorker"]

logger = logging.getLogger("vnshelf.workers")


class BackendCallWorker(QThread):
    """Background thread running a single backend call.

    Attributes:
        tag: Opaque token handed back with every signal so the receiver can
            recognise results it no longer cares about.

    Signals:
        succeeded: Emitted with (tag, result) when the call returns.
        failed: Emitted with (tag, error_message) when the call raises.
        progress: Emitted with (tag, event) for each progress callback,
            only when ``with_progress`` is set.
    """

    succeeded = pyqtSignal(object, object)
    failed = pyqtSignal(object, str)
    progress = pyqtSignal(object, object)

    def __init__(
        self,
        tag: Any,
        func: Callable[..., Any],
        *args: Any,
        with_progress: bool = False,
        parent: Any = None,
    ) -> None:
        """Initializes the worker.

        Args:
            tag: Token returned with the result.
            func: The backend method to call.
            *args: Positional arguments for ``func``.
            with_progress: Pass an ``on_progress`` callback to ``func`` that
                forwards to the ``progress`` signal.
            parent: Parent QObject.
        """
        super().__init__(parent)
        self.tag = tag
        self._func = func
        self._args = args
        self._with_progress = with_progress

    def _emit_progress(self, event: Any) -> None:
        self.progress.emit(self.tag, event)

    def run(self) -> None:
        """Executes the call and emits succeeded or failed."""
        kwargs = {"on_progress": self._emit_progress} if self._with_progress else {}
        try:
            result = self._func(*self._args, **kwargs)
        except BackendError as e:
            logger.debug("Backend call %r failed: %s", self.tag, e)
            self.failed.emit(self.tag, str(e))
            return
        except Exception as e:
            logger.exception("Unexpected error in backend call %r", self.tag)
            self.failed.emit(self.tag, str(e) or type(e).__name__)
            return

        self.succeeded.emit(self.tag, result)
