"""Process lifecycle event channel.

The backend's process watcher emits ``process_exited`` once per tracked
process termination. Because the channel is a QObject living on the main
thread, an emit from a watcher thread is queued and delivered on the main
thread, so every handler runs to completion before the next render.
"""

from __future__ import annotations

import logging
from typing import Callable

from PyQt6.QtCore import QObject, pyqtSignal

__all__ = ["ProcessEvents", "Subscription"]

logger = logging.getLogger("vnshelf.events")


class Subscription:
    """Handle for one connected listener.

    ``release()`` disconnects the listener and is safe to call twice.
    The handle also works as a context manager.
    """

    def __init__(self, signal, slot: Callable) -> None:
        self._signal = signal
        self._slot = slot
        self._active = True
        signal.connect(slot)

    @property
    def active(self) -> bool:
        return self._active

    def release(self) -> None:
        """Disconnects the listener (idempotent)."""
        if not self._active:
            return
        self._active = False
        try:
            self._signal.disconnect(self._slot)
        except TypeError:
            # Already disconnected, e.g. the channel was destroyed first.
            logger.debug("Listener already disconnected")

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class ProcessEvents(QObject):
    """Event channel for tracked game processes.

    Signals:
        process_exited: Emitted with (entry_id, elapsed_minutes).
    """

    process_exited = pyqtSignal(str, int)

    def subscribe_exited(self, slot: Callable[[str, int], None]) -> Subscription:
        """Connects a listener to ``process_exited``.

        Args:
            slot: Callable receiving (entry_id, elapsed_minutes).

        Returns:
            The subscription handle; release it at teardown.
        """
        return Subscription(self.process_exited, slot)
