"""Worker threads package.

Contains background worker threads for blocking backend calls.
"""

from __future__ import annotations

from vnshelf.workers.backend_worker import BackendCallWorker

__all__ = [
    "BackendCallWorker",
]
