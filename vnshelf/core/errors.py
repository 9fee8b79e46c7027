"""Exception types raised across the backend boundary.

Backend implementations translate their own failures (network, disk,
process) into one of these. Stores catch ``BackendError`` and degrade to
"state unchanged"; nothing here is meant to reach view code.
"""

from __future__ import annotations

__all__ = [
    "AuthRequiredError",
    "BackendError",
    "CatalogApiError",
    "NetworkError",
    "NotFoundError",
    "ProcessLaunchError",
    "StorageError",
    "UpdateError",
    "ValidationError",
]


class BackendError(Exception):
    """Recoverable failure reported by a backend command.

    Attributes:
        kind: Short machine-readable category, e.g. ``"network"``.
    """

    kind: str = "backend"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message or self.kind


class NetworkError(BackendError):
    """HTTP transport failure or unexpected status code."""

    kind = "network"


class NotFoundError(BackendError):
    """The requested record does not exist."""

    kind = "not_found"


class CatalogApiError(BackendError):
    """The catalog service rejected the request or returned malformed data."""

    kind = "catalog_api"


class AuthRequiredError(BackendError):
    """The command needs a catalog credential that is missing or invalid."""

    kind = "auth_required"


class ProcessLaunchError(BackendError):
    """The executable could not be started."""

    kind = "process_launch"


class StorageError(BackendError):
    """Local persistence failed (disk, database)."""

    kind = "storage"


class ValidationError(BackendError):
    """Arguments were rejected before any work was done."""

    kind = "validation"


class UpdateError(BackendError):
    """Self-update check, download or install failed."""

    kind = "update"
