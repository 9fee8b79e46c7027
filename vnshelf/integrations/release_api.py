"""AppImage self-update backend using GitHub Releases API.

Only functional when running as AppImage ($APPIMAGE set). The download
replaces the running AppImage atomically, keeping a ``.bak`` copy, and
``restart()`` re-executes it.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Callable

import requests
from packaging.version import InvalidVersion, Version

from vnshelf.core.backend import UpdateBackend
from vnshelf.core.errors import UpdateError
from vnshelf.core.models import ProgressKind, UpdateMetadata, UpdateProgressEvent
from vnshelf.version import __version__

__all__ = ["ReleaseClient"]

logger = logging.getLogger("vnshelf.update")

_GITHUB_API_URL = "https://api.github.com/repos/{repo}/releases/latest"
_CHUNK_SIZE = 64 * 1024


class ReleaseClient(UpdateBackend):
    """Checks GitHub Releases for newer versions and installs AppImage updates."""

    def __init__(self, repo: str | None = None, current_version: str = __version__, timeout: float = 15) -> None:
        """Initializes the client.

        Args:
            repo: GitHub "owner/name" (default: ``Config.UPDATE_REPO``).
            current_version: Version compared against the latest release.
            timeout: Request timeout in seconds.
        """
        if repo is None:
            from vnshelf.config import config

            repo = config.UPDATE_REPO

        self.repo = repo
        self.current_version = current_version
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update(
            {
                "User-Agent": f"VNShelf/{__version__}",
                "Accept": "application/vnd.github+json",
            }
        )

    @staticmethod
    def is_appimage() -> bool:
        """Check if running as AppImage."""
        return bool(os.environ.get("APPIMAGE"))

    @staticmethod
    def current_appimage_path() -> Path | None:
        """Get current AppImage path from $APPIMAGE."""
        appimage = os.environ.get("APPIMAGE")
        return Path(appimage) if appimage else None

    def check_for_update(self) -> UpdateMetadata | None:
        """Check GitHub Releases for a newer version.

        Returns:
            Metadata of the newer release, or None when up to date.

        Raises:
            UpdateError: When not running as AppImage, on network errors or
                when the release has no AppImage asset.
        """
        if not self.is_appimage():
            logger.info("Not running as AppImage, self-update unavailable")
            raise UpdateError("Updates are only available for the AppImage build")

        url = _GITHUB_API_URL.format(repo=self.repo)
        try:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise UpdateError(f"Update check failed: {e}") from e
        except ValueError as e:
            raise UpdateError(f"Malformed release data: {e}") from e

        available = str(data.get("tag_name", "")).lstrip("v")
        if not available or not self._is_newer(available, self.current_version):
            logger.info("Up to date (%s)", self.current_version)
            return None

        # Find AppImage asset
        download_url, download_size = "", 0
        for asset in data.get("assets", []):
            if asset.get("name", "").endswith(".AppImage"):
                download_url = asset.get("browser_download_url", "")
                download_size = int(asset.get("size", 0) or 0)
                break

        if not download_url:
            raise UpdateError(f"Release {available} has no AppImage asset")

        logger.info("Update available: %s -> %s", self.current_version, available)
        return UpdateMetadata(
            version=available,
            notes=data.get("body") or "No release notes available.",
            date=data.get("published_at") or "",
            download_url=download_url,
            download_size=download_size,
            html_url=data.get("html_url", ""),
        )

    def download_and_install_update(
        self,
        metadata: UpdateMetadata,
        on_progress: Callable[[UpdateProgressEvent], None],
    ) -> None:
        """Downloads the new AppImage and swaps it in place of the current one.

        Args:
            metadata: The release to install.
            on_progress: Receives Started, Progress and Finished events.

        Raises:
            UpdateError: On download or install failure. The current
                AppImage is left untouched or restored from its backup.
        """
        current = self.current_appimage_path()
        if not current or not current.exists():
            raise UpdateError("Updates are only available for the AppImage build")

        # Same filesystem for atomic replace
        download_path = current.parent / f".vnshelf_update_{metadata.version}.AppImage"
        try:
            self._download(metadata.download_url, download_path, on_progress)
        except (requests.RequestException, OSError) as e:
            download_path.unlink(missing_ok=True)
            logger.error("Update download failed: %s", e)
            raise UpdateError(f"Download failed: {e}") from e

        self._install(download_path, current)

    def _download(
        self,
        url: str,
        target: Path,
        on_progress: Callable[[UpdateProgressEvent], None],
    ) -> None:
        with self._session.get(url, stream=True, timeout=self._timeout) as response:
            response.raise_for_status()
            header = response.headers.get("Content-Length")
            content_length = int(header) if header and header.isdigit() else None

            on_progress(UpdateProgressEvent(ProgressKind.STARTED, content_length=content_length))
            with open(target, "wb") as f:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    on_progress(UpdateProgressEvent(ProgressKind.PROGRESS, len(chunk), content_length))
            on_progress(UpdateProgressEvent(ProgressKind.FINISHED))

        target.chmod(0o755)
        logger.info("Update downloaded to %s", target)

    @staticmethod
    def _install(new_path: Path, current: Path) -> None:
        """Atomically replace the current AppImage, rolling back on failure."""
        backup = current.with_suffix(".bak")
        try:
            shutil.copy2(current, backup)
            new_path.replace(current)
            logger.info("Installed update to %s", current)
        except OSError as e:
            logger.error("Update install failed: %s", e)
            if backup.exists():
                backup.replace(current)
            new_path.unlink(missing_ok=True)
            raise UpdateError(f"Install failed: {e}") from e

    def restart(self) -> None:
        """Re-executes the installed AppImage. Does not return on success."""
        current = self.current_appimage_path()
        if not current or not current.exists():
            raise UpdateError("Cannot restart: AppImage path unknown")
        logger.info("Restarting %s", current)
        try:
            os.execv(str(current), [str(current)])
        except OSError as e:
            raise UpdateError(f"Restart failed: {e}") from e

    @staticmethod
    def _is_newer(available: str, current: str = __version__) -> bool:
        """Compare versions using semantic versioning."""
        try:
            return Version(available) > Version(current)
        except InvalidVersion:
            return available != current
