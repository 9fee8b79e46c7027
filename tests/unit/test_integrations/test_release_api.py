"""Tests for the GitHub Releases update backend."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from vnshelf.core.errors import UpdateError
from vnshelf.core.models import ProgressKind, UpdateMetadata
from vnshelf.integrations.release_api import ReleaseClient
from vnshelf.version import __version__


def _release_json(tag: str = "v2.0.0", with_appimage: bool = True, body: str | None = "- Feature A") -> dict:
    assets = [{"name": "SHA256SUMS.txt", "browser_download_url": "https://example.com/SHA256SUMS.txt", "size": 128}]
    if with_appimage:
        assets.insert(
            0,
            {
                "name": f"VNShelf-{tag.lstrip('v')}-x86_64.AppImage",
                "browser_download_url": "https://example.com/VNShelf.AppImage",
                "size": 50_000_000,
            },
        )
    return {
        "tag_name": tag,
        "html_url": f"https://github.com/vnshelf/vnshelf/releases/{tag}",
        "body": body,
        "published_at": "2026-10-01T12:00:00Z",
        "assets": assets,
    }


@pytest.fixture
def session() -> MagicMock:
    with patch("vnshelf.integrations.release_api.requests.Session") as mock_session_cls:
        mock_session = MagicMock()
        mock_session.headers = {}
        mock_session_cls.return_value = mock_session
        yield mock_session


@pytest.fixture
def client(session) -> ReleaseClient:
    return ReleaseClient(repo="vnshelf/vnshelf", current_version="0.9.2")


def _no_appimage_env() -> dict:
    env = os.environ.copy()
    env.pop("APPIMAGE", None)
    return env


class TestIsAppimage:
    """Tests for AppImage detection."""

    def test_is_appimage_true(self) -> None:
        with patch.dict(os.environ, {"APPIMAGE": "/path/to/VNShelf.AppImage"}):
            assert ReleaseClient.is_appimage() is True

    def test_is_appimage_false(self) -> None:
        with patch.dict(os.environ, _no_appimage_env(), clear=True):
            assert ReleaseClient.is_appimage() is False
            assert ReleaseClient.current_appimage_path() is None

    def test_current_appimage_path_set(self) -> None:
        with patch.dict(os.environ, {"APPIMAGE": "/tmp/VNShelf.AppImage"}):
            assert ReleaseClient.current_appimage_path() == Path("/tmp/VNShelf.AppImage")


class TestIsNewer:
    """Tests for semantic version comparison."""

    def test_newer_version(self) -> None:
        assert ReleaseClient._is_newer("2.0.0") is True

    def test_same_version(self) -> None:
        assert ReleaseClient._is_newer(__version__) is False

    def test_older_version(self) -> None:
        assert ReleaseClient._is_newer("0.1.0", "0.9.2") is False

    def test_invalid_version_fallback(self) -> None:
        """Invalid versions fall back to string comparison."""
        assert ReleaseClient._is_newer("nightly", "nightly") is False
        assert ReleaseClient._is_newer("not-a-version") is True

    def test_prerelease_not_newer(self) -> None:
        assert ReleaseClient._is_newer(f"{__version__}rc1") is False


class TestCheckForUpdate:
    """Tests for check_for_update()."""

    def test_not_appimage(self, client, session) -> None:
        with patch.dict(os.environ, _no_appimage_env(), clear=True):
            with pytest.raises(UpdateError):
                client.check_for_update()
        session.get.assert_not_called()

    def test_newer_release(self, client, session, temp_appimage) -> None:
        session.get.return_value.json.return_value = _release_json()

        metadata = client.check_for_update()

        assert metadata.version == "2.0.0"
        assert metadata.download_url == "https://example.com/VNShelf.AppImage"
        assert metadata.download_size == 50_000_000
        assert metadata.notes == "- Feature A"
        assert metadata.date == "2026-10-01T12:00:00Z"
        assert session.get.call_args.args[0] == "https://api.github.com/repos/vnshelf/vnshelf/releases/latest"

    def test_missing_notes_get_placeholder(self, client, session, temp_appimage) -> None:
        session.get.return_value.json.return_value = _release_json(body=None)
        assert client.check_for_update().notes == "No release notes available."

    def test_up_to_date(self, client, session, temp_appimage) -> None:
        session.get.return_value.json.return_value = _release_json(tag="v0.9.2")
        assert client.check_for_update() is None

    def test_release_without_appimage(self, client, session, temp_appimage) -> None:
        session.get.return_value.json.return_value = _release_json(with_appimage=False)
        with pytest.raises(UpdateError):
            client.check_for_update()

    def test_network_error(self, client, session, temp_appimage) -> None:
        session.get.side_effect = requests.ConnectionError("offline")
        with pytest.raises(UpdateError):
            client.check_for_update()

    def test_http_error(self, client, session, temp_appimage) -> None:
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("403 rate limited")
        with pytest.raises(UpdateError):
            client.check_for_update()


class TestDownloadAndInstall:
    """Tests for the streamed download and the atomic replace."""

    METADATA = UpdateMetadata(version="2.0.0", download_url="https://example.com/VNShelf.AppImage")

    @staticmethod
    def _stream(session: MagicMock, chunks: list[bytes], content_length: str | None = None) -> MagicMock:
        response = MagicMock()
        response.__enter__.return_value = response
        response.__exit__.return_value = False
        response.headers = {"Content-Length": content_length} if content_length else {}
        response.iter_content.return_value = chunks
        session.get.return_value = response
        return response

    def test_install_creates_backup_and_replaces(self, client, session, temp_appimage) -> None:
        self._stream(session, [b"new-", b"binary"], "10")
        events = []

        client.download_and_install_update(self.METADATA, events.append)

        assert temp_appimage.read_text() == "new-binary"
        assert temp_appimage.with_suffix(".bak").read_text() == "old-binary"
        assert os.access(temp_appimage, os.X_OK)
        assert [e.kind for e in events] == [
            ProgressKind.STARTED,
            ProgressKind.PROGRESS,
            ProgressKind.PROGRESS,
            ProgressKind.FINISHED,
        ]
        assert events[0].content_length == 10
        assert [e.chunk_length for e in events[1:3]] == [4, 6]

    def test_unknown_content_length(self, client, session, temp_appimage) -> None:
        self._stream(session, [b"new-binary"])
        events = []
        client.download_and_install_update(self.METADATA, events.append)
        assert events[0].content_length is None

    def test_download_failure_leaves_current(self, client, session, temp_appimage) -> None:
        response = self._stream(session, [])
        response.raise_for_status.side_effect = requests.HTTPError("404")

        with pytest.raises(UpdateError):
            client.download_and_install_update(self.METADATA, lambda event: None)

        assert temp_appimage.read_text() == "old-binary"
        assert list(temp_appimage.parent.glob(".vnshelf_update_*")) == []

    def test_install_rollback_on_failure(self, client, session, temp_appimage) -> None:
        self._stream(session, [b"new-binary"])

        with patch.object(Path, "replace", side_effect=[OSError("read-only filesystem"), None]):
            with pytest.raises(UpdateError):
                client.download_and_install_update(self.METADATA, lambda event: None)

        assert temp_appimage.read_text() == "old-binary"

    def test_install_no_appimage_env(self, client, session) -> None:
        with patch.dict(os.environ, _no_appimage_env(), clear=True):
            with pytest.raises(UpdateError):
                client.download_and_install_update(self.METADATA, lambda event: None)
        session.get.assert_not_called()


class TestRestart:
    def test_restart_execs_current_appimage(self, client, temp_appimage) -> None:
        with patch("vnshelf.integrations.release_api.os.execv") as execv:
            client.restart()
        execv.assert_called_once_with(str(temp_appimage), [str(temp_appimage)])

    def test_restart_failure(self, client, temp_appimage) -> None:
        with patch("vnshelf.integrations.release_api.os.execv", side_effect=OSError("exec failed")):
            with pytest.raises(UpdateError):
                client.restart()
