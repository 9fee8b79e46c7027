# tests/conftest.py
import os
import tempfile
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

# Ensure Qt can run headless (CI runners have no display server)
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
# Keep the global config away from the real user data directory
os.environ.setdefault("VNSHELF_DATA_DIR", tempfile.mkdtemp(prefix="vnshelf-tests-"))

import pytest
from PyQt6.QtWidgets import QApplication
from pytestqt.qtbot import QtBot

from vnshelf.core.backend import LibraryBackend
from vnshelf.core.errors import NotFoundError, ProcessLaunchError, StorageError
from vnshelf.core.models import LibraryEntry


@pytest.fixture(scope="session")
def qapp():
    """QApplication instance for all Qt tests."""
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def qtbot(qapp, request):
    """Provide qtbot fixture with automatic cleanup."""
    bot = QtBot(request)
    yield bot
    if hasattr(bot, "cleanup"):
        bot.cleanup()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """A Config rooted in a temporary directory, ignoring env tokens."""
    from vnshelf.config import Config

    monkeypatch.delenv("VNDB_TOKEN", raising=False)
    monkeypatch.setattr("vnshelf.config.load_dotenv", lambda *a, **kw: False)
    return Config(DATA_DIR=tmp_path / "data")


class FakeLibraryBackend(LibraryBackend):
    """In-memory library backend with a single tracked process.

    Add a method name to ``failing`` to make that command raise.
    """

    def __init__(self, entries: list[LibraryEntry] | None = None) -> None:
        self.entries: dict[str, LibraryEntry] = {e.id: e for e in entries or []}
        self.tracked: str | None = None
        self.stop_minutes = 0
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self._next_id = 100

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise StorageError(f"{name} rejected")

    def get_all_library(self) -> list[LibraryEntry]:
        self._check("get_all_library")
        return list(self.entries.values())

    def add_local(self, path: str) -> LibraryEntry:
        self._check("add_local")
        self._next_id += 1
        entry = LibraryEntry(id=str(self._next_id), title=Path(path).stem, path=path)
        self.entries[entry.id] = entry
        return entry

    def remove_entry(self, entry_id: str) -> None:
        self._check("remove_entry")
        if entry_id not in self.entries:
            raise NotFoundError(entry_id)
        del self.entries[entry_id]

    def set_hidden(self, entry_id: str, hidden: bool) -> None:
        self._check("set_hidden")
        self.entries[entry_id] = replace(self.entries[entry_id], is_hidden=hidden)

    def update_entry(self, entry: LibraryEntry) -> None:
        self._check("update_entry")
        self.entries[entry.id] = entry

    def launch(self, entry_id: str) -> None:
        self.calls.append("launch")
        if "launch" in self.failing:
            raise ProcessLaunchError("could not start")
        if self.tracked is not None:
            raise ProcessLaunchError("another game is running")
        self.tracked = entry_id

    def stop_tracking(self) -> int:
        self._check("stop_tracking")
        self.tracked = None
        return self.stop_minutes

    def poll_running(self) -> str | None:
        return self.tracked

    def elapsed_seconds(self) -> int:
        return 90 if self.tracked else 0


@pytest.fixture
def sample_entries() -> list[LibraryEntry]:
    """Four library entries: one hidden, one never played."""
    return [
        LibraryEntry(
            id="1",
            title="Saya no Uta",
            path="/games/saya/saya.exe",
            catalog_id="v97",
            play_time=45,
            last_played=datetime(2026, 9, 1, tzinfo=timezone.utc),
        ),
        LibraryEntry(
            id="2",
            title="Fate/stay night",
            path="/games/fsn/fsn.exe",
            catalog_id="v11",
            play_time=3000,
            last_played=datetime(2026, 10, 1, tzinfo=timezone.utc),
        ),
        LibraryEntry(
            id="3",
            title="Ever17",
            path="/games/ever17/ever17.exe",
            play_time=600,
            is_hidden=True,
            last_played=datetime(2026, 8, 1, tzinfo=timezone.utc),
        ),
        LibraryEntry(id="4", title="Clannad", path="/games/clannad/clannad.exe"),
    ]


@pytest.fixture
def library_backend(sample_entries) -> FakeLibraryBackend:
    return FakeLibraryBackend(sample_entries)


@pytest.fixture
def temp_appimage(tmp_path) -> Generator[Path, None, None]:
    """A fake AppImage file registered in $APPIMAGE."""
    appimage = tmp_path / "VNShelf.AppImage"
    appimage.write_text("old-binary")
    previous = os.environ.get("APPIMAGE")
    os.environ["APPIMAGE"] = str(appimage)
    yield appimage
    if previous is None:
        os.environ.pop("APPIMAGE", None)
    else:
        os.environ["APPIMAGE"] = previous
