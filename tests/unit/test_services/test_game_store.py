# tests/unit/test_services/test_game_store.py

"""Tests for GameLifecycleStore: library mutations and process lifecycle."""

from __future__ import annotations

import random
from datetime import datetime, timezone

import pytest

from vnshelf.core.events import ProcessEvents
from vnshelf.core.models import CatalogImage, CatalogSearchResult, LibraryEntry
from vnshelf.services.game_store import GameLifecycleStore


@pytest.fixture
def events(qtbot) -> ProcessEvents:
    return ProcessEvents()


@pytest.fixture
def store(qtbot, library_backend, events) -> GameLifecycleStore:
    """A loaded store subscribed to the event channel."""
    store = GameLifecycleStore(library_backend, events)
    store.load()
    yield store
    store.close()


def _play_time(store: GameLifecycleStore, entry_id: str) -> int:
    return store.get(entry_id).play_time


class TestLoad:
    """Tests for load()."""

    def test_load_replaces_collection(self, qtbot, library_backend) -> None:
        store = GameLifecycleStore(library_backend)
        loading: list[bool] = []
        store.loading_changed.connect(loading.append)

        with qtbot.waitSignal(store.games_changed, timeout=1000):
            assert store.load() is True

        assert [e.id for e in store.games] == ["1", "2", "3", "4"]
        assert loading == [True, False]
        assert store.loading is False

    def test_loading_ends_after_collection_is_replaced(self, qtbot, library_backend) -> None:
        """Views re-rendering on loading_changed(False) see the new snapshot."""
        library_backend.tracked = "2"
        store = GameLifecycleStore(library_backend)
        seen: list[tuple[list[str], str | None]] = []
        store.loading_changed.connect(
            lambda loading: loading or seen.append(([e.id for e in store.games], store.running_id))
        )

        store.load()

        assert seen == [(["1", "2", "3", "4"], "2")]

    def test_load_failure_keeps_previous_collection(self, store, library_backend) -> None:
        before = store.games
        failures: list[tuple[str, str]] = []
        store.operation_failed.connect(lambda op, msg: failures.append((op, msg)))
        library_backend.failing.add("get_all_library")

        assert store.load() is False
        assert store.games == before
        assert store.loading is False
        assert failures == [("load", "get_all_library rejected")]

    def test_load_picks_up_running_process(self, qtbot, library_backend) -> None:
        library_backend.tracked = "2"
        store = GameLifecycleStore(library_backend)
        store.load()
        assert store.running_id == "2"
        assert store.is_running("2")

    def test_load_drops_running_id_of_missing_entry(self, qtbot, library_backend) -> None:
        library_backend.tracked = "99"
        store = GameLifecycleStore(library_backend)
        store.load()
        assert store.running_id is None


class TestLaunchAndExit:
    """Tests for launch(), on_exit() and stop_tracking()."""

    def test_launch_then_exit_adds_play_time(self, store) -> None:
        """45 minutes played plus a 30 minute session gives 75."""
        assert _play_time(store, "1") == 45
        assert store.running_id is None

        assert store.launch("1") is True
        assert store.running_id == "1"

        store.on_exit("1", 30)
        assert store.running_id is None
        assert _play_time(store, "1") == 75

    def test_exit_stamps_last_played(self, store) -> None:
        store.launch("4")
        before = datetime.now(timezone.utc)
        store.on_exit("4", 5)
        assert store.get("4").last_played >= before

    def test_stale_exit_is_ignored(self, store) -> None:
        store.launch("1")
        games = store.games

        store.on_exit("2", 30)

        assert store.running_id == "1"
        assert store.games == games

    def test_exit_without_running_game_is_ignored(self, store) -> None:
        games = store.games
        store.on_exit("1", 30)
        assert store.games == games

    def test_duplicate_exit_is_applied_once(self, store) -> None:
        store.launch("1")
        store.on_exit("1", 30)
        store.on_exit("1", 30)
        assert _play_time(store, "1") == 75

    def test_negative_elapsed_minutes_clamped(self, store) -> None:
        store.launch("1")
        store.on_exit("1", -10)
        assert _play_time(store, "1") == 45
        assert store.running_id is None

    def test_state_is_consistent_when_signals_fire(self, store) -> None:
        """Both fields are already updated when any signal is delivered."""
        observed: list[tuple] = []
        store.running_changed.connect(lambda rid: observed.append((rid, _play_time(store, "1"))))
        store.games_changed.connect(lambda: observed.append((store.running_id, _play_time(store, "1"))))

        store.launch("1")
        store.on_exit("1", 30)

        assert observed == [("1", 45), (None, 75), (None, 75)]

    def test_launch_unknown_entry(self, store, library_backend) -> None:
        assert store.launch("missing") is False
        assert "launch" not in library_backend.calls

    def test_launch_failure_leaves_state(self, store, library_backend) -> None:
        library_backend.failing.add("launch")
        assert store.launch("1") is False
        assert store.running_id is None

    def test_second_launch_rejected_by_backend(self, store) -> None:
        store.launch("1")
        assert store.launch("2") is False
        assert store.running_id == "1"

    def test_exit_event_from_channel(self, qtbot, store, events) -> None:
        store.launch("1")
        with qtbot.waitSignal(store.running_changed, timeout=1000):
            events.process_exited.emit("1", 30)
        assert _play_time(store, "1") == 75

    def test_close_releases_subscription(self, store, events) -> None:
        store.launch("1")
        store.close()
        store.close()
        events.process_exited.emit("1", 30)
        assert store.running_id == "1"

    def test_stop_tracking_clears_and_reloads(self, store, library_backend) -> None:
        store.launch("1")
        library_backend.stop_minutes = 12
        library_backend.calls.clear()

        assert store.stop_tracking() == 12
        assert store.running_id is None
        assert "get_all_library" in library_backend.calls

    def test_stop_tracking_failure_keeps_running(self, store, library_backend) -> None:
        store.launch("1")
        library_backend.failing.add("stop_tracking")
        assert store.stop_tracking() is None
        assert store.running_id == "1"

    def test_elapsed_seconds(self, store) -> None:
        assert store.elapsed_seconds() == 0
        store.launch("1")
        assert store.elapsed_seconds() == 90

    @pytest.mark.parametrize("seed", range(20))
    def test_running_id_follows_launch_exit_sequences(self, seed, store) -> None:
        """Running id is set iff the last launch has no matching exit yet."""
        rng = random.Random(seed)
        expected: str | None = None

        for _ in range(40):
            entry_id = rng.choice(["1", "2", "4"])
            if rng.random() < 0.5:
                ok = store.launch(entry_id)
                if expected is None:
                    assert ok
                    expected = entry_id
                else:
                    assert not ok
            else:
                store.on_exit(entry_id, rng.randint(0, 90))
                if expected == entry_id:
                    expected = None
                    # The fake backend stops tracking when the process exits
                    store._backend.tracked = None
            assert store.running_id == expected


class TestConfirmedMutations:
    """add_local/remove/set_hidden/update apply only after the backend confirms."""

    def test_add_local(self, store) -> None:
        entry = store.add_local("/games/kanon/kanon.exe")
        assert entry is not None
        assert store.games[-1] == entry
        assert entry.title == "kanon"

    def test_add_local_failure(self, store, library_backend) -> None:
        library_backend.failing.add("add_local")
        count = len(store.games)
        assert store.add_local("/games/kanon/kanon.exe") is None
        assert len(store.games) == count

    def test_remove(self, store) -> None:
        assert store.remove("4") is True
        assert store.get("4") is None

    def test_remove_failure(self, store) -> None:
        assert store.remove("missing") is False
        assert len(store.games) == 4

    def test_set_hidden(self, store) -> None:
        assert store.set_hidden("1", True) is True
        assert store.get("1").is_hidden is True

    def test_set_hidden_failure(self, store, library_backend) -> None:
        library_backend.failing.add("set_hidden")
        assert store.set_hidden("1", True) is False
        assert store.get("1").is_hidden is False

    def test_update(self, store) -> None:
        changed = LibraryEntry(id="4", title="CLANNAD", path="/games/clannad/clannad.exe", is_finished=True)
        assert store.update(changed) is True
        assert store.get("4") == changed

    def test_update_failure(self, store, library_backend) -> None:
        library_backend.failing.add("update_entry")
        original = store.get("4")
        assert store.update(LibraryEntry(id="4", title="X", path="x")) is False
        assert store.get("4") == original

    def test_link_catalog(self, store, library_backend) -> None:
        result = CatalogSearchResult(
            id="v4",
            title="Clannad",
            image=CatalogImage(url="https://t.vndb.org/cv/32/4.jpg"),
        )
        assert store.link_catalog("4", result) is True

        linked = store.get("4")
        assert linked.catalog_id == "v4"
        assert linked.cover_url == "https://t.vndb.org/cv/32/4.jpg"
        assert library_backend.entries["4"] == linked

    def test_link_catalog_unknown_entry(self, store) -> None:
        assert store.link_catalog("missing", CatalogSearchResult(id="v4", title="Clannad")) is False
