"""Tests for the persisted run history store."""

import json

import pytest

from migratectl.core.exceptions import HistoryStoreFailure
from migratectl.core.history import RunHistoryStore
from migratectl.models.enums import Phase

from .conftest import make_report


class TestRunHistoryStore:
    """Test loading, appending and gating queries."""

    def test_absent_store_is_empty(self, tmp_path):
        """Test a missing file yields an empty history."""
        store = RunHistoryStore(tmp_path / "history.json")

        history = store.load()

        assert history.runs == ()
        assert history.last_run is None
        assert store.has_succeeded(Phase.RECONCILE) is False

    def test_append_persists_and_updates_last_run(self, tmp_path):
        """Test appending writes the entry and the last-run summary."""
        path = tmp_path / "state" / "history.json"
        store = RunHistoryStore(path)

        store.append(make_report(Phase.SEED, exit_code=1))
        history = store.append(make_report(Phase.SYNC, exit_code=8))

        assert [run.phase for run in history.runs] == [Phase.SEED, Phase.SYNC]
        assert history.last_run.phase == Phase.SYNC
        assert history.last_run.success is False

        data = json.loads(path.read_text(encoding="utf-8"))
        assert [run["phase"] for run in data["runs"]] == ["SEED", "SYNC"]
        assert data["last_run"]["phase"] == "SYNC"
        assert "mismatched_files" not in data["runs"][0]

    def test_round_trip_through_new_store(self, tmp_path):
        """Test a second store instance sees earlier entries."""
        path = tmp_path / "history.json"
        RunHistoryStore(path).append(make_report(Phase.RECONCILE, exit_code=0))

        history = RunHistoryStore(path).read()

        assert len(history.runs) == 1
        assert history.runs[0].phase == Phase.RECONCILE
        assert history.runs[0].success is True

    def test_no_temporary_files_left(self, tmp_path):
        """Test the atomic write leaves only the history file behind."""
        store = RunHistoryStore(tmp_path / "history.json")

        store.append(make_report())

        assert [p.name for p in tmp_path.iterdir()] == ["history.json"]

    def test_failed_reconcile_still_counts(self, tmp_path):
        """Test the gate only checks that the phase was run."""
        store = RunHistoryStore(tmp_path / "history.json")

        store.append(make_report(Phase.RECONCILE, exit_code=16))

        assert store.has_succeeded(Phase.RECONCILE) is True
        assert store.has_succeeded("RECONCILE") is True
        assert store.has_succeeded(Phase.MIRROR) is False

    def test_corrupt_store_treated_as_empty(self, tmp_path):
        """Test an unreadable store loads as empty instead of raising."""
        path = tmp_path / "history.json"
        path.write_text("{not json", encoding="utf-8")
        store = RunHistoryStore(path)

        assert store.load().runs == ()
        with pytest.raises(HistoryStoreFailure):
            store.read()

    def test_corrupt_store_is_replaced_on_append(self, tmp_path):
        """Test appending after corruption starts a fresh history."""
        path = tmp_path / "history.json"
        path.write_text('{"runs": "nonsense"}', encoding="utf-8")
        store = RunHistoryStore(path)

        history = store.append(make_report(Phase.SEED))

        assert len(history.runs) == 1
        assert len(store.read().runs) == 1

    def test_unwritable_location(self, tmp_path):
        """Test write errors surface as history store failures."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        store = RunHistoryStore(blocker / "history.json")

        with pytest.raises(HistoryStoreFailure):
            store.append(make_report())
