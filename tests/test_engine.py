"""Tests for SyncEngine."""

import logging
from unittest.mock import patch

import pytest

from pygrive.exceptions import GriveError
from pygrive.store import ROOT_ID, MemoryStore
from pygrive.sync.dispatcher import DispatchOutcome, EventKind
from pygrive.sync.engine import SyncEngine


def results(futures):
    return [f.result(timeout=5) for f in futures]


class TestSyncEngineStart:
    """Tests for SyncEngine.start and the initial scan."""

    def test_missing_directory(self, store, tmp_path):
        """Test a missing local directory is rejected."""
        engine = SyncEngine(store, tmp_path / "missing")

        with pytest.raises(ValueError, match="does not exist"):
            engine.start(watch=False)

    def test_directory_is_a_file(self, store, tmp_path):
        """Test a regular file is rejected as sync root."""
        path = tmp_path / "file.txt"
        path.write_text("x")

        with pytest.raises(ValueError, match="not a directory"):
            SyncEngine(store, path).start(watch=False)

    def test_load_mirror_hydrates_remote_tree(self, store, tmp_path):
        """Test the mirror is loaded from the remote root."""
        docs = store.add(ROOT_ID, "docs")
        store.add(docs.id, "a.txt", "text/plain")
        engine = SyncEngine(store, tmp_path)

        report = engine.load_mirror()

        assert report.ok
        assert len(engine.mirror) == 3
        assert engine.resolver.resolve("docs/a.txt").found
        assert engine.dispatcher is not None

    def test_initial_scan_uploads_existing_files(self, store, tmp_path):
        """Test files present at start-up are treated as created."""
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "a.txt").write_text("a")
        (tmp_path / "b.txt").write_text("b")
        engine = SyncEngine(store, tmp_path, initial_scan=False)
        engine.start(watch=False)

        try:
            outcomes = [r.outcome for r in results(engine.scan_existing())]
        finally:
            engine.stop()

        assert outcomes == [DispatchOutcome.UPLOADED, DispatchOutcome.UPLOADED]
        assert sorted(n.title for n in store.inserted) == ["a.txt", "b.txt", "docs"]
        assert engine.stats["uploaded"] == 2

    def test_start_runs_initial_scan(self, store, tmp_path):
        """Test start() replays existing files by default."""
        (tmp_path / "a.txt").write_text("a")
        engine = SyncEngine(store, tmp_path)

        engine.start(watch=False)
        engine.stop(wait=True)

        assert [n.title for n in store.inserted] == ["a.txt"]

    def test_existing_remote_files_not_uploaded_again(self, store, tmp_path):
        """Test the initial scan skips files already in the remote tree."""
        store.add(ROOT_ID, "a.txt", "text/plain")
        (tmp_path / "a.txt").write_text("a")
        engine = SyncEngine(store, tmp_path)

        engine.start(watch=False)
        engine.stop(wait=True)

        assert store.inserted == []
        assert engine.stats["already_present"] == 1


class TestSyncEngineSubmit:
    """Tests for SyncEngine.submit."""

    def test_submit_before_start(self, store, tmp_path):
        """Test events are refused before the engine is started."""
        engine = SyncEngine(store, tmp_path)

        with pytest.raises(GriveError, match="not started"):
            engine.submit(EventKind.CREATED, tmp_path / "a.txt")

    def test_ignored_paths(self, store, tmp_path):
        """Test ignore patterns short-circuit dispatch."""
        (tmp_path / "debug.log").write_text("x")
        engine = SyncEngine(
            store, tmp_path, initial_scan=False, ignore_patterns=["*.log"]
        )
        engine.start(watch=False)

        try:
            result = engine.submit(EventKind.CREATED, tmp_path / "debug.log").result()
        finally:
            engine.stop()

        assert result.outcome == DispatchOutcome.IGNORED
        assert engine.stats["ignored"] == 1
        assert store.inserted == []

    def test_dot_files_excluded(self, store, tmp_path):
        """Test hidden files are ignored when requested."""
        (tmp_path / ".hidden").mkdir()
        (tmp_path / ".hidden" / "a.txt").write_text("a")
        (tmp_path / "b.txt").write_text("b")
        engine = SyncEngine(store, tmp_path, exclude_dot_files=True)

        engine.start(watch=False)
        engine.stop(wait=True)

        assert [n.title for n in store.inserted] == ["b.txt"]

    def test_deferred_kinds_are_counted(self, store, tmp_path):
        """Test non-creation events are recorded as deferred."""
        engine = SyncEngine(store, tmp_path, initial_scan=False)
        engine.start(watch=False)

        try:
            result = engine.submit("removed", tmp_path / "a.txt").result()
        finally:
            engine.stop()

        assert result.outcome == DispatchOutcome.DEFERRED
        assert engine.stats["deferred"] == 1

    def test_failures_are_counted(self, store, tmp_path):
        """Test failed dispatches are recorded without raising."""
        (tmp_path / "a.txt").write_text("a")
        store.fail("insert", "a.txt")
        engine = SyncEngine(store, tmp_path)

        engine.start(watch=False)
        engine.stop(wait=True)

        assert engine.stats["failed"] == 1

    def test_unexpected_errors_are_logged_and_counted(self, store, tmp_path, caplog):
        """Test an error outside the GriveError hierarchy still yields FAILED."""
        path = tmp_path / "a.txt"
        path.write_text("a")
        engine = SyncEngine(store, tmp_path, initial_scan=False)
        engine.start(watch=False)

        try:
            with patch.object(
                store, "insert_node", side_effect=FileNotFoundError(str(path))
            ), caplog.at_level(logging.ERROR, logger="pygrive"):
                result = engine.submit(EventKind.CREATED, path).result(timeout=5)
        finally:
            engine.stop()

        assert result.outcome == DispatchOutcome.FAILED
        assert isinstance(result.error, FileNotFoundError)
        assert engine.stats["failed"] == 1
        assert any("a.txt" in r.getMessage() for r in caplog.records)

    def test_duplicate_creation_joins_pending_dispatch(self, tmp_path):
        """Test a second creation event for a pending path uploads once."""
        store = MemoryStore(delay=0.2)
        path = tmp_path / "a.txt"
        path.write_text("a")
        engine = SyncEngine(store, tmp_path, initial_scan=False)
        engine.start(watch=False)

        try:
            first = engine.submit(EventKind.CREATED, path)
            second = engine.submit(EventKind.CREATED, path)
            result = first.result(timeout=5)
        finally:
            engine.stop()

        assert second is first
        assert result.outcome == DispatchOutcome.UPLOADED
        assert [n.title for n in store.inserted] == ["a.txt"]
        assert engine.stats["uploaded"] == 1

    def test_creation_after_dispatch_is_already_present(self, store, tmp_path):
        """Test a creation event after the upload finished is not re-uploaded."""
        path = tmp_path / "a.txt"
        path.write_text("a")
        engine = SyncEngine(store, tmp_path, initial_scan=False)
        engine.start(watch=False)

        try:
            engine.submit(EventKind.CREATED, path).result(timeout=5)
            result = engine.submit(EventKind.CREATED, path).result(timeout=5)
        finally:
            engine.stop()

        assert result.outcome == DispatchOutcome.ALREADY_PRESENT
        assert len(store.inserted) == 1


class TestSyncEngineWatch:
    """Tests for the watcher wiring."""

    def test_watcher_forwards_to_submit(self, store, tmp_path):
        """Test the watcher is started with submit as callback."""
        engine = SyncEngine(store, tmp_path, initial_scan=False)

        with patch("pygrive.sync.engine.DirectoryWatcher") as mock_watcher:
            engine.start(watch=True)
            engine.stop()

        mock_watcher.assert_called_once_with(engine.directory, engine.submit)
        mock_watcher.return_value.start.assert_called_once()
        mock_watcher.return_value.stop.assert_called_once()

    def test_watcher_started_before_initial_scan(self, store, tmp_path):
        """Test files created during the initial scan cannot be missed."""
        engine = SyncEngine(store, tmp_path)
        order = []

        def scan_local(directory):
            order.append("scan")
            return []

        with patch("pygrive.sync.engine.DirectoryWatcher") as mock_watcher:
            mock_watcher.return_value.start.side_effect = lambda: order.append("watch")
            with patch.object(engine.scanner, "scan_local", side_effect=scan_local):
                engine.start(watch=True)
            engine.stop()

        assert order == ["watch", "scan"]

    def test_run_forever_stops_on_interrupt(self, store, tmp_path):
        """Test KeyboardInterrupt ends the loop and stops the engine."""
        engine = SyncEngine(store, tmp_path, initial_scan=False)

        with patch("pygrive.sync.engine.DirectoryWatcher"), patch(
            "pygrive.sync.engine.time.sleep", side_effect=KeyboardInterrupt
        ):
            engine.run_forever()

        assert engine._executor is None
