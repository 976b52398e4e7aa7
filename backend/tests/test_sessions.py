"""
Tests for session assembly, finalization and the export store.
"""

import threading

import pytest

from ridelog.errors import EmptySession, InvalidPayload, NotFound, StorageWriteFailure
from ridelog.models.records import SessionStatus
from ridelog.services import export_store
from ridelog.services.export_store import ExportStore, export_filename
from ridelog.services.sessions import SessionManager


SCENARIO_BATCH = [
    {"capturedAt": 100, "totalAccel": 1.0},
    {"capturedAt": 150, "location": {"lat": 1, "lon": 2}},
]


@pytest.fixture
def store(tmp_path):
    return ExportStore(tmp_path / "rides")


@pytest.fixture
def manager(store):
    return SessionManager(store)


class TestIngest:
    """Tests for appending batches to the open session."""

    def test_returns_running_total(self, manager):
        assert manager.ingest(SCENARIO_BATCH) == 2
        assert manager.ingest([{"timestamp": 200, "total_accel": 0.5}]) == 3

    def test_appends_in_received_order(self, manager):
        manager.ingest([{"capturedAt": 300, "totalAccel": 1.0}])
        manager.ingest([{"capturedAt": 100, "totalAccel": 2.0}])

        assert [r.captured_at for r in manager.current_records()] == [300, 100]

    def test_duplicates_are_kept(self, manager):
        manager.ingest(SCENARIO_BATCH)
        manager.ingest(SCENARIO_BATCH)
        assert manager.status().record_count == 4

    @pytest.mark.parametrize("payload", [
        {"capturedAt": 1, "totalAccel": 1.0},
        "not a list",
        None,
        42,
    ])
    def test_rejects_non_list(self, manager, payload):
        with pytest.raises(InvalidPayload):
            manager.ingest(payload)
        assert manager.status().record_count == 0

    def test_rejects_whole_batch_on_one_bad_record(self, manager):
        batch = [
            {"capturedAt": 1, "totalAccel": 1.0},
            {"capturedAt": 2},
        ]
        with pytest.raises(InvalidPayload):
            manager.ingest(batch)
        assert manager.status().record_count == 0

    def test_rejects_negative_accel(self, manager):
        with pytest.raises(InvalidPayload):
            manager.ingest([{"capturedAt": 1, "totalAccel": -0.1}])

    def test_empty_batch(self, manager):
        assert manager.ingest([]) == 0


class TestFinalize:
    """Tests for closing sessions into exports."""

    def test_scenario_export(self, manager, store):
        manager.ingest(SCENARIO_BATCH)

        result = manager.finalize()

        assert result.session.index == 0
        assert result.external_index == 1
        assert result.session.status == SessionStatus.CLOSED
        assert result.artifact.row_count == 2
        lines = store.get(0).read_text().splitlines()
        assert lines == ["timestamp,latitude,longitude,total_accel", "100,,,1", "150,1,2,"]

    def test_summary(self, manager):
        manager.ingest([
            {"capturedAt": 1, "totalAccel": 1.0},
            {"capturedAt": 2, "totalAccel": 3.0},
            {"capturedAt": 3, "location": {"latitude": 1, "longitude": 2}},
        ])

        summary = manager.finalize().summary

        assert summary.count == 2
        assert summary.mean == 2.0
        assert summary.max == 3.0
        assert summary.min == 1.0

    def test_empty_session_rejected(self, manager, store):
        with pytest.raises(EmptySession):
            manager.finalize()
        with pytest.raises(EmptySession):
            manager.finalize()

        assert manager.status().record_count == 0
        assert manager.status().index == 0
        assert len(store) == 0
        assert list(store.folder.iterdir()) == []

    def test_new_session_after_finalize(self, manager, store):
        manager.ingest(SCENARIO_BATCH)
        first = manager.finalize()
        original = store.get(0).read_text()

        manager.ingest([{"capturedAt": 500, "totalAccel": 2.0}])
        status = manager.status()

        assert status.index > first.session.index
        assert status.record_count == 1
        assert status.status == SessionStatus.OPEN

        second = manager.finalize()
        assert second.session.index == 1
        assert store.get(0).read_text() == original

    def test_storage_failure_keeps_session(self, manager, store, monkeypatch):
        manager.ingest(SCENARIO_BATCH)

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(export_store.os, "replace", broken_replace)
        with pytest.raises(StorageWriteFailure):
            manager.finalize()

        assert manager.status().record_count == 2
        assert manager.status().index == 0
        assert list(store.folder.iterdir()) == []
        with pytest.raises(NotFound):
            store.get(0)

        monkeypatch.undo()
        result = manager.finalize()
        assert result.session.index == 0
        assert store.get(0).is_file()

    def test_concurrent_ingest_and_finalize_lose_nothing(self, manager, store):
        """Every record lands either in the finalized export or the next session."""
        manager.ingest([{"capturedAt": 0, "totalAccel": 1.0}])
        n_threads = 4
        per_thread = 50
        barrier = threading.Barrier(n_threads + 1)

        def worker(offset):
            barrier.wait()
            for i in range(per_thread):
                manager.ingest([{"capturedAt": offset * 1000 + i, "totalAccel": 1.0}])

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(n_threads)]
        for t in threads:
            t.start()
        barrier.wait()
        result = manager.finalize()
        for t in threads:
            t.join()

        total = result.artifact.row_count + manager.status().record_count
        assert total == 1 + n_threads * per_thread
        assert manager.status().index == 1


class TestExportStore:
    """Tests for append-only export storage."""

    def test_get_unknown_index(self, store):
        with pytest.raises(NotFound):
            store.get(0)

    def test_write_and_get(self, store):
        artifact = store.write(0, "timestamp,latitude,longitude,total_accel\n1,,,2\n", row_count=1)

        assert artifact.path == store.get(0)
        assert artifact.path.name == "ride_1.csv"
        assert artifact.external_index == 1
        assert store.next_index == 1

    def test_never_overwrites(self, store):
        store.write(0, "first\n", row_count=0)
        with pytest.raises(StorageWriteFailure):
            store.write(0, "second\n", row_count=0)
        assert store.get(0).read_text() == "first\n"

    def test_resumes_index_from_disk(self, tmp_path):
        folder = tmp_path / "rides"
        folder.mkdir()
        (folder / export_filename(0)).write_text("a\n")
        (folder / export_filename(4)).write_text("b\n")
        (folder / "notes.csv").write_text("c\n")

        store = ExportStore(folder)

        assert len(store) == 2
        assert store.next_index == 5
        assert SessionManager(store).status().index == 5

    def test_index_not_reused_after_delete(self, manager, store):
        manager.ingest(SCENARIO_BATCH)
        manager.finalize()
        store.get(0).unlink()

        with pytest.raises(NotFound):
            store.get(0)

        manager.ingest(SCENARIO_BATCH)
        assert manager.finalize().session.index == 1

    def test_list_recent(self, store):
        for i in range(5):
            store.write(i, f"{i}\n", row_count=0)

        recent = store.list_recent(3)
        assert [index for index, _ in recent] == [4, 3, 2]

    def test_no_temp_files_left(self, store):
        store.write(0, "x\n", row_count=0)
        assert sorted(p.name for p in store.folder.iterdir()) == [".next_index", "ride_1.csv"]

    def test_index_not_reused_across_restart(self, manager, store):
        manager.ingest(SCENARIO_BATCH)
        first = manager.finalize().session.index
        store.get(first).unlink()

        restarted = SessionManager(ExportStore(store.folder))
        restarted.ingest(SCENARIO_BATCH)
        second = restarted.finalize().session.index

        assert second > first

    def test_unreadable_marker_falls_back_to_scan(self, tmp_path):
        folder = tmp_path / "rides"
        folder.mkdir()
        (folder / ".next_index").write_text("garbage")
        (folder / export_filename(2)).write_text("a\n")

        assert ExportStore(folder).next_index == 3

    def test_skips_export_created_out_of_band(self, manager, store):
        (store.folder / export_filename(0)).write_text("someone else\n")
        manager.ingest(SCENARIO_BATCH)

        result = manager.finalize()

        assert result.session.index == 1
        assert (store.folder / export_filename(0)).read_text() == "someone else\n"
        assert store.get(1).read_text().startswith("timestamp,")
        assert manager.status().index == 2
