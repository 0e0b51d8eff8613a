"""Tests for vector index snapshot persistence."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest

from docsearch.errors import SnapshotError
from docsearch.index.snapshots import SnapshotStore
from docsearch.index.vector import VectorIndex
from docsearch.models import Chunk


def _index(doc_id: str = "doc", count: int = 1) -> VectorIndex:
    index = VectorIndex(3)
    chunks = [Chunk(document_id=doc_id, text=f"text {i}", sequence=i) for i in range(count)]
    index.add(chunks, np.ones((count, 3), dtype="float32") / np.sqrt(3))
    return index


@pytest.fixture
def store(tmp_path: Path) -> SnapshotStore:
    return SnapshotStore(tmp_path / "snapshots", retention=3)


class TestSave:
    """Test SnapshotStore.save."""

    def test_creates_directory(self, tmp_path: Path) -> None:
        SnapshotStore(tmp_path / "nested" / "dir")
        assert (tmp_path / "nested" / "dir").is_dir()

    def test_invalid_retention(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            SnapshotStore(tmp_path, retention=0)

    def test_save_writes_named_file(self, store: SnapshotStore) -> None:
        timestamp = store.save(_index())
        assert (store.directory / f"vector-index-{timestamp}.npz").is_file()
        assert store.latest_timestamp() == timestamp

    def test_timestamps_strictly_increase(self, store: SnapshotStore) -> None:
        stamps = [store.save(_index()) for _ in range(3)]
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == 3

    def test_retention_keeps_three_newest(self, store: SnapshotStore) -> None:
        """Four sequential saves leave exactly the three most recent files."""
        stamps = [store.save(_index(count=i + 1)) for i in range(4)]

        remaining = sorted(p.name for p in store.directory.glob("vector-index-*.npz"))
        assert remaining == sorted(f"vector-index-{ts}.npz" for ts in stamps[1:])
        assert [snap.timestamp for snap in store.list_snapshots()] == stamps[:0:-1]

    def test_no_temp_files_left(self, store: SnapshotStore) -> None:
        store.save(_index())
        assert list(store.directory.glob("*.tmp")) == []

    def test_failed_rename_leaves_no_snapshot(self, store: SnapshotStore) -> None:
        """A failed save must not leave a partial snapshot or temp file behind."""
        with patch("docsearch.index.snapshots.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(SnapshotError, match="disk full"):
                store.save(_index())

        assert store.list_snapshots() == []
        assert list(store.directory.iterdir()) == []

    def test_failed_save_keeps_previous(self, store: SnapshotStore) -> None:
        first = store.save(_index("first"))
        with patch("docsearch.index.snapshots.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(SnapshotError):
                store.save(_index("second"))

        loaded, timestamp = store.load_latest()
        assert timestamp == first
        assert loaded.document_ids() == {"first"}


class TestLoad:
    """Test loading and fallback."""

    def test_load_latest_empty(self, store: SnapshotStore) -> None:
        assert store.load_latest() is None
        assert store.latest_timestamp() is None

    def test_load_latest(self, store: SnapshotStore) -> None:
        store.save(_index("old"))
        newest = store.save(_index("new", count=2))

        loaded, timestamp = store.load_latest()
        assert timestamp == newest
        assert loaded.document_ids() == {"new"}
        assert len(loaded) == 2

    def test_falls_back_to_older_snapshot(self, store: SnapshotStore) -> None:
        """A corrupt newest snapshot should fall back to the previous one."""
        older = store.save(_index("old"))
        newest = store.save(_index("new"))
        (store.directory / f"vector-index-{newest}.npz").write_bytes(b"garbage")

        loaded, timestamp = store.load_latest()
        assert timestamp == older
        assert loaded.document_ids() == {"old"}

    def test_all_corrupt(self, store: SnapshotStore) -> None:
        newest = store.save(_index())
        (store.directory / f"vector-index-{newest}.npz").write_bytes(b"garbage")
        assert store.load_latest() is None

    def test_load_raises_snapshot_error(self, store: SnapshotStore) -> None:
        store.save(_index())
        snapshot = store.list_snapshots()[0]
        snapshot.path.write_bytes(b"garbage")
        with pytest.raises(SnapshotError):
            store.load(snapshot)

    def test_ignores_unrelated_files(self, store: SnapshotStore) -> None:
        (store.directory / "notes.txt").write_text("x")
        (store.directory / "vector-index-abc.npz").write_text("x")
        assert store.list_snapshots() == []


class TestCleanup:
    """Test cleanup of old snapshots and abandoned temp files."""

    def test_removes_stale_temp_files(self, store: SnapshotStore) -> None:
        stale = store.directory / ".vector-index-deadbeef.npz.tmp"
        stale.write_bytes(b"partial")
        os.utime(stale, (1_000_000, 1_000_000))

        store.save(_index())
        assert not stale.exists()

    def test_keeps_recent_temp_older_than_snapshot(self, store: SnapshotStore) -> None:
        """Another process may still be writing a temp file that predates our save."""
        inflight = store.directory / ".vector-index-inflight.npz.tmp"
        inflight.write_bytes(b"partial")
        store.save(_index())
        newest = store.list_snapshots()[0].path.stat().st_mtime
        os.utime(inflight, (newest - 5, newest - 5))

        store.cleanup()
        assert inflight.exists()

    def test_stale_temp_age_is_configurable(self, tmp_path: Path) -> None:
        store = SnapshotStore(tmp_path, stale_temp_age=0)
        leftover = tmp_path / ".vector-index-old.npz.tmp"
        leftover.write_bytes(b"partial")
        os.utime(leftover, (1_000_000, 1_000_000))

        assert store.cleanup() == [leftover]

    def test_cleanup_returns_deleted(self, tmp_path: Path) -> None:
        store = SnapshotStore(tmp_path, retention=3)
        for name in ("vector-index-1.npz", "vector-index-2.npz", "vector-index-3.npz", "vector-index-4.npz"):
            (tmp_path / name).write_bytes(b"x")

        deleted = store.cleanup()
        assert deleted == [tmp_path / "vector-index-1.npz"]
        assert [snap.timestamp for snap in store.list_snapshots()] == [4, 3, 2]
