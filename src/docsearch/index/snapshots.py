"""Timestamped, atomically written vector index snapshots.

Layout of the snapshot directory::

    vector-index-<millis>.npz          committed snapshots
    .vector-index-<uuid>.npz.tmp       in-progress writes

A snapshot is written to a temporary file in the same directory and then
renamed into place with ``os.replace``, so readers never observe a partial
file. After every save only the newest ``retention`` snapshots are kept.
"""

from __future__ import annotations

import logging
import os
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from docsearch.errors import SnapshotError
from docsearch.index.vector import VectorIndex

LOGGER = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "vector-index-"
SNAPSHOT_SUFFIX = ".npz"
TEMP_SUFFIX = ".npz.tmp"
# other processes may be writing into the same directory
STALE_TEMP_SECONDS = 600.0
_SNAPSHOT_RE = re.compile(r"^vector-index-(\d+)\.npz$")


@dataclass(slots=True, frozen=True)
class SnapshotFile:
    path: Path
    timestamp: int


def _now_ms() -> int:
    return int(time.time() * 1000)


class SnapshotStore:
    """Reads and writes vector index snapshots in one directory."""

    def __init__(
        self, directory: Path, *, retention: int = 3, stale_temp_age: float = STALE_TEMP_SECONDS
    ) -> None:
        if retention < 1:
            raise ValueError("retention must be at least 1")
        self.directory = Path(directory)
        self.retention = retention
        self.stale_temp_age = stale_temp_age
        self.directory.mkdir(parents=True, exist_ok=True)

    def list_snapshots(self) -> List[SnapshotFile]:
        """Committed snapshots, newest first."""
        try:
            entries = list(self.directory.iterdir())
        except OSError as exc:
            LOGGER.error("Error reading snapshot directory %s: %s", self.directory, exc)
            return []

        snapshots = []
        for entry in entries:
            match = _SNAPSHOT_RE.match(entry.name)
            if match and entry.is_file():
                snapshots.append(SnapshotFile(path=entry, timestamp=int(match.group(1))))
        snapshots.sort(key=lambda snap: snap.timestamp, reverse=True)
        return snapshots

    def latest_timestamp(self) -> int | None:
        snapshots = self.list_snapshots()
        return snapshots[0].timestamp if snapshots else None

    def _next_timestamp(self) -> int:
        latest = self.latest_timestamp()
        now = _now_ms()
        return now if latest is None or now > latest else latest + 1

    def save(self, index: VectorIndex) -> int:
        """Persist ``index`` and return the new snapshot's timestamp."""
        temp_path = self.directory / f".{SNAPSHOT_PREFIX}{uuid.uuid4().hex}{TEMP_SUFFIX}"
        try:
            with temp_path.open("wb") as handle:
                index.save(handle)
                handle.flush()
                os.fsync(handle.fileno())
            timestamp = self._next_timestamp()
            final_path = self.directory / f"{SNAPSHOT_PREFIX}{timestamp}{SNAPSHOT_SUFFIX}"
            os.replace(temp_path, final_path)
        except (OSError, ValueError) as exc:
            temp_path.unlink(missing_ok=True)
            raise SnapshotError(f"Failed to save vector index snapshot: {exc}") from exc

        LOGGER.info("Vector index saved to %s (%d chunks)", final_path.name, len(index))
        self.cleanup()
        return timestamp

    def load(self, snapshot: SnapshotFile) -> VectorIndex:
        try:
            return VectorIndex.load(snapshot.path)
        except Exception as exc:
            raise SnapshotError(f"Failed to load {snapshot.path.name}: {exc}") from exc

    def load_latest(self) -> Tuple[VectorIndex, int] | None:
        """Load the newest snapshot that reads cleanly, falling back to older ones."""
        for snapshot in self.list_snapshots():
            try:
                index = self.load(snapshot)
            except SnapshotError as exc:
                LOGGER.warning("%s; trying an older snapshot", exc)
                continue
            LOGGER.info(
                "Vector index loaded from %s (timestamp: %d)", snapshot.path.name, snapshot.timestamp
            )
            return index, snapshot.timestamp
        return None

    def cleanup(self) -> List[Path]:
        """Delete all but the newest ``retention`` snapshots, oldest first.

        Temp files are only removed once older than ``stale_temp_age`` seconds.
        """
        snapshots = self.list_snapshots()
        deleted: List[Path] = []
        for snapshot in reversed(snapshots[self.retention :]):
            try:
                snapshot.path.unlink()
            except OSError as exc:
                LOGGER.error("Error deleting old snapshot %s: %s", snapshot.path.name, exc)
                continue
            deleted.append(snapshot.path)
            LOGGER.info("Deleted old snapshot %s", snapshot.path.name)

        cutoff = time.time() - self.stale_temp_age
        for temp in self.directory.glob(f".{SNAPSHOT_PREFIX}*{TEMP_SUFFIX}"):
            try:
                if temp.stat().st_mtime < cutoff:
                    temp.unlink()
                    deleted.append(temp)
                    LOGGER.info("Deleted abandoned temp file %s", temp.name)
            except OSError:
                continue
        return deleted
