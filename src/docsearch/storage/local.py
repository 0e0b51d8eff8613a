"""Local-disk document registry: files on disk, metadata in SQLite."""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List

from docsearch.errors import RegistryError
from docsearch.storage.base import DocumentRegistry, FileMetadata
from docsearch.utils.files import compute_sha256, file_extension, unique_file_name

LOGGER = logging.getLogger(__name__)


class LocalRegistry(DocumentRegistry):
    """Persistence layer for uploaded documents."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.files_dir = self.root / "files"
        self.files_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = self.root / "registry.db"
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    file_name TEXT NOT NULL,
                    original_name TEXT NOT NULL,
                    file_extension TEXT NOT NULL,
                    mime_type TEXT NOT NULL,
                    upload_date TEXT NOT NULL,
                    file_size INTEGER NOT NULL,
                    file_path TEXT NOT NULL,
                    checksum TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_documents_upload_date
                    ON documents(upload_date)
                """
            )

    @staticmethod
    def _row_to_metadata(row: sqlite3.Row) -> FileMetadata:
        return FileMetadata(
            id=row["id"],
            file_name=row["file_name"],
            original_name=row["original_name"],
            file_extension=row["file_extension"],
            mime_type=row["mime_type"],
            upload_date=datetime.fromisoformat(row["upload_date"]),
            file_size=row["file_size"],
            file_path=row["file_path"],
            checksum=row["checksum"],
        )

    def save(
        self,
        data: bytes,
        file_name: str,
        mime_type: str,
        *,
        generate_unique_name: bool = True,
    ) -> FileMetadata:
        file_id = str(uuid.uuid4())
        stored_name = unique_file_name(file_name) if generate_unique_name else file_name
        extension = file_extension(file_name)
        target = self.files_dir / (f"{file_id}.{extension}" if extension else file_id)

        try:
            target.write_bytes(data)
        except OSError as exc:
            raise RegistryError(f"Failed to write {stored_name}: {exc}") from exc

        metadata = FileMetadata(
            id=file_id,
            file_name=stored_name,
            original_name=file_name,
            file_extension=extension,
            mime_type=mime_type,
            upload_date=datetime.now(timezone.utc),
            file_size=len(data),
            file_path=str(target),
            checksum=compute_sha256(data),
        )
        try:
            with self.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO documents(id, file_name, original_name, file_extension,
                        mime_type, upload_date, file_size, file_path, checksum)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        metadata.id,
                        metadata.file_name,
                        metadata.original_name,
                        metadata.file_extension,
                        metadata.mime_type,
                        metadata.upload_date.isoformat(),
                        metadata.file_size,
                        metadata.file_path,
                        metadata.checksum,
                    ),
                )
        except sqlite3.Error as exc:
            target.unlink(missing_ok=True)
            raise RegistryError(f"Failed to record {stored_name}: {exc}") from exc

        LOGGER.info("Stored %s at %s (%d bytes)", stored_name, target, len(data))
        return metadata

    def get_metadata(self, file_id: str) -> FileMetadata | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM documents WHERE id = ?", (file_id,)
            ).fetchone()
        return self._row_to_metadata(row) if row else None

    def get_bytes(self, file_id: str) -> bytes | None:
        metadata = self.get_metadata(file_id)
        if metadata is None:
            return None
        try:
            return Path(metadata.file_path).read_bytes()
        except OSError as exc:
            LOGGER.warning("Stored file for %s is unreadable: %s", file_id, exc)
            return None

    def list_all(self) -> List[FileMetadata]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM documents ORDER BY upload_date, rowid"
            ).fetchall()
        return [self._row_to_metadata(row) for row in rows]

    def delete(self, file_id: str) -> bool:
        metadata = self.get_metadata(file_id)
        if metadata is None:
            LOGGER.debug("File not found for deletion: %s", file_id)
            return False
        with self.transaction() as conn:
            conn.execute("DELETE FROM documents WHERE id = ?", (file_id,))
        Path(metadata.file_path).unlink(missing_ok=True)
        LOGGER.info("Deleted %s", metadata.file_name)
        return True
