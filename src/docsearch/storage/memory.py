"""In-memory document registry."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List

from docsearch.storage.base import DocumentRegistry, FileMetadata
from docsearch.utils.files import compute_sha256, file_extension, unique_file_name

LOGGER = logging.getLogger(__name__)


class MemoryRegistry(DocumentRegistry):
    """Keeps file bytes and metadata in dictionaries; lost on restart."""

    def __init__(self) -> None:
        self._files: Dict[str, bytes] = {}
        self._metadata: Dict[str, FileMetadata] = {}
        self._lock = threading.Lock()

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
        metadata = FileMetadata(
            id=file_id,
            file_name=stored_name,
            original_name=file_name,
            file_extension=file_extension(file_name),
            mime_type=mime_type,
            upload_date=datetime.now(timezone.utc),
            file_size=len(data),
            file_path=f"memory://{file_id}",
            checksum=compute_sha256(data),
        )
        with self._lock:
            self._files[file_id] = bytes(data)
            self._metadata[file_id] = metadata
        LOGGER.info("Stored %s in memory (%d bytes)", stored_name, len(data))
        return metadata

    def get_bytes(self, file_id: str) -> bytes | None:
        with self._lock:
            return self._files.get(file_id)

    def get_metadata(self, file_id: str) -> FileMetadata | None:
        with self._lock:
            return self._metadata.get(file_id)

    def list_all(self) -> List[FileMetadata]:
        with self._lock:
            return list(self._metadata.values())

    def delete(self, file_id: str) -> bool:
        with self._lock:
            metadata = self._metadata.pop(file_id, None)
            self._files.pop(file_id, None)
        if metadata is None:
            LOGGER.debug("File not found for deletion: %s", file_id)
            return False
        LOGGER.info("Deleted %s from memory", metadata.file_name)
        return True
