"""Document registry interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

from docsearch.models import IndexedDocument


@dataclass(slots=True)
class FileMetadata:
    """Authoritative record of an uploaded document."""

    id: str
    file_name: str
    original_name: str
    file_extension: str
    mime_type: str
    upload_date: datetime
    file_size: int
    file_path: str
    checksum: str

    def to_indexed(self) -> IndexedDocument:
        return IndexedDocument(
            id=self.id,
            file_name=self.file_name,
            original_name=self.original_name,
            file_extension=self.file_extension,
            mime_type=self.mime_type,
            upload_date=self.upload_date,
            file_size=self.file_size,
        )


class DocumentRegistry(ABC):
    """Store of document bytes and metadata, keyed by file id.

    The search engine only reads from it; uploads and deletions go through
    ``save`` and ``delete``.
    """

    @abstractmethod
    def save(
        self,
        data: bytes,
        file_name: str,
        mime_type: str,
        *,
        generate_unique_name: bool = True,
    ) -> FileMetadata:
        """Store a file and return its metadata."""

    @abstractmethod
    def get_bytes(self, file_id: str) -> bytes | None:
        """Return file contents, or None when unknown."""

    @abstractmethod
    def get_metadata(self, file_id: str) -> FileMetadata | None:
        """Return file metadata, or None when unknown."""

    @abstractmethod
    def list_all(self) -> List[FileMetadata]:
        """Return metadata for every stored file, oldest upload first."""

    @abstractmethod
    def delete(self, file_id: str) -> bool:
        """Delete a file; False when it did not exist."""

    def exists(self, file_id: str) -> bool:
        return self.get_metadata(file_id) is not None

    def stats(self) -> Dict[str, Any]:
        files = self.list_all()
        return {
            "file_count": len(files),
            "total_size_bytes": sum(meta.file_size for meta in files),
        }

    def close(self) -> None:
        """Release resources held by the backend."""
