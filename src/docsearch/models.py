"""Core DocSearch data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class IndexedDocument:
    """Display and filter metadata captured when a document is indexed."""

    id: str
    file_name: str
    original_name: str
    file_extension: str
    mime_type: str
    upload_date: datetime
    file_size: int

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["upload_date"] = self.upload_date.isoformat()
        return data


@dataclass(slots=True)
class Chunk:
    """Window of document text paired with provenance metadata."""

    document_id: str
    text: str
    sequence: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def chunk_id(self) -> str:
        return f"{self.document_id}:{self.sequence}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "text": self.text,
            "sequence": self.sequence,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chunk":
        return cls(
            document_id=str(data["document_id"]),
            text=str(data["text"]),
            sequence=int(data["sequence"]),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(slots=True)
class ScoredChunk:
    chunk: Chunk
    score: float

    def to_dict(self) -> Dict[str, Any]:
        data = self.chunk.to_dict()
        data["chunk_id"] = self.chunk.chunk_id
        data["score"] = self.score
        return data


@dataclass(slots=True)
class SearchOptions:
    limit: int = 20
    offset: int = 0
    file_types: Optional[List[str]] = None

    def normalized_file_types(self) -> set[str]:
        """Lower-cased extensions without leading dots."""
        if not self.file_types:
            return set()
        return {ext.lower().lstrip(".") for ext in self.file_types if ext.strip()}


@dataclass(slots=True)
class SearchResponse:
    results: List[IndexedDocument]
    total: int
    query: str
    elapsed_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [doc.to_dict() for doc in self.results],
            "total": self.total,
            "query": self.query,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass(slots=True)
class OperationResult(Generic[T]):
    """Tagged outcome of a vector-side operation.

    ``success`` True carries ``data``; False carries a human-readable ``error``
    and whether the caller may retry later.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    retryable: bool = False

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "OperationResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, *, retryable: bool = False) -> "OperationResult[T]":
        return cls(success=False, error=error, retryable=retryable)


@dataclass(slots=True)
class IndexResult:
    success: bool
    indexed: bool
    vector_indexed: bool = False
    error: Optional[str] = None
    retryable: bool = False


@dataclass(slots=True)
class IndexStats:
    document_count: int
    vector_available: bool
