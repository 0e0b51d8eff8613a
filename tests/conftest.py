"""Shared fixtures: a deterministic embedder and ready-made indexes."""

from __future__ import annotations

import time
import zlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence

import numpy as np
import pytest

from docsearch.errors import RateLimitError
from docsearch.index.lexical import LexicalIndex
from docsearch.index.orchestrator import SearchOrchestrator
from docsearch.index.semantic import SemanticIndex
from docsearch.index.snapshots import SnapshotStore
from docsearch.models import IndexedDocument
from docsearch.storage.memory import MemoryRegistry
from docsearch.utils.text import tokenize


class FakeEmbedder:
    """Hashes tokens into a bag-of-words vector; texts sharing words score higher."""

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension
        self.calls = 0
        self.fail_with: BaseException | None = None
        self.delay = 0.0
        self.per_text_delay = 0.0

    def _vector(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype="float32")
        for token in tokenize(text):
            vector[zlib.crc32(token.encode("utf-8")) % self.dimension] += 1.0
        norm = np.linalg.norm(vector)
        if norm == 0:
            vector[0] = 1.0
            return vector
        return vector / norm

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        self.calls += 1
        sentences = list(texts)
        if self.delay or self.per_text_delay:
            time.sleep(self.delay + self.per_text_delay * len(sentences))
        if self.fail_with is not None:
            raise self.fail_with
        if not sentences:
            return np.zeros((0, self.dimension), dtype="float32")
        return np.vstack([self._vector(text) for text in sentences])

    def embed_query(self, text: str) -> np.ndarray:
        return self.embed([text])[0]

    def rate_limit(self) -> None:
        self.fail_with = RateLimitError("429 Too Many Requests")


def make_document(doc_id: str, name: str = "notes.txt", size: int = 10) -> IndexedDocument:
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return IndexedDocument(
        id=doc_id,
        file_name=name,
        original_name=name,
        file_extension=extension,
        mime_type="text/plain",
        upload_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        file_size=size,
    )


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def registry() -> MemoryRegistry:
    return MemoryRegistry()


@pytest.fixture
def snapshot_dir(tmp_path: Path) -> Path:
    return tmp_path / "vector-indexes"


@pytest.fixture
def semantic(registry: MemoryRegistry, snapshot_dir: Path, embedder: FakeEmbedder):
    index = SemanticIndex(
        registry, SnapshotStore(snapshot_dir), embedder, chunk_chars=80, overlap=20
    )
    index.initialize()
    yield index
    index.shutdown()


@pytest.fixture
def orchestrator(registry: MemoryRegistry, semantic: SemanticIndex) -> SearchOrchestrator:
    service = SearchOrchestrator(registry, LexicalIndex(), semantic)
    service.initialize()
    return service


@pytest.fixture
def lexical_only(registry: MemoryRegistry, snapshot_dir: Path):
    semantic = SemanticIndex(registry, SnapshotStore(snapshot_dir), None)
    service = SearchOrchestrator(registry, LexicalIndex(), semantic)
    service.initialize()
    yield service
    service.shutdown()
