"""Semantic (embedding) index service with snapshot persistence.

Lifecycle::

    UNINITIALIZED -> INITIALIZING -> READY
                                  -> UNAVAILABLE   (no embedding backend)
    any -> SHUT_DOWN

``UNAVAILABLE`` is a reported capability, not an error: every operation
returns a failed :class:`OperationResult` with a readable message instead of
raising. Embedding failures are classified (rate limit, network, ...) and
translated; raw exception text only goes to the log.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from enum import Enum
from typing import Callable, Iterator, List, Sequence

import numpy as np

from docsearch.embedding.encoder import EmbeddingProvider
from docsearch.errors import (
    NOT_AVAILABLE_MESSAGE,
    ErrorKind,
    SnapshotError,
    classify_error,
    friendly_message,
    is_retryable,
)
from docsearch.index.snapshots import SnapshotStore
from docsearch.index.vector import VectorIndex
from docsearch.ingestion.extract import ExtractResult, extract
from docsearch.models import Chunk, IndexedDocument, OperationResult, ScoredChunk
from docsearch.storage.base import DocumentRegistry
from docsearch.utils.text import chunk_text

LOGGER = logging.getLogger(__name__)

Extractor = Callable[[bytes, str], ExtractResult]


class SemanticState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    UNAVAILABLE = "unavailable"
    SHUT_DOWN = "shut_down"


class SemanticIndex:
    """Chunked embedding index kept in memory and mirrored to disk snapshots.

    Adding a document that is already embedded replaces its previous chunks,
    so re-adding is idempotent.
    """

    def __init__(
        self,
        registry: DocumentRegistry,
        snapshots: SnapshotStore,
        embedder: EmbeddingProvider | None = None,
        *,
        extractor: Extractor = extract,
        chunk_chars: int = 500,
        overlap: int = 100,
        embed_timeout: float | None = 60.0,
    ) -> None:
        self.registry = registry
        self.snapshots = snapshots
        self.extractor = extractor
        self.chunk_chars = chunk_chars
        self.overlap = overlap
        self.embed_timeout = embed_timeout
        self._embedder = embedder
        self._state = SemanticState.UNINITIALIZED
        self._index: VectorIndex | None = None
        self._timestamp: int | None = None
        self._checked_timestamp: int | None = None
        self._lock = threading.RLock()
        self._build_lock = threading.Lock()
        self._pending: dict[str, tuple[List[Chunk], np.ndarray] | None] | None = None
        self._executor: concurrent.futures.ThreadPoolExecutor | None = None

    @property
    def state(self) -> SemanticState:
        return self._state

    @property
    def snapshot_timestamp(self) -> int | None:
        return self._timestamp

    @property
    def resident(self) -> bool:
        return self._index is not None

    def initialize(self) -> bool:
        """Prepare the embedding client and load the newest snapshot.

        Returns False when no embedding backend is configured.
        """
        with self._lock:
            if self._state in (SemanticState.READY, SemanticState.UNAVAILABLE):
                return self._state is SemanticState.READY
            self._state = SemanticState.INITIALIZING
            if self._embedder is None:
                LOGGER.warning("No embedding backend configured; semantic search disabled")
                self._state = SemanticState.UNAVAILABLE
                return False

            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="docsearch-embed"
            )
            self._state = SemanticState.READY
            self._refresh_locked()
            if self._index is None:
                LOGGER.info("No vector index snapshot found, will build one when needed")
            return True

    def configure(self, embedder: EmbeddingProvider | None) -> bool:
        """Swap the embedding backend and re-run initialization."""
        with self._lock:
            self._shutdown_executor()
            self._embedder = embedder
            self._state = SemanticState.UNINITIALIZED
            self._index = None
            self._timestamp = None
            self._checked_timestamp = None
        return self.initialize()

    def shutdown(self) -> None:
        with self._lock:
            self._shutdown_executor()
            self._index = None
            self._state = SemanticState.SHUT_DOWN
        LOGGER.info("Semantic index shut down")

    def _shutdown_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def _ready(self) -> bool:
        if self._state is SemanticState.UNINITIALIZED:
            self.initialize()
        return self._state is SemanticState.READY

    def _embed(self, texts: Sequence[str]) -> np.ndarray:
        """Run the embedder on the worker thread, bounded by ``embed_timeout``."""
        executor = self._executor
        if executor is None or self._embedder is None:
            raise RuntimeError("Semantic index is not initialized")
        future = executor.submit(self._embedder.embed, list(texts))
        try:
            return np.asarray(future.result(timeout=self.embed_timeout), dtype="float32")
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise TimeoutError(f"Embedding timed out after {self.embed_timeout}s") from exc

    def _failure(self, exc: BaseException, action: str) -> OperationResult:
        kind = classify_error(exc)
        LOGGER.error("%s failed (%s): %s", action, kind.value, exc)
        return OperationResult.fail(friendly_message(kind), retryable=is_retryable(kind))

    @staticmethod
    def _not_available() -> OperationResult:
        return OperationResult.fail(NOT_AVAILABLE_MESSAGE)

    def build_chunks(self, doc: IndexedDocument, content: str) -> List[Chunk]:
        metadata = doc.to_dict()
        metadata.pop("id", None)
        return [
            Chunk(document_id=doc.id, text=text, sequence=sequence, metadata=dict(metadata))
            for sequence, text in enumerate(
                chunk_text(content, max_chars=self.chunk_chars, overlap=self.overlap)
            )
            if text.strip()
        ]

    def _refresh_locked(self) -> None:
        """Load from disk when nothing is resident or a newer snapshot exists."""
        latest = self.snapshots.latest_timestamp()
        if latest is None:
            return
        if self._index is not None and (
            self._checked_timestamp is not None and latest <= self._checked_timestamp
        ):
            return
        if self._index is not None:
            LOGGER.info(
                "Snapshot %d is newer than in-memory index (%s), reloading", latest, self._timestamp
            )

        self._checked_timestamp = latest
        loaded = self.snapshots.load_latest()
        if loaded is None:
            return
        index, timestamp = loaded
        dimension = getattr(self._embedder, "dimension", None)
        if dimension is not None and index.dimension != dimension:
            LOGGER.warning(
                "Snapshot dimension %d does not match embedder dimension %d; ignoring it",
                index.dimension,
                dimension,
            )
            return
        self._index = index
        self._timestamp = timestamp

    def _save_locked(self) -> None:
        if self._index is None:
            return
        try:
            timestamp = self.snapshots.save(self._index)
        except SnapshotError as exc:
            LOGGER.error("%s; the in-memory index stays authoritative", exc)
            return
        self._timestamp = timestamp
        self._checked_timestamp = timestamp

    def _record_pending(self, document_id: str, entry: tuple[List[Chunk], np.ndarray] | None) -> None:
        """Remember a write made while a rebuild is in flight. Caller holds ``_lock``."""
        if self._pending is not None:
            self._pending[document_id] = entry

    def add_document(self, doc: IndexedDocument, content: str) -> OperationResult[int]:
        """Chunk, embed and insert one document, then persist a snapshot."""
        if not self._ready():
            return self._not_available()

        chunks = self.build_chunks(doc, content or "")
        if not chunks:
            LOGGER.info("No text to embed for %s", doc.file_name)
            return OperationResult.ok(0)

        try:
            embeddings = self._embed([chunk.text for chunk in chunks])
        except Exception as exc:
            return self._failure(exc, f"Embedding {doc.file_name}")

        with self._lock:
            if self._state is not SemanticState.READY:
                return self._not_available()
            self._refresh_locked()
            if self._index is None:
                LOGGER.info("Creating new vector index")
                self._index = VectorIndex(int(embeddings.shape[1]))
            try:
                replaced = self._index.remove_document(doc.id)
                self._index.add(chunks, embeddings)
            except ValueError as exc:
                return self._failure(exc, f"Inserting {doc.file_name}")
            self._record_pending(doc.id, (chunks, embeddings))
            if replaced:
                LOGGER.info("Replaced %d previous chunks of %s", replaced, doc.id)
            self._save_locked()

        LOGGER.info("Added %s to vector index (%d chunks)", doc.file_name, len(chunks))
        return OperationResult.ok(len(chunks))

    def remove_document(self, document_id: str) -> OperationResult[int]:
        if not self._ready():
            return self._not_available()
        with self._lock:
            self._record_pending(document_id, None)
            self._refresh_locked()
            if self._index is None:
                return OperationResult.ok(0)
            removed = self._index.remove_document(document_id)
            if removed:
                self._save_locked()
                LOGGER.info("Removed %d chunks of %s from vector index", removed, document_id)
        return OperationResult.ok(removed)

    def build_vector_store(self) -> OperationResult[int]:
        """Build from the registry unless an index is already resident."""
        if not self._ready():
            return self._not_available()
        with self._lock:
            if self._index is not None:
                return OperationResult.ok(len(self._index))
        return self._rebuild(force=False)

    def rebuild_all(self) -> OperationResult[int]:
        """Re-embed every registry document, replacing memory and disk state."""
        if not self._ready():
            return self._not_available()
        LOGGER.info("Force rebuilding vector index from scratch")
        return self._rebuild(force=True)

    def _iter_document_chunks(self) -> Iterator[tuple[str, List[Chunk]]]:
        files = self.registry.list_all()
        LOGGER.info("Found %d documents to process", len(files))
        for metadata in files:
            try:
                data = self.registry.get_bytes(metadata.id)
                if data is None:
                    LOGGER.warning("No stored bytes for %s, skipping", metadata.file_name)
                    continue
                result = self.extractor(data, metadata.file_name)
                if not result.success or not result.content.strip():
                    LOGGER.warning("Could not extract content from %s", metadata.file_name)
                    continue
                chunks = self.build_chunks(metadata.to_indexed(), result.content)
            except Exception as exc:
                LOGGER.error("Error processing %s: %s", metadata.file_name, exc)
                continue
            if chunks:
                yield metadata.file_name, chunks

    def _replay_pending(self, index: VectorIndex, pending: dict) -> None:
        """Apply writes that landed while ``index`` was being built."""
        for document_id, entry in pending.items():
            index.remove_document(document_id)
            if entry is None:
                continue
            chunks, embeddings = entry
            try:
                index.add(chunks, embeddings)
            except ValueError as exc:
                LOGGER.warning("Could not carry %s into rebuilt index: %s", document_id, exc)
        if pending:
            LOGGER.info("Replayed %d concurrent changes onto rebuilt index", len(pending))

    def _rebuild(self, *, force: bool) -> OperationResult[int]:
        with self._build_lock:
            if not force and self._index is not None:
                return OperationResult.ok(len(self._index))
            with self._lock:
                self._pending = {}
            try:
                return self._build_index()
            finally:
                with self._lock:
                    self._pending = None

    def _build_index(self) -> OperationResult[int]:
        """Embed document by document so each call stays under ``embed_timeout``."""
        index: VectorIndex | None = None
        last_error: BaseException | None = None
        skipped = 0
        for file_name, chunks in self._iter_document_chunks():
            try:
                embeddings = self._embed([chunk.text for chunk in chunks])
                if index is None:
                    index = VectorIndex(int(embeddings.shape[1]))
                index.add(chunks, embeddings)
            except Exception as exc:
                LOGGER.warning("Skipping %s, embedding failed: %s", file_name, exc)
                last_error = exc
                skipped += 1

        if index is None:
            if last_error is not None:
                return self._failure(last_error, "Building vector index")
            index = VectorIndex(int(self._embedder.dimension))

        with self._lock:
            if self._state is not SemanticState.READY:
                return self._not_available()
            self._replay_pending(index, self._pending or {})
            self._index = index
            self._save_locked()
        LOGGER.info(
            "Vector index built: %d chunks from %d documents (%d skipped)",
            len(index),
            len(index.document_ids()),
            skipped,
        )
        return OperationResult.ok(len(index))

    def _ensure_index(self) -> bool:
        with self._lock:
            self._refresh_locked()
            if self._index is not None:
                return True
        LOGGER.info("No vector index in memory or on disk, building from stored documents")
        result = self._rebuild(force=False)
        if not result.success:
            LOGGER.warning("Could not build vector index: %s", result.error)
        return self._index is not None

    def is_available(self) -> bool:
        """True when an index is resident, loading or building one if needed."""
        if not self._ready():
            return False
        try:
            return self._ensure_index()
        except Exception as exc:
            LOGGER.error("Error checking vector index availability: %s", exc)
            return False

    def similarity_search(self, query: str, k: int = 4) -> OperationResult[List[ScoredChunk]]:
        if not self._ready():
            return self._not_available()
        if not query or not query.strip():
            return OperationResult.ok([])
        if not self.is_available():
            return OperationResult.fail(
                "Semantic search is not ready yet and could not be built from stored documents.",
                retryable=True,
            )

        try:
            query_vector = self._embed([query])[0]
        except Exception as exc:
            return self._failure(exc, "Similarity search")

        with self._lock:
            if self._index is None:
                return OperationResult.fail(friendly_message(ErrorKind.GENERIC), retryable=True)
            try:
                results = self._index.search(query_vector, top_k=k)
            except ValueError as exc:
                return self._failure(exc, "Similarity search")
        return OperationResult.ok(results)

    def stats(self) -> dict:
        with self._lock:
            return {
                "state": self._state.value,
                "chunk_count": len(self._index) if self._index is not None else 0,
                "document_count": len(self._index.document_ids()) if self._index is not None else 0,
                "snapshot_timestamp": self._timestamp,
            }
