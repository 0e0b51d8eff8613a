"""Coordinates the lexical index, the semantic index and the document registry."""

from __future__ import annotations

import logging
import time
from typing import List

from docsearch.index.lexical import LexicalIndex
from docsearch.index.semantic import Extractor, SemanticIndex
from docsearch.ingestion.extract import extract
from docsearch.models import (
    IndexedDocument,
    IndexResult,
    IndexStats,
    OperationResult,
    ScoredChunk,
    SearchOptions,
    SearchResponse,
)
from docsearch.storage.base import DocumentRegistry, FileMetadata

LOGGER = logging.getLogger(__name__)


class SearchOrchestrator:
    """Single entry point for indexing and search.

    Writes always go to the lexical index and, best-effort, to the semantic
    index. A semantic failure never undoes or fails the lexical half, so
    keyword search keeps working while embeddings are degraded.
    """

    def __init__(
        self,
        registry: DocumentRegistry,
        lexical: LexicalIndex,
        semantic: SemanticIndex,
        *,
        extractor: Extractor = extract,
    ) -> None:
        self.registry = registry
        self.lexical = lexical
        self.semantic = semantic
        self.extractor = extractor

    def initialize(self) -> None:
        self.semantic.initialize()
        LOGGER.info(
            "Search orchestrator ready (semantic state: %s)", self.semantic.state.value
        )

    def index_document(self, metadata: IndexedDocument, content: str) -> IndexResult:
        if not content or not content.strip():
            LOGGER.info("No content to index for %s, dropping any earlier entries", metadata.file_name)
            self.remove_document(metadata.id)
            return IndexResult(success=True, indexed=False)

        self.lexical.add(metadata, content)
        return self._vector_write(metadata, content)

    def update_document(self, metadata: IndexedDocument, content: str) -> IndexResult:
        if not content or not content.strip():
            LOGGER.info("Updated %s has no content, removing it from the indexes", metadata.id)
            self.remove_document(metadata.id)
            return IndexResult(success=True, indexed=False)

        self.lexical.update(metadata, content)
        return self._vector_write(metadata, content)

    def _vector_write(self, metadata: IndexedDocument, content: str) -> IndexResult:
        vector = self.semantic.add_document(metadata, content)
        if not vector.success:
            LOGGER.warning(
                "Semantic indexing of %s skipped: %s", metadata.file_name, vector.error
            )
        return IndexResult(
            success=True,
            indexed=True,
            vector_indexed=vector.success,
            error=vector.error,
            retryable=vector.retryable,
        )

    def remove_document(self, document_id: str) -> bool:
        """Remove from both indexes regardless of either one's health."""
        removed = self.lexical.remove(document_id)
        vector = self.semantic.remove_document(document_id)
        if not vector.success:
            LOGGER.debug("Semantic removal of %s skipped: %s", document_id, vector.error)
        return removed

    def search(self, query: str, options: SearchOptions | None = None) -> SearchResponse:
        """Keyword search with metadata refreshed from the registry."""
        options = options or SearchOptions()
        started = time.perf_counter()
        if not query or not query.strip():
            return SearchResponse(results=[], total=0, query=query or "", elapsed_ms=0)

        file_types = options.normalized_file_types()
        results: List[IndexedDocument] = []
        for document_id in self.lexical.ids_matching(query):
            current = self.registry.get_metadata(document_id)
            if current is None:
                LOGGER.debug("Dropping %s from results, no longer in the registry", document_id)
                continue
            if file_types and current.file_extension.lower() not in file_types:
                continue
            results.append(current.to_indexed())

        page = results[options.offset : options.offset + options.limit]
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        LOGGER.info("Search %r -> %d results in %dms", query, len(results), elapsed_ms)
        return SearchResponse(results=page, total=len(results), query=query, elapsed_ms=elapsed_ms)

    def vector_search(self, query: str, k: int = 4) -> OperationResult[List[ScoredChunk]]:
        return self.semantic.similarity_search(query, k)

    def ingest_upload(self, data: bytes, file_name: str, mime_type: str) -> tuple[FileMetadata, IndexResult]:
        """Store an uploaded file, extract its text and index it.

        Extraction failures still yield a stored, listable upload with
        ``indexed=False``.
        """
        metadata = self.registry.save(data, file_name, mime_type)
        extracted = self.extractor(data, file_name)
        if not extracted.success:
            LOGGER.warning("Text extraction failed for %s: %s", file_name, extracted.error)
            return metadata, IndexResult(success=True, indexed=False, error=extracted.error)
        return metadata, self.index_document(metadata.to_indexed(), extracted.content)

    def delete_upload(self, document_id: str) -> bool:
        self.remove_document(document_id)
        return self.registry.delete(document_id)

    def list_documents(self) -> List[FileMetadata]:
        return self.registry.list_all()

    def rebuild_vector_index(self) -> OperationResult[int]:
        return self.semantic.rebuild_all()

    def get_stats(self) -> IndexStats:
        return IndexStats(
            document_count=self.lexical.get_stats()["document_count"],
            vector_available=self.semantic.resident,
        )

    def health(self) -> dict:
        return {
            "lexical_ready": True,
            "vector_ready": self.semantic.resident,
            "vector_state": self.semantic.state.value,
        }

    def clear(self) -> None:
        self.lexical.clear()

    def shutdown(self) -> None:
        self.semantic.shutdown()
        self.registry.close()
        LOGGER.info("Search orchestrator shut down")
