"""Batch ingestion: files from disk and warm-up from the registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from docsearch.index.orchestrator import SearchOrchestrator
from docsearch.ingestion.extract import SUPPORTED_EXTENSIONS
from docsearch.models import IndexResult
from docsearch.utils.files import guess_mime_type, iter_document_paths

LOGGER = logging.getLogger(__name__)


def find_documents(paths: Sequence[Path]) -> list[Path]:
    """Find all supported documents under the given paths."""
    return list(iter_document_paths(paths, SUPPORTED_EXTENSIONS))


@dataclass(slots=True)
class IndexReport:
    indexed: int = 0
    vector_indexed: int = 0
    skipped: int = 0
    failed: int = 0
    processed: list[str] = field(default_factory=list)

    def record(self, result: IndexResult, name: str) -> None:
        if not result.success:
            self.failed += 1
        elif not result.indexed:
            self.skipped += 1
        else:
            self.indexed += 1
            if result.vector_indexed:
                self.vector_indexed += 1
        self.processed.append(name)


class Indexer:
    """Feeds documents to a :class:`SearchOrchestrator` one at a time."""

    def __init__(self, orchestrator: SearchOrchestrator) -> None:
        self.orchestrator = orchestrator

    def index_paths(self, paths: Sequence[Path]) -> IndexReport:
        """Upload and index every supported file under ``paths``."""
        files = find_documents(paths)
        report = IndexReport()
        if not files:
            LOGGER.warning("No supported documents found")
            return report

        for path in files:
            try:
                LOGGER.info("Processing: %s", path)
                _, result = self.orchestrator.ingest_upload(
                    path.read_bytes(), path.name, guess_mime_type(path.name)
                )
                report.record(result, str(path))
            except Exception as e:
                LOGGER.error("Failed to process %s: %s", path, e)
                report.failed += 1
                report.processed.append(str(path))
        return report

    def warm_up(self) -> IndexReport:
        """Rebuild the lexical index from registry contents.

        The lexical index lives only in memory, so a restarted process
        re-reads and re-extracts every stored document. The semantic index is
        not touched here; it reloads from its own snapshots.
        """
        orchestrator = self.orchestrator
        report = IndexReport()
        for metadata in orchestrator.registry.list_all():
            data = orchestrator.registry.get_bytes(metadata.id)
            if data is None:
                LOGGER.warning("No stored bytes for %s", metadata.file_name)
                report.failed += 1
                report.processed.append(metadata.id)
                continue
            extracted = orchestrator.extractor(data, metadata.file_name)
            if not extracted.success or not extracted.content.strip():
                report.skipped += 1
                report.processed.append(metadata.id)
                continue
            orchestrator.lexical.add(metadata.to_indexed(), extracted.content)
            report.indexed += 1
            report.processed.append(metadata.id)

        LOGGER.info(
            "Lexical warm-up: %d indexed, %d skipped, %d failed",
            report.indexed,
            report.skipped,
            report.failed,
        )
        return report
