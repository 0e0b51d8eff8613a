"""Composition root: wires registry, indexes and embedder from an AppConfig."""

from __future__ import annotations

import logging
from pathlib import Path

from docsearch.config import AppConfig
from docsearch.embedding.encoder import EmbeddingConfig, EmbeddingModel, EmbeddingProvider
from docsearch.index.indexer import Indexer
from docsearch.index.lexical import LexicalIndex
from docsearch.index.orchestrator import SearchOrchestrator
from docsearch.index.semantic import SemanticIndex
from docsearch.index.snapshots import SnapshotStore
from docsearch.storage import DocumentRegistry, create_registry

LOGGER = logging.getLogger(__name__)


def load_embedder(config: AppConfig) -> EmbeddingProvider | None:
    """Load the configured model, or None when embeddings are disabled or broken."""
    if not config.embeddings_enabled:
        LOGGER.info("Embedding model disabled by configuration")
        return None
    try:
        return EmbeddingModel(EmbeddingConfig(model_name=config.model_name))
    except Exception as exc:
        LOGGER.error("Unable to load embedding model %s: %s", config.model_name, exc)
        return None


def build_orchestrator(
    config: AppConfig,
    *,
    base_dir: Path | None = None,
    registry: DocumentRegistry | None = None,
    embedder: EmbeddingProvider | None = None,
    load_model: bool = True,
    warm_up: bool = True,
) -> SearchOrchestrator:
    """Create and initialize a ready-to-use orchestrator.

    ``embedder`` overrides model loading; with ``load_model=False`` and no
    embedder the semantic index starts unavailable.
    """
    if registry is None:
        registry = create_registry(config.registry_kind, config.resolve_uploads_dir(base_dir))
    if embedder is None and load_model:
        embedder = load_embedder(config)

    snapshots = SnapshotStore(
        config.resolve_snapshot_dir(base_dir), retention=config.snapshot_retention
    )
    semantic = SemanticIndex(
        registry,
        snapshots,
        embedder,
        chunk_chars=config.chunk_chars,
        overlap=config.overlap,
        embed_timeout=config.embed_timeout,
    )
    orchestrator = SearchOrchestrator(registry, LexicalIndex(), semantic)
    orchestrator.initialize()
    if warm_up:
        Indexer(orchestrator).warm_up()
    return orchestrator
