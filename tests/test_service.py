"""Tests for the composition root."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

from docsearch.config import AppConfig
from docsearch.index.semantic import SemanticState
from docsearch.service import build_orchestrator, load_embedder
from docsearch.storage import LocalRegistry, MemoryRegistry

from conftest import FakeEmbedder


class TestLoadEmbedder:
    """Test load_embedder."""

    def test_disabled(self, tmp_path: Path) -> None:
        assert load_embedder(AppConfig(data_dir=tmp_path, model_name=None)) is None

    @patch("docsearch.service.EmbeddingModel")
    def test_loads_configured_model(self, mock_model: MagicMock, tmp_path: Path) -> None:
        embedder = load_embedder(AppConfig(data_dir=tmp_path, model_name="tiny-model"))
        assert embedder is mock_model.return_value
        assert mock_model.call_args.args[0].model_name == "tiny-model"

    @patch("docsearch.service.EmbeddingModel", side_effect=OSError("no such model"))
    def test_load_failure_returns_none(self, mock_model: MagicMock, tmp_path: Path) -> None:
        """A broken model leaves keyword search running."""
        assert load_embedder(AppConfig(data_dir=tmp_path, model_name="missing")) is None


class TestBuildOrchestrator:
    """Test build_orchestrator wiring."""

    def test_memory_registry_with_embedder(self, tmp_path: Path) -> None:
        config = AppConfig(data_dir=tmp_path)
        service = build_orchestrator(config, embedder=FakeEmbedder())
        try:
            assert isinstance(service.registry, MemoryRegistry)
            assert service.semantic.state is SemanticState.READY
            assert service.semantic.snapshots.directory == tmp_path / "vector-indexes"
        finally:
            service.shutdown()

    def test_without_model(self, tmp_path: Path) -> None:
        service = build_orchestrator(AppConfig(data_dir=tmp_path), load_model=False)
        try:
            assert service.semantic.state is SemanticState.UNAVAILABLE
        finally:
            service.shutdown()

    def test_local_registry_warm_up(self, tmp_path: Path) -> None:
        """Documents stored by a previous process are searchable after start."""
        config = AppConfig(data_dir=tmp_path, registry_kind="local", model_name=None)
        first = build_orchestrator(config)
        metadata, _ = first.ingest_upload(b"persistent keyword", "keep.txt", "text/plain")
        first.shutdown()

        second = build_orchestrator(config)
        try:
            assert isinstance(second.registry, LocalRegistry)
            assert [doc.id for doc in second.search("persistent").results] == [metadata.id]
        finally:
            second.shutdown()

    def test_relative_dirs_use_base_dir(self, tmp_path: Path) -> None:
        config = AppConfig(data_dir=Path("store"), registry_kind="local", model_name=None)
        service = build_orchestrator(config, base_dir=tmp_path, warm_up=False)
        try:
            assert service.semantic.snapshots.directory == tmp_path / "store" / "vector-indexes"
            assert (tmp_path / "store" / "uploads" / "registry.db").exists()
        finally:
            service.shutdown()
