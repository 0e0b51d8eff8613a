"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from docsearch.config import AppConfig
from docsearch.embedding.encoder import DEFAULT_MODEL


class TestAppConfig:
    """Test AppConfig dataclass."""

    def test_default_config(self, tmp_path: Path) -> None:
        """Should create config with default values."""
        config = AppConfig(data_dir=tmp_path)

        assert config.snapshot_dir == tmp_path / "vector-indexes"
        assert config.uploads_dir == tmp_path / "uploads"
        assert config.registry_kind == "memory"
        assert config.model_name == DEFAULT_MODEL
        assert config.chunk_chars == 500
        assert config.overlap == 100
        assert config.snapshot_retention == 3
        assert config.embeddings_enabled

    def test_custom_dirs_are_kept(self, tmp_path: Path) -> None:
        config = AppConfig(data_dir=tmp_path, snapshot_dir=Path("/snapshots"))
        assert config.snapshot_dir == Path("/snapshots")
        assert config.uploads_dir == tmp_path / "uploads"

    def test_disabled_embeddings(self, tmp_path: Path) -> None:
        config = AppConfig(data_dir=tmp_path, model_name=None)
        assert not config.embeddings_enabled

    def test_invalid_registry_kind(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="registry kind"):
            AppConfig(data_dir=tmp_path, registry_kind="s3")  # type: ignore[arg-type]

    def test_overlap_must_be_smaller_than_chunk(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="overlap"):
            AppConfig(data_dir=tmp_path, chunk_chars=100, overlap=100)

    def test_retention_must_be_positive(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="retention"):
            AppConfig(data_dir=tmp_path, snapshot_retention=0)

    def test_resolve_relative_paths(self, tmp_path: Path) -> None:
        """Relative dirs should be resolved against base_dir."""
        config = AppConfig(data_dir=Path("data"))
        assert config.resolve_snapshot_dir(tmp_path) == tmp_path / "data" / "vector-indexes"
        assert config.resolve_uploads_dir(tmp_path) == tmp_path / "data" / "uploads"

    def test_resolve_absolute_path(self, tmp_path: Path) -> None:
        config = AppConfig(data_dir=tmp_path)
        assert config.resolve_snapshot_dir(Path("/elsewhere")) == tmp_path / "vector-indexes"

    def test_resolve_without_base_dir(self) -> None:
        assert AppConfig.resolve_path(Path("relative")) == Path("relative")


class TestFromEnv:
    """Test AppConfig.from_env."""

    def test_reads_variables(self, tmp_path: Path) -> None:
        config = AppConfig.from_env(
            {
                "DOCSEARCH_DATA_DIR": str(tmp_path),
                "DOCSEARCH_REGISTRY": "LOCAL",
                "DOCSEARCH_MODEL": "custom-model",
                "DOCSEARCH_CHUNK_CHARS": "800",
                "DOCSEARCH_OVERLAP": "50",
                "DOCSEARCH_RETENTION": "5",
                "DOCSEARCH_EMBED_TIMEOUT": "2.5",
            }
        )
        assert config.data_dir == tmp_path
        assert config.snapshot_dir == tmp_path / "vector-indexes"
        assert config.registry_kind == "local"
        assert config.model_name == "custom-model"
        assert config.chunk_chars == 800
        assert config.overlap == 50
        assert config.snapshot_retention == 5
        assert config.embed_timeout == 2.5

    def test_empty_model_disables_embeddings(self, tmp_path: Path) -> None:
        config = AppConfig.from_env({"DOCSEARCH_DATA_DIR": str(tmp_path), "DOCSEARCH_MODEL": ""})
        assert config.model_name is None
        assert not config.embeddings_enabled

    def test_defaults_without_variables(self, tmp_path: Path) -> None:
        config = AppConfig.from_env({"DOCSEARCH_DATA_DIR": str(tmp_path)})
        assert config.model_name == DEFAULT_MODEL
        assert config.registry_kind == "memory"
