"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Mapping

from pydantic_settings import BaseSettings, SettingsConfigDict

from docsearch.embedding.encoder import DEFAULT_MODEL

RegistryKind = Literal["memory", "local"]

_ENV_PREFIX = "DOCSEARCH_"


class EnvSettings(BaseSettings):
    """Raw `DOCSEARCH_*` overrides; unset variables stay None."""

    model_config = SettingsConfigDict(env_prefix=_ENV_PREFIX, extra="ignore")

    data_dir: Path | None = None
    snapshot_dir: Path | None = None
    uploads_dir: Path | None = None
    registry: str | None = None
    model: str | None = None
    chunk_chars: int | None = None
    overlap: int | None = None
    retention: int | None = None
    embed_timeout: float | None = None


def _get_default_data_dir() -> Path:
    """Prefer a local data/ directory, otherwise use the user's home."""
    local_dir = Path("data")
    if local_dir.exists():
        return local_dir
    return Path.home() / ".docsearch"


@dataclass(slots=True)
class AppConfig:
    data_dir: Path | None = None
    snapshot_dir: Path | None = None
    uploads_dir: Path | None = None
    registry_kind: RegistryKind = "memory"
    model_name: str | None = DEFAULT_MODEL
    chunk_chars: int = 500
    overlap: int = 100
    snapshot_retention: int = 3
    embed_timeout: float = 60.0
    default_limit: int = 20

    def __post_init__(self) -> None:
        if self.data_dir is None:
            self.data_dir = _get_default_data_dir()
        if self.snapshot_dir is None:
            self.snapshot_dir = Path(self.data_dir) / "vector-indexes"
        if self.uploads_dir is None:
            self.uploads_dir = Path(self.data_dir) / "uploads"
        if self.registry_kind not in ("memory", "local"):
            raise ValueError(f"Unsupported registry kind: {self.registry_kind}")
        if self.overlap >= self.chunk_chars:
            raise ValueError("overlap must be smaller than chunk_chars")
        if self.snapshot_retention < 1:
            raise ValueError("snapshot_retention must be at least 1")

    @property
    def embeddings_enabled(self) -> bool:
        return bool(self.model_name)

    @staticmethod
    def resolve_path(path: Path, base_dir: Path | None = None) -> Path:
        if Path(path).is_absolute() or base_dir is None:
            return Path(path)
        return base_dir / path

    def resolve_snapshot_dir(self, base_dir: Path | None = None) -> Path:
        return self.resolve_path(Path(self.snapshot_dir), base_dir)

    def resolve_uploads_dir(self, base_dir: Path | None = None) -> Path:
        return self.resolve_path(Path(self.uploads_dir), base_dir)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build a config from ``DOCSEARCH_*`` variables.

        An empty ``DOCSEARCH_MODEL`` disables embeddings, leaving keyword search only.
        """
        if environ is None:
            env = EnvSettings()
        else:
            env = EnvSettings.model_validate(
                {
                    key[len(_ENV_PREFIX) :].lower(): value
                    for key, value in environ.items()
                    if key.upper().startswith(_ENV_PREFIX)
                }
            )

        kwargs: dict = {}
        if env.data_dir:
            kwargs["data_dir"] = env.data_dir
        if env.snapshot_dir:
            kwargs["snapshot_dir"] = env.snapshot_dir
        if env.uploads_dir:
            kwargs["uploads_dir"] = env.uploads_dir
        if env.registry:
            kwargs["registry_kind"] = env.registry.strip().lower()
        if env.model is not None:
            kwargs["model_name"] = env.model.strip() or None
        if env.chunk_chars is not None:
            kwargs["chunk_chars"] = env.chunk_chars
        if env.overlap is not None:
            kwargs["overlap"] = env.overlap
        if env.retention is not None:
            kwargs["snapshot_retention"] = env.retention
        if env.embed_timeout is not None:
            kwargs["embed_timeout"] = env.embed_timeout
        return cls(**kwargs)
