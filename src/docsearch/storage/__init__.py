"""Document registry backends."""

from __future__ import annotations

from pathlib import Path

from docsearch.storage.base import DocumentRegistry, FileMetadata
from docsearch.storage.local import LocalRegistry
from docsearch.storage.memory import MemoryRegistry

__all__ = [
    "DocumentRegistry",
    "FileMetadata",
    "LocalRegistry",
    "MemoryRegistry",
    "create_registry",
]


def create_registry(kind: str, uploads_dir: Path | None = None) -> DocumentRegistry:
    """Build the registry backend selected at startup."""
    if kind == "memory":
        return MemoryRegistry()
    if kind == "local":
        if uploads_dir is None:
            raise ValueError("uploads_dir is required for the local registry")
        return LocalRegistry(uploads_dir)
    raise ValueError(f"Unsupported registry kind: {kind}")
