"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
import mimetypes
import secrets
import time
from pathlib import Path
from typing import Iterable, Iterator


def file_extension(file_name: str) -> str:
    """Lower-cased extension without the leading dot ("" when absent)."""
    return Path(file_name).suffix.lower().lstrip(".")


def guess_mime_type(file_name: str) -> str:
    if file_extension(file_name) == "md":
        return "text/markdown"
    mime, _ = mimetypes.guess_type(file_name)
    return mime or "application/octet-stream"


def unique_file_name(original_name: str) -> str:
    """Append a millisecond timestamp and random suffix to avoid collisions."""
    path = Path(original_name)
    stamp = int(time.time() * 1000)
    return f"{path.stem}_{stamp}_{secrets.token_hex(3)}{path.suffix}"


def iter_document_paths(inputs: Iterable[Path], extensions: Iterable[str]) -> Iterator[Path]:
    """Yield files with a supported extension, descending into directories."""
    allowed = {ext.lower().lstrip(".") for ext in extensions}
    for item in inputs:
        if item.is_dir():
            yield from iter_document_paths(
                sorted(child for child in item.rglob("*") if child.is_file()), allowed
            )
        elif item.is_file() and file_extension(item.name) in allowed:
            yield item


def compute_sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
