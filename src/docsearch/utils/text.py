"""Text helpers: overlapping chunking and tokenization."""

from __future__ import annotations

import re
from typing import Iterable, Iterator, List

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def chunk_text(text: str, *, max_chars: int = 500, overlap: int = 100) -> Iterator[str]:
    """Split text into overlapping character chunks.

    The final window is emitted even when shorter than ``max_chars``; a window
    fully contained in the previous one is not repeated.
    """
    if not text:
        return

    step = max(max_chars - overlap, 1)
    for start in range(0, len(text), step):
        yield text[start : start + max_chars]
        if start + max_chars >= len(text):
            break


def tokenize(text: str) -> List[str]:
    """Lower-cased word tokens."""
    if not text:
        return []
    return [token.lower() for token in _TOKEN_RE.findall(text)]


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())
