"""In-memory embedding matrix with brute-force nearest-neighbor search."""

from __future__ import annotations

import json
from pathlib import Path
from typing import BinaryIO, List, Sequence, Set

import numpy as np

from docsearch.models import Chunk, ScoredChunk

_FORMAT_VERSION = 1


class VectorIndex:
    """Chunks and their float32 embeddings, searched by inner product.

    Embeddings are expected to be L2-normalized so the inner product is the
    cosine similarity.
    """

    def __init__(self, dimension: int) -> None:
        self.dimension = dimension
        self._chunks: List[Chunk] = []
        self._embeddings = np.zeros((0, dimension), dtype="float32")

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def chunks(self) -> List[Chunk]:
        return list(self._chunks)

    @property
    def embeddings(self) -> np.ndarray:
        return self._embeddings

    def document_ids(self) -> Set[str]:
        return {chunk.document_id for chunk in self._chunks}

    def add(self, chunks: Sequence[Chunk], embeddings: np.ndarray) -> None:
        vectors = np.asarray(embeddings, dtype="float32")
        if vectors.ndim != 2 or vectors.shape[0] != len(chunks):
            raise ValueError("Embeddings and chunks length mismatch")
        if len(chunks) and vectors.shape[1] != self.dimension:
            raise ValueError(
                f"Embedding dimension {vectors.shape[1]} does not match index dimension {self.dimension}"
            )
        self._chunks.extend(chunks)
        self._embeddings = np.vstack([self._embeddings, vectors])

    def remove_document(self, document_id: str) -> int:
        keep = [i for i, chunk in enumerate(self._chunks) if chunk.document_id != document_id]
        removed = len(self._chunks) - len(keep)
        if removed:
            self._chunks = [self._chunks[i] for i in keep]
            self._embeddings = self._embeddings[keep]
        return removed

    def search(self, query: np.ndarray, *, top_k: int = 4) -> List[ScoredChunk]:
        if not self._chunks or top_k <= 0:
            return []

        scores = self._embeddings @ np.asarray(query, dtype="float32")
        if top_k < len(scores):
            top_indices = np.argpartition(-scores, top_k - 1)[:top_k]
        else:
            top_indices = np.arange(len(scores))
        # stable sort keeps insertion order among equal scores
        top_indices = np.sort(top_indices)
        top_indices = top_indices[np.argsort(-scores[top_indices], kind="stable")]

        return [ScoredChunk(chunk=self._chunks[idx], score=float(scores[idx])) for idx in top_indices]

    def save(self, handle: BinaryIO) -> None:
        payload = json.dumps([chunk.to_dict() for chunk in self._chunks], ensure_ascii=True)
        np.savez(
            handle,
            version=np.array(_FORMAT_VERSION),
            dimension=np.array(self.dimension),
            embeddings=self._embeddings,
            chunks=np.array(payload),
        )

    @classmethod
    def load(cls, path: Path) -> "VectorIndex":
        with np.load(path, allow_pickle=False) as data:
            version = int(data["version"])
            if version != _FORMAT_VERSION:
                raise ValueError(f"Unsupported snapshot format version {version}")
            index = cls(int(data["dimension"]))
            embeddings = np.asarray(data["embeddings"], dtype="float32")
            chunks = [Chunk.from_dict(item) for item in json.loads(str(data["chunks"]))]
        if embeddings.shape != (len(chunks), index.dimension):
            raise ValueError("Snapshot embeddings do not match its chunk records")
        index._chunks = chunks
        index._embeddings = embeddings
        return index
