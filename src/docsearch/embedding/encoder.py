"""Embedding model management."""

from __future__ import annotations

import logging
import platform
import sys
from dataclasses import dataclass
from typing import Iterable, Literal, Protocol, Sequence, runtime_checkable

import numpy as np
from sentence_transformers import SentenceTransformer

from docsearch.errors import EmbeddingError, RateLimitError, is_rate_limit_error

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns text into fixed-length float vectors."""

    dimension: int

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray: ...

    def embed_query(self, text: str) -> np.ndarray: ...


def _check_onnx_providers() -> list[str]:
    try:
        import onnxruntime as ort
        return ort.get_available_providers()
    except ImportError:
        return []


def detect_optimal_backend() -> tuple[Literal["torch", "onnx"], str | None]:
    """Pick a backend for the current machine.

    Returns:
        (backend_name, onnx_model_file). Apple Silicon gets the ARM64 quantized
        ONNX export; anything with ONNX Runtime installed gets the standard ONNX
        model; everything else uses PyTorch.
    """
    if sys.platform == "darwin" and (
        platform.processor() == "arm" or platform.machine() == "arm64"
    ):
        logger.info("Detected Apple Silicon - using ONNX with ARM64 quantized model")
        return ("onnx", "onnx/model_qint8_arm64.onnx")

    providers = _check_onnx_providers()
    if providers:
        logger.info("Using ONNX backend (providers: %s)", ", ".join(providers))
        return ("onnx", None)

    logger.info("ONNX not available, using PyTorch backend on %s", sys.platform)
    return ("torch", None)


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_MODEL
    batch_size: int = 16
    normalize: bool = True
    backend: Literal["torch", "onnx", "openvino"] | None = None
    onnx_model_file: str | None = None
    device: str | None = None


class EmbeddingModel:
    """Thin wrapper around `SentenceTransformer` for chunk and query embeddings.

    Backend errors are re-raised as :class:`EmbeddingError`, or
    :class:`RateLimitError` when the failure looks like throttling, so callers
    can tell a retryable condition from a broken backend.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()

        if self.config.backend is None:
            self.config.backend, self.config.onnx_model_file = detect_optimal_backend()

        try:
            self._model = self._load_model()
        except Exception as e:
            if self.config.backend == "torch":
                raise
            logger.warning(
                "Failed to load model with backend '%s': %s. Falling back to PyTorch.",
                self.config.backend,
                e,
            )
            self.config.backend = "torch"
            self.config.onnx_model_file = None
            self._model = self._load_model()

        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(
            "Loaded embedding model %s | Backend: %s | Dimension: %d",
            self.config.model_name,
            self.config.backend,
            self.dimension,
        )

    def _load_model(self) -> SentenceTransformer:
        model_kwargs = {}
        if self.config.backend == "onnx" and self.config.onnx_model_file:
            model_kwargs["file_name"] = self.config.onnx_model_file

        return SentenceTransformer(
            self.config.model_name,
            backend=self.config.backend,
            device=self.config.device,
            model_kwargs=model_kwargs if model_kwargs else None,
        )

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return float32 embeddings for input texts."""
        sentences = list(texts)
        if not sentences:
            return np.zeros((0, self.dimension), dtype="float32")
        try:
            embeddings = self._model.encode(
                sentences,
                batch_size=self.config.batch_size,
                show_progress_bar=False,
                convert_to_numpy=True,
                normalize_embeddings=self.config.normalize,
            )
        except Exception as exc:
            if is_rate_limit_error(exc):
                raise RateLimitError(str(exc)) from exc
            raise EmbeddingError(str(exc)) from exc
        return embeddings.astype("float32", copy=False)

    def embed_query(self, text: str) -> np.ndarray:
        """Convenience wrapper for single-query embedding."""
        return self.embed([text])[0]
