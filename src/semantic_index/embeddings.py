"""
Embedding provider for vector-based semantic search.

Loads a local embedding model, picks an execution device by probing for
hardware acceleration, and turns normalized text into unit-length vectors
(mean-pooled when the backend returns token-level output).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import numpy as np

from .errors import EmbeddingError, InitializationError
from .index_config import resolve_device, resolve_embedding_model
from .models import DocumentEmbedding, DocumentMetadata
from .text import normalize_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Model identifier plus the preferred execution device."""

    model: str = field(default_factory=resolve_embedding_model)
    preferred_device: str = field(default_factory=resolve_device)


class EmbeddingModel(Protocol):
    """Minimal contract of a loaded embedding backend."""

    def encode(self, sentences: Any, **kwargs: Any) -> Any:
        """Return a vector, or a token-by-dimension matrix, for the input text."""


ModelLoader = Callable[[str, str], EmbeddingModel]


def probe_device(preferred: str) -> str:
    """
    Return the device to run the model on.

    ``cpu`` is the portable fallback: it is used when asked for, when no
    accelerator is present, and when probing itself fails.
    """
    if preferred == "cpu":
        return "cpu"
    try:
        import torch

        if preferred in ("auto", "cuda") and torch.cuda.is_available():
            return "cuda"
        if preferred in ("auto", "mps") and torch.backends.mps.is_available():
            return "mps"
    except Exception as exc:
        logger.warning("Accelerator probe failed, using cpu: %s", exc)
        return "cpu"
    if preferred != "auto":
        logger.warning("Requested device %r is not available, using cpu", preferred)
    return "cpu"


def load_sentence_transformer(model_id: str, device: str) -> EmbeddingModel:
    """Load *model_id* with sentence-transformers; fp16 on accelerators, fp32 on cpu."""
    from sentence_transformers import SentenceTransformer

    model = SentenceTransformer(model_id, device=device)
    if device != "cpu":
        model = model.half()
    return model


def pool_and_normalize(raw: Any) -> list[float]:
    """Mean-pool token-level output and scale the result to unit length."""
    arr = np.asarray(raw, dtype=np.float64)
    if arr.ndim == 2:
        arr = arr.mean(axis=0)
    if arr.ndim != 1 or arr.size == 0:
        raise EmbeddingError(f"Backend returned no usable output (shape {arr.shape}).")
    if not np.all(np.isfinite(arr)):
        raise EmbeddingError("Backend returned non-finite values.")
    norm = float(np.linalg.norm(arr))
    if norm > 0:
        arr = arr / norm
    return [float(value) for value in arr]


class EmbeddingProvider:
    """Generate text embeddings with a locally loaded model."""

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        *,
        loader: ModelLoader | None = None,
        device_probe: Callable[[str], str] | None = None,
    ) -> None:
        self.config = config or EmbeddingConfig()
        self._loader = loader or load_sentence_transformer
        self._device_probe = device_probe or probe_device
        self._model: EmbeddingModel | None = None
        self._loaded_model_id: str | None = None
        self._device: str | None = None
        self._dimension: int | None = None
        self._init_lock = asyncio.Lock()

    @property
    def device(self) -> str | None:
        return self._device

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def is_available(self) -> bool:
        return self._model is not None

    async def initialize(self, config: EmbeddingConfig | None = None) -> None:
        """
        Load the configured model.

        A no-op when the same model is already loaded. A different model
        releases the current handle first. Raises InitializationError when
        the model cannot be loaded; the provider then stays unloaded.
        """
        async with self._init_lock:
            if config is not None:
                self.config = config
            if self._model is not None and self._loaded_model_id == self.config.model:
                return
            self._release()

            device = self._device_probe(self.config.preferred_device)
            logger.info(
                "Loading embedding model %s on %s", self.config.model, device
            )
            try:
                model = await asyncio.to_thread(self._loader, self.config.model, device)
            except Exception as exc:
                raise InitializationError(
                    f"Failed to load embedding model {self.config.model!r}: {exc}"
                ) from exc

            self._model = model
            self._loaded_model_id = self.config.model
            self._device = device
            logger.info("Embedding model %s ready", self.config.model)

    async def reconfigure(self, config: EmbeddingConfig) -> None:
        """Switch to *config*, reloading only when the model changes."""
        await self.initialize(config)

    async def generate_embedding(self, text: str) -> list[float]:
        """Embed *text* after normalization, loading the model if needed."""
        if self._model is None:
            try:
                await self.initialize()
            except InitializationError as exc:
                raise EmbeddingError(f"Embedding backend unavailable: {exc}") from exc

        model = self._model
        if model is None:
            raise EmbeddingError("Embedding backend unavailable.")

        clean_text = normalize_text(text)
        try:
            raw = await asyncio.to_thread(model.encode, clean_text)
        except Exception as exc:
            raise EmbeddingError(f"Failed to generate text embedding: {exc}") from exc

        embedding = pool_and_normalize(raw)
        self._dimension = len(embedding)
        logger.debug("Generated embedding of dimension %d", self._dimension)
        return embedding

    async def generate_document_embedding(
        self,
        doc_id: str,
        text: str,
        metadata: DocumentMetadata,
    ) -> DocumentEmbedding:
        """Embed *text* and attach *metadata*; the stored text is the normalized one."""
        embedding = await self.generate_embedding(text)
        return DocumentEmbedding(
            id=doc_id,
            text=normalize_text(text),
            embedding=embedding,
            metadata=metadata,
        )

    def close(self) -> None:
        """Release the loaded model handle."""
        self._release()

    def _release(self) -> None:
        if self._model is None:
            return
        logger.info("Releasing embedding model %s", self._loaded_model_id)
        self._model = None
        self._loaded_model_id = None
        self._device = None
        self._dimension = None
