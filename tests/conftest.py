import hashlib
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import numpy as np
import pytest

from semantic_index.embeddings import EmbeddingConfig, EmbeddingProvider
from semantic_index.models import DocumentEmbedding, DocumentMetadata
from semantic_index.storage import DuckDBVectorStore

FAKE_DIM = 256


class BagOfWordsModel:
    """Token-level fake backend: one one-hot row per word, so mean pooling gives a bag of words."""

    def __init__(self, dim: int = FAKE_DIM) -> None:
        self.dim = dim
        self.calls: list[str] = []

    def encode(self, sentences: Any, **kwargs: Any) -> np.ndarray:
        self.calls.append(sentences)
        tokens = re.findall(r"\w+", str(sentences).lower())
        if not tokens:
            return np.zeros((1, self.dim))
        matrix = np.zeros((len(tokens), self.dim))
        for row, token in enumerate(tokens):
            bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % self.dim
            matrix[row, bucket] = 1.0
        return matrix


class FakeLoader:
    """Records load calls; fails the first *fail_times* loads."""

    def __init__(self, model_factory: Callable[[], Any] = BagOfWordsModel, fail_times: int = 0) -> None:
        self.model_factory = model_factory
        self.fail_times = fail_times
        self.loads: list[tuple[str, str]] = []

    def __call__(self, model_id: str, device: str) -> Any:
        self.loads.append((model_id, device))
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("model download failed")
        return self.model_factory()


@pytest.fixture()
def fake_loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture()
def provider_factory(fake_loader: FakeLoader) -> Callable[..., EmbeddingProvider]:
    def _factory(*args: Any, **kwargs: Any) -> EmbeddingProvider:
        return EmbeddingProvider(
            EmbeddingConfig(model="test-model", preferred_device="cpu"),
            loader=fake_loader,
            device_probe=lambda preferred: "cpu",
        )

    return _factory


@pytest.fixture()
def provider(provider_factory) -> EmbeddingProvider:
    return provider_factory()


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "vectors.duckdb")


@pytest.fixture()
def store(db_path: str):
    vector_store = DuckDBVectorStore(db_path)
    yield vector_store
    vector_store.close()


@pytest.fixture()
def make_doc() -> Callable[..., DocumentEmbedding]:
    def _make(
        doc_id: str,
        embedding: list[float] | None = None,
        *,
        owner_id: str = "u1",
        doc_type: str = "soil_analysis",
        text: str = "sample text",
        region_code: str | None = None,
        category_tag: str | None = None,
        created_at: datetime | None = None,
        title: str | None = None,
    ) -> DocumentEmbedding:
        return DocumentEmbedding(
            id=doc_id,
            text=text,
            embedding=embedding if embedding is not None else [1.0, 0.0, 0.0],
            metadata=DocumentMetadata(
                type=doc_type,
                owner_id=owner_id,
                region_code=region_code,
                category_tag=category_tag,
                created_at=created_at or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc),
                title=title,
            ),
        )

    return _make
