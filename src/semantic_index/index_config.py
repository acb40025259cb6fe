"""
Configuration helpers for the local vector store and embedding backend.
"""

from __future__ import annotations

import os
from pathlib import Path


DEFAULT_DB_PATH = "~/.semantic_index/vectors.duckdb"
ENV_DB_PATH = "SEMANTIC_INDEX_DB_PATH"

DEFAULT_EMBEDDING_MODEL = "mixedbread-ai/mxbai-embed-xsmall-v1"
ALTERNATE_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
ENV_EMBEDDING_MODEL = "SEMANTIC_INDEX_EMBEDDING_MODEL"

DEFAULT_DEVICE = "auto"
SUPPORTED_DEVICES = ("auto", "cuda", "mps", "cpu")
ENV_DEVICE = "SEMANTIC_INDEX_DEVICE"


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) SEMANTIC_INDEX_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def resolve_embedding_model(override_model: str | None = None) -> str:
    """Resolve the embedding model id from an explicit value, env var, or default."""
    return override_model or os.getenv(ENV_EMBEDDING_MODEL) or DEFAULT_EMBEDDING_MODEL


def resolve_device(override_device: str | None = None) -> str:
    """Resolve the preferred execution device; unknown values raise ValueError."""
    device = (override_device or os.getenv(ENV_DEVICE) or DEFAULT_DEVICE).lower()
    if device not in SUPPORTED_DEVICES:
        raise ValueError(
            f"Unsupported device {device!r}. "
            f"Expected one of: {', '.join(SUPPORTED_DEVICES)}."
        )
    return device
