"""
Cosine similarity and ranking of candidate documents.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..errors import DimensionMismatchError, InvalidVectorError
from ..models import DocumentEmbedding, SearchResult

DEFAULT_LIMIT = 10
DEFAULT_THRESHOLD = 0.5


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Return the cosine similarity of *a* and *b*.

    A zero vector has similarity 0 with everything, itself included.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    if not (np.all(np.isfinite(vec_a)) and np.all(np.isfinite(vec_b))):
        raise InvalidVectorError("Vectors must contain only finite values.")
    magnitude = float(np.linalg.norm(vec_a)) * float(np.linalg.norm(vec_b))
    if magnitude == 0:
        return 0.0
    similarity = float(np.dot(vec_a, vec_b)) / magnitude
    return max(-1.0, min(1.0, similarity))


def rank_by_similarity(
    query: Sequence[float],
    candidates: Sequence[DocumentEmbedding],
    *,
    limit: int = DEFAULT_LIMIT,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[SearchResult]:
    """Score candidates, drop those below *threshold*, and return the top *limit*."""
    results = [
        SearchResult(document=doc, similarity=similarity)
        for doc in candidates
        if (similarity := cosine_similarity(query, doc.embedding)) >= threshold
    ]
    # sorted() is stable, so equal scores keep candidate order.
    ordered = sorted(results, key=lambda result: -result.similarity)
    return ordered[: max(limit, 0)]
