"""Search helpers for the semantic index."""

from .filters import apply_metadata_filters, resolve_candidates
from .ranker import cosine_similarity, rank_by_similarity
from .semantic import SemanticSearchEngine

__all__ = [
    "apply_metadata_filters",
    "resolve_candidates",
    "cosine_similarity",
    "rank_by_similarity",
    "SemanticSearchEngine",
]
