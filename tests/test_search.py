"""Tests for cosine ranking, candidate filtering, and the search engine."""

from __future__ import annotations

import math

import pytest

from semantic_index.errors import DimensionMismatchError, InvalidVectorError
from semantic_index.models import SearchOptions
from semantic_index.search import (
    SemanticSearchEngine,
    apply_metadata_filters,
    cosine_similarity,
    rank_by_similarity,
    resolve_candidates,
)


def test_cosine_similarity_of_vector_with_itself_is_one() -> None:
    vector = [0.3, -1.2, 4.0, 0.01]
    assert cosine_similarity(vector, vector) == pytest.approx(1.0)


def test_cosine_similarity_of_opposite_and_orthogonal_vectors() -> None:
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 5.0]) == pytest.approx(0.0)


def test_cosine_similarity_ignores_magnitude() -> None:
    assert cosine_similarity([1.0, 1.0], [10.0, 10.0]) == pytest.approx(1.0)


def test_cosine_similarity_with_zero_vector_is_zero() -> None:
    assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0


def test_cosine_similarity_rejects_mismatched_lengths() -> None:
    with pytest.raises(DimensionMismatchError, match="same dimension"):
        cosine_similarity([0.1] * 384, [0.1] * 512)


def test_cosine_similarity_stays_within_bounds() -> None:
    vector = [1e-8, 3e-8, 7e-8]
    score = cosine_similarity(vector, vector)
    assert -1.0 <= score <= 1.0
    assert not math.isnan(score)


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_cosine_similarity_rejects_non_finite_components(bad: float) -> None:
    with pytest.raises(InvalidVectorError):
        cosine_similarity([bad, 0.0], [1.0, 0.0])
    with pytest.raises(InvalidVectorError):
        cosine_similarity([1.0, 0.0], [bad, 0.0])


def test_rank_orders_descending_and_applies_threshold(make_doc) -> None:
    candidates = [
        make_doc("low", [0.0, 1.0]),
        make_doc("high", [1.0, 0.0]),
        make_doc("mid", [1.0, 1.0]),
    ]

    results = rank_by_similarity([1.0, 0.0], candidates, limit=10, threshold=0.5)

    assert [result.document.id for result in results] == ["high", "mid"]
    assert results[0].similarity == pytest.approx(1.0)
    assert results[1].similarity == pytest.approx(math.sqrt(0.5))


def test_rank_keeps_scores_equal_to_threshold(make_doc) -> None:
    candidates = [make_doc("orthogonal", [0.0, 1.0])]

    assert len(rank_by_similarity([1.0, 0.0], candidates, threshold=0.0)) == 1
    assert rank_by_similarity([1.0, 0.0], candidates, threshold=0.01) == []


def test_rank_truncates_to_limit(make_doc) -> None:
    candidates = [make_doc(f"d{i}", [1.0, i / 10]) for i in range(8)]

    results = rank_by_similarity([1.0, 0.0], candidates, limit=3, threshold=-1.0)

    assert [result.document.id for result in results] == ["d0", "d1", "d2"]


def test_rank_keeps_candidate_order_for_ties(make_doc) -> None:
    candidates = [
        make_doc("second", [2.0, 0.0]),
        make_doc("first", [1.0, 0.0]),
        make_doc("third", [3.0, 0.0]),
    ]

    results = rank_by_similarity([1.0, 0.0], candidates, threshold=0.0)

    assert [result.document.id for result in results] == ["second", "first", "third"]


def test_rank_raises_on_dimension_mismatch(make_doc) -> None:
    with pytest.raises(DimensionMismatchError):
        rank_by_similarity([1.0, 0.0], [make_doc("d1", [1.0, 0.0, 0.0])])


def test_apply_metadata_filters(make_doc) -> None:
    docs = [
        make_doc("a", region_code="19105", category_tag="corn"),
        make_doc("b", region_code="19105", category_tag="soybeans"),
        make_doc("c", region_code="19001", category_tag="corn"),
        make_doc("d"),
    ]

    assert [d.id for d in apply_metadata_filters(docs, region_code="19105")] == ["a", "b"]
    assert [d.id for d in apply_metadata_filters(docs, category_tag="corn")] == ["a", "c"]
    assert [
        d.id
        for d in apply_metadata_filters(docs, region_code="19105", category_tag="corn")
    ] == ["a"]
    assert apply_metadata_filters(docs) == docs


@pytest.mark.asyncio
async def test_resolve_candidates_unions_requested_types(store, make_doc) -> None:
    await store.put_many(
        [
            make_doc("s1", doc_type="soil_analysis"),
            make_doc("w1", doc_type="water_quality"),
            make_doc("f1", doc_type="field_data"),
            make_doc("other", doc_type="soil_analysis", owner_id="u2"),
        ]
    )

    options = SearchOptions(document_types=["water_quality", "soil_analysis", "water_quality"])
    candidates = await resolve_candidates(store, owner_id="u1", options=options)

    assert [doc.id for doc in candidates] == ["w1", "s1"]


@pytest.mark.asyncio
async def test_resolve_candidates_without_types_uses_owner(store, make_doc) -> None:
    await store.put_many(
        [
            make_doc("mine", region_code="19105"),
            make_doc("mine-elsewhere", region_code="19001"),
            make_doc("theirs", owner_id="u2", region_code="19105"),
        ]
    )

    candidates = await resolve_candidates(
        store, owner_id="u1", options=SearchOptions(region_code="19105")
    )

    assert [doc.id for doc in candidates] == ["mine"]


@pytest.mark.asyncio
async def test_search_engine_ranks_owner_documents(store, provider, make_doc) -> None:
    soil = await provider.generate_document_embedding(
        "soil", "loamy soil with high organic matter", make_doc("x").metadata
    )
    water = await provider.generate_document_embedding(
        "water", "nitrate levels in well water", make_doc("x").metadata
    )
    await store.put_many([soil, water])
    engine = SemanticSearchEngine(store, provider)

    results = await engine.search(
        owner_id="u1",
        query="organic matter content",
        options=SearchOptions(limit=5, threshold=0.3),
    )

    assert [result.document.id for result in results] == ["soil"]
    assert await engine.search(owner_id="u2", query="organic matter content") == []


def test_rank_does_not_score_a_corrupt_vector_as_a_match(make_doc) -> None:
    good = make_doc("good", [0.0, 1.0])
    # Bypasses validation, as a row read from a damaged store would.
    corrupt = good.model_copy(update={"id": "corrupt", "embedding": [float("nan"), 0.0]})

    with pytest.raises(InvalidVectorError):
        rank_by_similarity([0.0, 1.0], [good, corrupt], threshold=0.0)
