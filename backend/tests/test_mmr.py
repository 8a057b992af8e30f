"""Tests for maximal marginal relevance selection."""

import pytest

from conftest import make_chunk
from passage_search.retrieval.mmr import cosine_similarity, mmr


def test_cosine_similarity_basic() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 2.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_cosine_similarity_zero_norm_is_zero() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


def test_cosine_similarity_rejects_length_mismatch() -> None:
    with pytest.raises(ValueError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_lambda_one_orders_by_relevance() -> None:
    candidates = [
        make_chunk("low", [0.6, 0.8]),
        make_chunk("top", [1.0, 0.0]),
        make_chunk("mid", [0.8, 0.6]),
    ]
    selected = mmr(candidates, [1.0, 0.0], top_k=3, lambda_param=1.0)
    assert [item.id for item in selected] == ["top", "mid", "low"]
    assert [item.score for item in selected] == pytest.approx([1.0, 0.8, 0.6])


def test_lambda_zero_prefers_diverse_candidate() -> None:
    candidates = [
        make_chunk("a", [1.0, 0.0]),
        make_chunk("a-dup", [0.99, 0.14]),
        make_chunk("other", [0.0, 1.0]),
    ]
    selected = mmr(candidates, [1.0, 0.0], top_k=2, lambda_param=0.0)
    assert [item.id for item in selected] == ["a", "other"]


def test_default_lambda_keeps_relevance_as_score() -> None:
    candidates = [make_chunk("a", [1.0, 0.0]), make_chunk("b", [0.0, 1.0])]
    selected = mmr(candidates, [1.0, 0.0], top_k=1)
    assert len(selected) == 1
    assert selected[0].id == "a"
    assert selected[0].score == pytest.approx(1.0)


def test_top_k_larger_than_pool_returns_everything() -> None:
    candidates = [make_chunk("a", [1.0, 0.0]), make_chunk("b", [0.5, 0.5])]
    assert len(mmr(candidates, [1.0, 0.0], top_k=10)) == 2


def test_ties_go_to_first_candidate() -> None:
    candidates = [make_chunk("first", [1.0, 0.0]), make_chunk("second", [1.0, 0.0])]
    selected = mmr(candidates, [1.0, 0.0], top_k=1, lambda_param=1.0)
    assert selected[0].id == "first"


def test_empty_pool_and_invalid_arguments() -> None:
    assert mmr([], [1.0, 0.0], top_k=3) == []
    with pytest.raises(ValueError):
        mmr([make_chunk("a", [1.0, 0.0])], [1.0, 0.0], top_k=1, lambda_param=1.5)
    with pytest.raises(ValueError):
        mmr([make_chunk("a")], [1.0, 0.0], top_k=1)
