"""Tests for the retrieval orchestrator."""

import pytest

from conftest import FakeEmbedder, FakeReranker, FakeStore, make_chunk
from passage_search.core.config import Settings
from passage_search.core.errors import EmbeddingError, RetrievalError, StoreError
from passage_search.retrieval.context import RetrievalContext
from passage_search.retrieval.lexical import LexicalQueryBuilder
from passage_search.retrieval.search import RetrievalService


def _service(settings: Settings, store: FakeStore, embedder: FakeEmbedder | None = None, reranker=None) -> RetrievalService:
    return RetrievalService(
        settings=settings,
        store=store,
        embedder=embedder or FakeEmbedder([1.0, 0.0]),
        reranker=reranker,
        query_builder=LexicalQueryBuilder(stopwords={"the"}),
    )


@pytest.fixture
def service_factory(settings: Settings):
    services: list[RetrievalService] = []

    def factory(store: FakeStore, embedder: FakeEmbedder | None = None, reranker=None, **overrides) -> RetrievalService:
        service = _service(settings.model_copy(update=overrides), store, embedder, reranker)
        services.append(service)
        return service

    yield factory
    for service in services:
        service.close()


def test_empty_scope_makes_no_calls(service_factory) -> None:
    embedder, store, reranker = FakeEmbedder(), FakeStore(), FakeReranker(scores=[1.0])
    service = service_factory(store, embedder, reranker, rerank_enabled=True)
    assert service.search("anything", []) == []
    assert service.batch_search(["a", "b"], set()) == []
    assert embedder.calls == []
    assert store.vector_calls == []
    assert store.lexical_calls == []
    assert reranker.calls == []


def test_empty_query_list_makes_no_calls(service_factory) -> None:
    embedder, store = FakeEmbedder(), FakeStore()
    service = service_factory(store, embedder)
    assert service.batch_search([], ["doc-1"]) == []
    assert embedder.calls == []
    assert store.vector_calls == []


def test_rrf_scenario_end_to_end(service_factory) -> None:
    c1 = make_chunk("C1", [0.9, 0.435889894])
    c2 = make_chunk("C2", [0.85, 0.526782688])
    c3 = make_chunk("C3")
    store = FakeStore(vector_hits=[c1, c2], lexical_hits=[c3, c1])
    service = service_factory(store, mmr_lambda=1.0)
    results = service.search("the question", ["doc-1"], top_k=2)
    assert [item.id for item in results] == ["C1", "C3"]
    assert results[0].score == pytest.approx(1 / 61 + 1 / 62)
    assert results[1].score == pytest.approx(1 / 61)


def test_branch_limits_follow_top_k(service_factory) -> None:
    store = FakeStore()
    service = service_factory(store)
    service.search("qa", ["doc-1"], top_k=4)
    assert store.vector_calls[0][1:] == (frozenset({"doc-1"}), 12)
    assert store.lexical_calls[0] == ("qa", frozenset({"doc-1"}), 4)


def test_branch_limits_use_initial_top_k_when_reranking(service_factory) -> None:
    store = FakeStore()
    service = service_factory(store, reranker=FakeReranker(), rerank_enabled=True, rerank_initial_top_k=7)
    service.search("question", ["doc-1"], top_k=3)
    assert store.vector_calls[0][2] == 21
    assert store.lexical_calls[0][2] == 7


def test_vectors_are_stripped_from_results(service_factory) -> None:
    store = FakeStore(vector_hits=[make_chunk("a", [1.0, 0.0]), make_chunk("b", [0.0, 1.0])])
    results = service_factory(store).search("question", ["doc-1"])
    assert {item.id for item in results} == {"a", "b"}
    assert all(item.chunk.vector is None for item in results)


def test_mmr_diversifies_vector_branch(service_factory) -> None:
    store = FakeStore(
        vector_hits=[
            make_chunk("a", [1.0, 0.0]),
            make_chunk("a-dup", [0.99, 0.14]),
            make_chunk("other", [0.0, 1.0]),
        ]
    )
    results = service_factory(store, mmr_lambda=0.0).search("question", ["doc-1"], top_k=2)
    assert [item.id for item in results] == ["a", "other"]


def test_rerank_strategy_uses_reranker_scores(service_factory) -> None:
    store = FakeStore(vector_hits=[make_chunk("v", [1.0, 0.0])], lexical_hits=[make_chunk("l"), make_chunk("v")])
    reranker = FakeReranker(scores=[0.2, 0.8])
    service = service_factory(store, reranker=reranker, rerank_enabled=True)
    results = service.search("question", ["doc-1"], top_k=5)
    assert [item.id for item in results] == ["l", "v"]
    assert reranker.calls == [("question", ["content of v", "content of l"])]


def test_rerank_override_disables_reranking(service_factory) -> None:
    store = FakeStore(vector_hits=[make_chunk("v", [1.0, 0.0])], lexical_hits=[make_chunk("l")])
    reranker = FakeReranker(scores=[0.0, 1.0])
    service = service_factory(store, reranker=reranker, rerank_enabled=True)
    results = service.search("question", ["doc-1"], rerank=False)
    assert [item.id for item in results] == ["v", "l"]
    assert reranker.calls == []


def test_rerank_enabled_without_reranker_uses_rrf(service_factory) -> None:
    store = FakeStore(vector_hits=[make_chunk("v", [1.0, 0.0])], lexical_hits=[make_chunk("l")])
    results = service_factory(store, rerank_enabled=True).search("question", ["doc-1"])
    assert [item.id for item in results] == ["v", "l"]
    assert results[0].score == pytest.approx(1 / 61)


def test_reranker_failure_degrades_to_union_order(service_factory) -> None:
    store = FakeStore(
        vector_hits=[make_chunk("v1", [1.0, 0.0]), make_chunk("v2", [0.0, 1.0])],
        lexical_hits=[make_chunk("l1"), make_chunk("v1")],
    )
    reranker = FakeReranker(error=ConnectionError("rerank backend unavailable"))
    service = service_factory(store, reranker=reranker, rerank_enabled=True, mmr_lambda=1.0)
    results = service.search("question", ["doc-1"], top_k=2)
    assert [item.id for item in results] == ["v1", "v2"]
    assert all(item.score == 0.0 for item in results)


@pytest.mark.parametrize(
    "store, embedder",
    [
        (FakeStore(vector_error=StoreError("vector down")), None),
        (FakeStore(lexical_error=StoreError("fts down")), None),
        (FakeStore(), FakeEmbedder(error=EmbeddingError("embedder down"))),
    ],
)
def test_branch_failure_fails_search(service_factory, store: FakeStore, embedder) -> None:
    service = service_factory(store, embedder)
    with pytest.raises(RetrievalError) as excinfo:
        service.search("question", ["doc-1"])
    assert isinstance(excinfo.value.__cause__, (StoreError, EmbeddingError))


def test_top_k_out_of_range_is_rejected(service_factory) -> None:
    service = service_factory(FakeStore())
    with pytest.raises(ValueError):
        service.search("question", ["doc-1"], top_k=51)


def test_batch_search_dedupes_keeping_first_position(service_factory) -> None:
    shared = make_chunk("X", [1.0, 0.0])
    store = FakeStore(
        vector_hits=[shared],
        lexical_by_query={"q1": [make_chunk("A1")], "q2": [make_chunk("B1"), shared]},
    )
    service = service_factory(store)
    results = service.batch_search(["q1", "q2"], ["doc-1"])
    assert [item.id for item in results] == ["X", "A1", "B1"]
    assert len(store.lexical_calls) == 2


def test_batch_search_propagates_failures(service_factory) -> None:
    service = service_factory(FakeStore(lexical_error=StoreError("fts down")))
    with pytest.raises(RetrievalError):
        service.batch_search(["alpha", "beta"], ["doc-1"])


def test_context_scope_follows_call_arguments(service_factory) -> None:
    store = FakeStore()
    service = service_factory(store)
    context = RetrievalContext.new(["other"])
    service.search("question", ["doc-1"], context=context)
    assert store.lexical_calls[0][1] == frozenset({"doc-1"})
