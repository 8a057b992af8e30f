"""Test fixtures for Passage Search."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from passage_search.core.config import Settings  # noqa: E402
from passage_search.models.entities import Chunk  # noqa: E402


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("PSEARCH_DB_PATH", str(tmp_path / "chunks.db"))
    monkeypatch.delenv("PSEARCH_CONFIG", raising=False)

    from passage_search.api import dependencies as deps
    from passage_search.core.config import get_settings
    from passage_search.retrieval.embeddings import HashedEmbedder

    HashedEmbedder._instances.clear()
    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps.shutdown()
    yield
    deps.shutdown()
    HashedEmbedder._instances.clear()
    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()


class FakeEmbedder:
    """Returns a fixed vector and records every call."""

    def __init__(self, vector: Sequence[float] = (1.0, 0.0), error: Exception | None = None) -> None:
        self.vector = list(vector)
        self.error = error
        self.calls: list[str] = []

    @property
    def dim(self) -> int:
        return len(self.vector)

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vector)


class FakeStore:
    """Serves canned branch results per query; records calls."""

    def __init__(
        self,
        vector_hits: Sequence[Chunk] = (),
        lexical_hits: Sequence[Chunk] = (),
        lexical_by_query: dict[str, Sequence[Chunk]] | None = None,
        vector_error: Exception | None = None,
        lexical_error: Exception | None = None,
    ) -> None:
        self.vector_hits = list(vector_hits)
        self.lexical_hits = list(lexical_hits)
        self.lexical_by_query = {key: list(value) for key, value in (lexical_by_query or {}).items()}
        self.vector_error = vector_error
        self.lexical_error = lexical_error
        self.vector_calls: list[tuple[list[float], frozenset[str], int]] = []
        self.lexical_calls: list[tuple[str, frozenset[str], int]] = []

    def vector_search(self, query_vector, document_ids, limit):
        self.vector_calls.append((list(query_vector), frozenset(document_ids), limit))
        if self.vector_error is not None:
            raise self.vector_error
        return list(self.vector_hits)[:limit]

    def lexical_search(self, query, document_ids, limit):
        self.lexical_calls.append((query, frozenset(document_ids), limit))
        if self.lexical_error is not None:
            raise self.lexical_error
        hits = self.lexical_by_query.get(query, self.lexical_hits)
        return list(hits)[:limit]


class FakeReranker:
    def __init__(self, scores: Sequence[float] | None = None, error: Exception | None = None) -> None:
        self.scores = list(scores or [])
        self.error = error
        self.calls: list[tuple[str, list[str]]] = []

    def score_all(self, query: str, texts: Sequence[str]) -> list[float]:
        self.calls.append((query, list(texts)))
        if self.error is not None:
            raise self.error
        return list(self.scores)


def make_chunk(chunk_id: str, vector: Sequence[float] | None = None, document_id: str = "doc-1", content: str | None = None) -> Chunk:
    return Chunk(
        id=chunk_id,
        document_id=document_id,
        content=content if content is not None else f"content of {chunk_id}",
        vector=list(vector) if vector is not None else None,
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "chunks.db", max_workers=4)
