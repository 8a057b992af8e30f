"""Internal dataclasses representing stored chunks and ranked results."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(slots=True)
class Chunk:
    """A stored, embedded unit of document text.

    ``vector`` is only populated when the store was asked for it (vector
    search); the engine drops it again once diversification is done.
    """

    id: str
    document_id: str
    content: str
    vector: list[float] | None = None
    chunk_index: int = 0
    source_meta: str | None = None
    keywords: str | None = None
    chunker_name: str | None = None
    created_at: int | None = None

    def without_vector(self) -> "Chunk":
        return replace(self, vector=None)


@dataclass(slots=True)
class ScoredChunk:
    """A chunk paired with the score one retrieval call assigned to it."""

    chunk: Chunk
    score: float

    @property
    def id(self) -> str:
        return self.chunk.id


__all__ = ["Chunk", "ScoredChunk"]
