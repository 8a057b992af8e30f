"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from passage_search.models.entities import ScoredChunk


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    document_ids: list[str] = Field(default_factory=list, description="Documents the search is restricted to")
    top_k: int | None = Field(default=None, ge=1, le=50)
    rerank: bool | None = None


class BatchSearchRequest(BaseModel):
    queries: list[str] = Field(default_factory=list)
    document_ids: list[str] = Field(default_factory=list)


class ChunkResult(BaseModel):
    chunk_id: str
    document_id: str
    content: str
    chunk_index: int
    source_meta: str | None = None
    keywords: str | None = None
    score: float

    @classmethod
    def from_scored(cls, item: ScoredChunk) -> "ChunkResult":
        chunk = item.chunk
        return cls(
            chunk_id=chunk.id,
            document_id=chunk.document_id,
            content=chunk.content,
            chunk_index=chunk.chunk_index,
            source_meta=chunk.source_meta,
            keywords=chunk.keywords,
            score=item.score,
        )


class SearchResponse(BaseModel):
    trace_id: str
    results: list[ChunkResult]


__all__ = [
    "SearchRequest",
    "BatchSearchRequest",
    "ChunkResult",
    "SearchResponse",
]
