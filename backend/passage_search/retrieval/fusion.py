"""Fusion of the vector and lexical branches."""

from __future__ import annotations

import logging
import math
from typing import Any, Sequence

from passage_search.core.metrics import RERANK_FAILURES
from passage_search.models.entities import Chunk, ScoredChunk
from passage_search.retrieval.rerank import RerankerClient

logger = logging.getLogger(__name__)

RRF_K = 60


def reciprocal_rank_fusion(
    results: Sequence[Sequence[Chunk]],
    top_k: int,
    k: int = RRF_K,
) -> list[ScoredChunk]:
    """Combine rankings using reciprocal rank fusion.

    Position ``i`` (0-based) in any list adds ``1 / (k + i + 1)``. The first
    list a chunk appears in supplies its fields; equal scores keep the order
    chunks were first seen, so earlier lists win ties.
    """
    chunks: dict[str, Chunk] = {}
    scores: dict[str, float] = {}
    for hits in results:
        for rank, chunk in enumerate(hits, start=1):
            chunks.setdefault(chunk.id, chunk)
            scores[chunk.id] = scores.get(chunk.id, 0.0) + 1.0 / (k + rank)
    fused = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [ScoredChunk(chunk=chunks[chunk_id], score=score) for chunk_id, score in fused[:top_k]]


def candidate_union(results: Sequence[Sequence[Chunk]]) -> list[Chunk]:
    """Union of all lists keyed by chunk id, first occurrence wins."""
    union: dict[str, Chunk] = {}
    for hits in results:
        for chunk in hits:
            union.setdefault(chunk.id, chunk)
    return list(union.values())


def rerank_fusion(
    query: str,
    results: Sequence[Sequence[Chunk]],
    reranker: RerankerClient,
    top_k: int,
) -> list[ScoredChunk]:
    """Score the candidate union with a cross-encoder and keep the best ``top_k``.

    A failing reranker leaves every candidate at 0.0, which returns the union
    in its original order instead of failing the search.
    """
    candidates = candidate_union(results)
    if not candidates:
        return []
    try:
        scores = list(reranker.score_all(query, [candidate.content for candidate in candidates]))
    except Exception as exc:
        RERANK_FAILURES.inc()
        logger.warning("Reranker failed, keeping candidate order: %s", exc, exc_info=True)
        scores = []
    ranked = [
        ScoredChunk(chunk=candidate, score=_coerce_score(scores[idx]) if idx < len(scores) else 0.0)
        for idx, candidate in enumerate(candidates)
    ]
    ranked.sort(key=lambda item: item.score, reverse=True)
    logger.debug("Reranked %s candidates", len(ranked))
    return ranked[:top_k]


def _coerce_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        logger.debug("Discarding rerank score %r", value)
        return 0.0
    return score if math.isfinite(score) else 0.0


__all__ = ["RRF_K", "reciprocal_rank_fusion", "candidate_union", "rerank_fusion"]
