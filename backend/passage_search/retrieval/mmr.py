"""Maximal marginal relevance over dense vectors."""

from __future__ import annotations

import math
from typing import Sequence

from passage_search.models.entities import Chunk, ScoredChunk


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 when either norm is zero."""
    if len(a) != len(b):
        raise ValueError(f"Vector length mismatch: {len(a)} != {len(b)}")
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def mmr(
    candidates: Sequence[Chunk],
    query_vector: Sequence[float],
    top_k: int,
    lambda_param: float = 0.5,
) -> list[ScoredChunk]:
    """Greedily pick up to ``top_k`` candidates trading relevance for novelty.

    Each pick maximises ``lambda * relevance - (1 - lambda) * redundancy`` where
    relevance is the cosine to the query and redundancy the highest cosine to
    anything already picked. Ties go to the earlier candidate. The returned
    items are in selection order and carry their query relevance as score.
    """
    if not 0.0 <= lambda_param <= 1.0:
        raise ValueError(f"lambda_param must be within [0, 1], got {lambda_param}")
    if not candidates or top_k <= 0:
        return []
    for candidate in candidates:
        if candidate.vector is None:
            raise ValueError(f"Chunk {candidate.id} has no vector")

    relevance = [cosine_similarity(query_vector, candidate.vector) for candidate in candidates]
    limit = min(top_k, len(candidates))
    remaining = list(range(len(candidates)))
    selected: list[int] = []
    while len(selected) < limit:
        best_idx = -1
        best_score = float("-inf")
        for idx in remaining:
            redundancy = 0.0
            if selected:
                redundancy = max(
                    cosine_similarity(candidates[idx].vector, candidates[chosen].vector)
                    for chosen in selected
                )
            score = lambda_param * relevance[idx] - (1 - lambda_param) * redundancy
            if score > best_score:
                best_score = score
                best_idx = idx
        selected.append(best_idx)
        remaining.remove(best_idx)
    return [ScoredChunk(chunk=candidates[idx], score=relevance[idx]) for idx in selected]


__all__ = ["cosine_similarity", "mmr"]
