"""Retrieval orchestration components."""

from .context import RetrievalContext
from .embeddings import HashedEmbedder, build_embedder
from .fusion import reciprocal_rank_fusion, rerank_fusion
from .lexical import LexicalQueryBuilder
from .mmr import cosine_similarity, mmr
from .rerank import HttpReranker, build_reranker
from .search import RetrievalService
from .store import SQLiteChunkStore

__all__ = [
    "RetrievalContext",
    "HashedEmbedder",
    "build_embedder",
    "reciprocal_rank_fusion",
    "rerank_fusion",
    "LexicalQueryBuilder",
    "cosine_similarity",
    "mmr",
    "HttpReranker",
    "build_reranker",
    "RetrievalService",
    "SQLiteChunkStore",
]
