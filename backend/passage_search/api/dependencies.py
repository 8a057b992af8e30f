"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from passage_search.core.config import Settings, get_settings
from passage_search.db.sqlite import SQLiteDatabase
from passage_search.retrieval import RetrievalService, SQLiteChunkStore, build_embedder, build_reranker
from passage_search.retrieval.embeddings import Embedder

_DB: SQLiteDatabase | None = None
_STORE: SQLiteChunkStore | None = None
_EMBEDDER: Embedder | None = None
_RETRIEVAL_SERVICE: RetrievalService | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_chunk_store() -> SQLiteChunkStore:
    global _STORE
    if _STORE is None:
        _STORE = SQLiteChunkStore(get_database())
    return _STORE


def get_embedder() -> Embedder:
    global _EMBEDDER
    if _EMBEDDER is None:
        _EMBEDDER = build_embedder(get_app_settings())
    return _EMBEDDER


def get_retrieval_service() -> RetrievalService:
    global _RETRIEVAL_SERVICE
    if _RETRIEVAL_SERVICE is None:
        settings = get_app_settings()
        _RETRIEVAL_SERVICE = RetrievalService(
            settings=settings,
            store=get_chunk_store(),
            embedder=get_embedder(),
            reranker=build_reranker(settings),
        )
    return _RETRIEVAL_SERVICE


def shutdown() -> None:
    """Release pools and connections held by the cached singletons."""
    global _DB, _STORE, _EMBEDDER, _RETRIEVAL_SERVICE
    if _RETRIEVAL_SERVICE is not None:
        _RETRIEVAL_SERVICE.close()
    if _DB is not None:
        _DB.close()
    _DB = None
    _STORE = None
    _EMBEDDER = None
    _RETRIEVAL_SERVICE = None


__all__ = [
    "get_app_settings",
    "get_database",
    "get_chunk_store",
    "get_embedder",
    "get_retrieval_service",
    "shutdown",
]
