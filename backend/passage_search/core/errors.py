"""Exception types raised by the retrieval engine."""

from __future__ import annotations


class PassageSearchError(Exception):
    """Base class for engine errors."""


class EmbeddingError(PassageSearchError):
    """The embedding backend failed or rejected its input."""


class StoreError(PassageSearchError):
    """The chunk store could not answer a vector or lexical query."""


class RerankError(PassageSearchError):
    """The reranker call failed or returned an unusable payload."""


class RetrievalError(PassageSearchError):
    """A search call failed because one of its branches failed."""


__all__ = [
    "PassageSearchError",
    "EmbeddingError",
    "StoreError",
    "RerankError",
    "RetrievalError",
]
