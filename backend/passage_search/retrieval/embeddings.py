"""Embedding clients."""

from __future__ import annotations

import hashlib
import logging
import math
import re
from typing import Protocol

from passage_search.core.config import Settings
from passage_search.core.errors import EmbeddingError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")


class Embedder(Protocol):
    """Turns text into a fixed-length dense vector."""

    @property
    def dim(self) -> int: ...

    def embed(self, text: str) -> list[float]: ...


class HashedEmbedder:
    """Lightweight hashed embedding model with deterministic output."""

    _instances: dict[tuple[str, int], "HashedEmbedder"] = {}

    def __init__(self, model_name: str = "hashed", dim: int = 384) -> None:
        self.model_name = model_name
        self._dim = dim

    @classmethod
    def get(cls, model_name: str, dim: int = 384) -> "HashedEmbedder":
        key = (model_name or "hashed", dim)
        if key not in cls._instances:
            cls._instances[key] = HashedEmbedder(model_name=key[0], dim=dim)
        return cls._instances[key]

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, text: str) -> list[float]:
        if not isinstance(text, str):
            raise EmbeddingError(f"Cannot embed {type(text).__name__}")
        vector = [0.0] * self._dim
        for token in _tokenize(text):
            vector[_hash_token(token, self._dim)] += 1.0
        _normalize(vector)
        return vector


class SentenceTransformerEmbedder:
    """Embedder backed by a ``sentence-transformers`` model."""

    def __init__(self, model_name: str, device: str | None = None) -> None:
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name
        try:
            self._model = SentenceTransformer(model_name, device=device)
        except Exception as exc:
            raise EmbeddingError(f"Failed to load embedding model '{model_name}'") from exc
        self._dim = int(self._model.get_sentence_embedding_dimension())

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, text: str) -> list[float]:
        try:
            vector = self._model.encode([text], convert_to_numpy=True, normalize_embeddings=True)[0]
        except Exception as exc:
            raise EmbeddingError(f"Embedding failed with model '{self.model_name}'") from exc
        return [float(value) for value in vector]


def build_embedder(settings: Settings) -> Embedder:
    if settings.embedding_backend == "sentence-transformers":
        logger.info("Loading sentence-transformers embedder '%s'", settings.embedding_model)
        return SentenceTransformerEmbedder(settings.embedding_model)
    if settings.embedding_backend != "hashed":
        raise ValueError(f"Unknown embedding backend: {settings.embedding_backend}")
    return HashedEmbedder.get(settings.embedding_model, settings.embedding_dim)


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = ["Embedder", "HashedEmbedder", "SentenceTransformerEmbedder", "build_embedder"]
