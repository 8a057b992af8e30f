"""Reranking clients."""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Protocol, Sequence

import requests

from passage_search.core.config import Settings
from passage_search.core.errors import RerankError
from passage_search.utils.text import mask_secret

logger = logging.getLogger(__name__)

DASHSCOPE_HOST = "dashscope.aliyuncs.com"
DEFAULT_DASHSCOPE_MODEL = "gte-rerank"
DEFAULT_RERANK_MODEL = "bge-reranker-v2-m3"


class RerankerClient(Protocol):
    """Scores (query, passage) pairs; output is aligned by index with ``texts``."""

    def score_all(self, query: str, texts: Sequence[str]) -> list[float]: ...


class HttpReranker:
    """Client for hosted rerank APIs.

    Speaks the TEI/SiliconFlow style (``{"query", "documents"}`` posted to
    ``/rerank``) and the DashScope style (``{"input": {"query", "documents"}}``).
    Responses may wrap results in ``output.results``, ``results`` or be a bare
    list; each entry carries an ``index`` and a ``relevance_score`` or
    ``score``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        model_name: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.is_dashscope = DASHSCOPE_HOST in base_url
        self.url = _resolve_url(base_url, self.is_dashscope)
        self.api_key = api_key
        self.model_name = model_name or (DEFAULT_DASHSCOPE_MODEL if self.is_dashscope else DEFAULT_RERANK_MODEL)
        self.timeout = timeout
        self.session = session or requests.Session()

    def score_all(self, query: str, texts: Sequence[str]) -> list[float]:
        if not texts:
            return []
        body = self._build_body(query, list(texts))
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        logger.info(
            "Sending rerank request to %s for %s documents (key %s)",
            self.url,
            len(texts),
            mask_secret(self.api_key),
        )
        start = time.perf_counter()
        try:
            resp = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise RerankError(f"Rerank request to {self.url} failed: {exc}") from exc
        logger.info("Rerank API responded in %.0f ms", (time.perf_counter() - start) * 1000)
        return parse_scores(payload, len(texts))

    def _build_body(self, query: str, texts: list[str]) -> dict[str, Any]:
        if self.is_dashscope:
            return {"model": self.model_name, "input": {"query": query, "documents": texts}}
        # some servers read ``texts`` instead of ``documents``
        return {"model": self.model_name, "query": query, "documents": texts, "texts": texts}


class CrossEncoderReranker:
    """Local ``sentence-transformers`` cross-encoder."""

    def __init__(self, model_name: str, device: str | None = None) -> None:
        from sentence_transformers import CrossEncoder

        self.model_name = model_name
        try:
            self._model = CrossEncoder(model_name, device=device)
        except Exception as exc:  # pragma: no cover - requires network
            raise RerankError(f"Failed to load rerank model '{model_name}'") from exc

    def score_all(self, query: str, texts: Sequence[str]) -> list[float]:
        if not texts:
            return []
        try:
            scores = self._model.predict([[query, text] for text in texts], convert_to_numpy=True)
        except Exception as exc:
            raise RerankError(f"Cross-encoder '{self.model_name}' failed") from exc
        return [float(score) for score in scores]


def parse_scores(payload: Any, expected: int) -> list[float]:
    """Map a rerank response onto ``expected`` slots, defaulting to 0.0."""
    scores = [0.0] * expected
    results: Any = None
    if isinstance(payload, dict):
        output = payload.get("output")
        if isinstance(output, dict) and "results" in output:
            results = output["results"]
        elif "results" in payload:
            results = payload["results"]
    elif isinstance(payload, list):
        results = payload
    if not isinstance(results, list):
        logger.warning("Rerank response has no result list; keeping neutral scores")
        return scores
    for item in results:
        if not isinstance(item, dict):
            continue
        index = item.get("index")
        score = item.get("relevance_score", item.get("score"))
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < expected:
            logger.debug("Discarding rerank entry with index %r", index)
            continue
        try:
            value = float(score)
        except (TypeError, ValueError):
            value = math.nan
        if not math.isfinite(value):
            logger.debug("Discarding rerank entry %s with score %r", index, score)
            continue
        scores[index] = value
    return scores


def should_rerank(enabled: bool, override: bool | None) -> bool:
    if override is not None:
        return override
    return enabled


def build_reranker(settings: Settings) -> RerankerClient | None:
    """Reranker described by ``settings``, or ``None`` when none is configured."""
    if not settings.rerank_configured:
        if settings.rerank_enabled:
            logger.warning("Reranking enabled but no reranker configured; using RRF fusion")
        return None
    if settings.rerank_backend == "cross-encoder":
        return CrossEncoderReranker(settings.rerank_model)
    return HttpReranker(
        base_url=settings.rerank_base_url,
        api_key=settings.rerank_api_key,
        model_name=settings.rerank_model,
        timeout=settings.rerank_timeout_seconds,
    )


def _resolve_url(base_url: str, is_dashscope: bool) -> str:
    if is_dashscope or base_url.endswith("/rerank"):
        return base_url
    return base_url.rstrip("/") + "/rerank"


__all__ = [
    "RerankerClient",
    "HttpReranker",
    "CrossEncoderReranker",
    "parse_scores",
    "should_rerank",
    "build_reranker",
]
