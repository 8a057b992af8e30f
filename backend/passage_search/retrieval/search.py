"""Search orchestration."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Iterable, Sequence

from passage_search.core.config import Settings
from passage_search.core.errors import RetrievalError
from passage_search.core.logging import get_logger
from passage_search.core.metrics import BATCH_DUPLICATES, BRANCH_LATENCY, SEARCH_COUNT, SEARCH_LATENCY
from passage_search.models.entities import Chunk, ScoredChunk
from passage_search.retrieval.context import RetrievalContext, span
from passage_search.retrieval.embeddings import Embedder
from passage_search.retrieval.fusion import reciprocal_rank_fusion, rerank_fusion
from passage_search.retrieval.lexical import LexicalQueryBuilder
from passage_search.retrieval.mmr import mmr
from passage_search.retrieval.rerank import RerankerClient, should_rerank
from passage_search.retrieval.store import ChunkStore
from passage_search.utils.text import mask_query

logger = get_logger(__name__)

MAX_TOP_K = 50


class RetrievalService:
    """Coordinates the vector branch, the lexical branch and their fusion."""

    def __init__(
        self,
        settings: Settings,
        store: ChunkStore,
        embedder: Embedder,
        reranker: RerankerClient | None = None,
        query_builder: LexicalQueryBuilder | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.embedder = embedder
        self.reranker = reranker
        self.query_builder = query_builder or LexicalQueryBuilder.from_path(settings.stopwords_path)
        self._branch_pool = ThreadPoolExecutor(
            max_workers=settings.max_workers, thread_name_prefix="psearch-branch"
        )
        # sub-queries wait on branch tasks, so they must not share a pool with them
        self._batch_pool = ThreadPoolExecutor(
            max_workers=max(1, settings.max_workers // 2), thread_name_prefix="psearch-batch"
        )

    def close(self) -> None:
        self._batch_pool.shutdown(wait=True)
        self._branch_pool.shutdown(wait=True)

    def search(
        self,
        query: str,
        document_ids: Iterable[str],
        *,
        top_k: int | None = None,
        rerank: bool | None = None,
        context: RetrievalContext | None = None,
    ) -> list[ScoredChunk]:
        """Hybrid search over the chunks of ``document_ids``.

        An empty scope returns ``[]`` without touching the embedder, the
        store or the reranker. A failure in either branch raises
        ``RetrievalError``; a failing reranker only degrades the ordering.
        """
        scope = frozenset(document_ids)
        ctx = context.with_scope(scope) if context is not None else RetrievalContext.new(scope)
        if not scope:
            logger.info("Hybrid search without document ids; returning no results", extra=ctx.log_fields())
            return []

        limit = top_k if top_k is not None else self.settings.top_k
        if not 1 <= limit <= MAX_TOP_K:
            raise ValueError(f"top_k must be between 1 and {MAX_TOP_K}, got {limit}")
        rerank_requested = should_rerank(self.settings.rerank_enabled, rerank)
        search_k = self.settings.rerank_initial_top_k if rerank_requested else limit
        strategy = "rerank" if rerank_requested and self.reranker is not None else "rrf"
        logger.debug(
            "Hybrid search for '%s' over %s documents, strategy=%s search_k=%s",
            mask_query(query),
            len(scope),
            strategy,
            search_k,
            extra=ctx.log_fields(),
        )

        start = time.perf_counter()
        vector_future = self._branch_pool.submit(self._vector_branch, query, scope, search_k, ctx)
        lexical_future = self._branch_pool.submit(self._lexical_branch, query, scope, search_k, ctx)
        wait([vector_future, lexical_future])
        try:
            vector_hits = vector_future.result()
            lexical_hits = lexical_future.result()
        except Exception as exc:
            SEARCH_COUNT.labels(strategy=strategy, status="error").inc()
            logger.exception("Hybrid search failed", extra=ctx.log_fields())
            raise RetrievalError(f"Hybrid search failed: {exc}") from exc

        branches: list[list[Chunk]] = [[hit.chunk for hit in vector_hits], lexical_hits]
        with span(logger, ctx, "Fusion"):
            if strategy == "rerank":
                results = rerank_fusion(query, branches, self.reranker, limit)
            else:
                results = reciprocal_rank_fusion(branches, limit, k=self.settings.rrf_k)

        SEARCH_LATENCY.labels(strategy=strategy).observe(time.perf_counter() - start)
        SEARCH_COUNT.labels(strategy=strategy, status="ok").inc()
        logger.debug(
            "Hybrid search returned %s chunks (vector=%s, lexical=%s)",
            len(results),
            len(vector_hits),
            len(lexical_hits),
            extra=ctx.log_fields(),
        )
        return results

    def batch_search(
        self,
        queries: Sequence[str],
        document_ids: Iterable[str],
        context: RetrievalContext | None = None,
    ) -> list[ScoredChunk]:
        """Run ``search`` per query and merge the results.

        Results are concatenated in query order and de-duplicated by chunk id,
        so a chunk found by an earlier query keeps that position.
        """
        if not queries:
            return []
        scope = frozenset(document_ids)
        ctx = context.with_scope(scope) if context is not None else RetrievalContext.new(scope)
        logger.info("Running batch hybrid search with %s sub-queries", len(queries), extra=ctx.log_fields())

        futures = [
            self._batch_pool.submit(self.search, query, scope, context=ctx.child())
            for query in queries
        ]
        wait(futures)
        per_query = [future.result() for future in futures]

        seen: set[str] = set()
        merged: list[ScoredChunk] = []
        total = 0
        for results in per_query:
            for item in results:
                total += 1
                if item.id not in seen:
                    seen.add(item.id)
                    merged.append(item)
        BATCH_DUPLICATES.inc(total - len(merged))
        logger.info(
            "Batch search finished. Total chunks: %s, distinct: %s",
            total,
            len(merged),
            extra=ctx.log_fields(),
        )
        return merged

    # ------------------------------------------------------------------

    def _vector_branch(
        self, query: str, scope: frozenset[str], search_k: int, ctx: RetrievalContext
    ) -> list[ScoredChunk]:
        with span(logger, ctx, "Vector Search"), BRANCH_LATENCY.labels(branch="vector").time():
            query_vector = self.embedder.embed(query)
            fetch_k = search_k * self.settings.mmr_fetch_multiplier
            candidates = self.store.vector_search(query_vector, scope, fetch_k)
            logger.debug("Vector search fetched %s candidates", len(candidates), extra=ctx.log_fields())
            selected = mmr(candidates, query_vector, search_k, lambda_param=self.settings.mmr_lambda)
        return [ScoredChunk(chunk=item.chunk.without_vector(), score=item.score) for item in selected]

    def _lexical_branch(
        self, query: str, scope: frozenset[str], search_k: int, ctx: RetrievalContext
    ) -> list[Chunk]:
        with span(logger, ctx, "Keyword Search"), BRANCH_LATENCY.labels(branch="lexical").time():
            lexical_query = self.query_builder.build(query)
            logger.debug("Lexical query: '%s'", mask_query(lexical_query), extra=ctx.log_fields())
            return self.store.lexical_search(lexical_query, scope, search_k)


__all__ = ["RetrievalService", "MAX_TOP_K"]
