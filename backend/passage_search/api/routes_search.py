"""Search API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from passage_search.api.dependencies import get_retrieval_service
from passage_search.core.errors import RetrievalError
from passage_search.models.dto import BatchSearchRequest, ChunkResult, SearchRequest, SearchResponse
from passage_search.retrieval.context import RetrievalContext
from passage_search.retrieval.search import RetrievalService

router = APIRouter()


@router.post("/search", response_model=SearchResponse, summary="Hybrid search within a set of documents")
async def run_search(
    request: SearchRequest,
    service: RetrievalService = Depends(get_retrieval_service),
) -> SearchResponse:
    context = RetrievalContext.new(request.document_ids)
    try:
        results = await run_in_threadpool(
            service.search,
            request.query,
            request.document_ids,
            top_k=request.top_k,
            rerank=request.rerank,
            context=context,
        )
    except RetrievalError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return SearchResponse(trace_id=context.trace_id, results=[ChunkResult.from_scored(item) for item in results])


@router.post("/search/batch", response_model=SearchResponse, summary="Run several queries and merge the results")
async def run_batch_search(
    request: BatchSearchRequest,
    service: RetrievalService = Depends(get_retrieval_service),
) -> SearchResponse:
    context = RetrievalContext.new(request.document_ids)
    try:
        results = await run_in_threadpool(
            service.batch_search,
            request.queries,
            request.document_ids,
            context=context,
        )
    except RetrievalError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return SearchResponse(trace_id=context.trace_id, results=[ChunkResult.from_scored(item) for item in results])
