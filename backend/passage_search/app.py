"""FastAPI application setup for Passage Search."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Response

from passage_search.api.dependencies import get_app_settings, get_retrieval_service, shutdown
from passage_search.api.routes_search import router as search_router
from passage_search.core.logging import configure_logging
from passage_search.core.metrics import metrics_response

configure_logging()


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Warm up core singletons on startup and release them on shutdown."""
    get_app_settings()
    get_retrieval_service()
    yield
    shutdown()


app = FastAPI(
    title="Passage Search",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.include_router(search_router, prefix="", tags=["search"])


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}


@app.get("/metrics", tags=["admin"])
def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return metrics_response()
