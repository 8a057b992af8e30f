"""Explicit per-call trace context."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator

from passage_search.utils.ids import new_id, short_id
from passage_search.utils.time import elapsed_ms


@dataclass(frozen=True, slots=True)
class RetrievalContext:
    """Trace identifiers and scope handed down the retrieval call chain.

    Branch tasks run on worker threads, so nothing here relies on
    thread-local state: every function that logs a span receives the
    context it belongs to.
    """

    trace_id: str
    document_ids: frozenset[str] = field(default_factory=frozenset)
    parent_span_id: str | None = None
    span_id: str = field(default_factory=short_id)

    @classmethod
    def new(cls, document_ids: Iterable[str] = (), trace_id: str | None = None) -> "RetrievalContext":
        return cls(trace_id=trace_id or new_id("trc"), document_ids=frozenset(document_ids))

    def child(self) -> "RetrievalContext":
        return replace(self, parent_span_id=self.span_id, span_id=short_id())

    def with_scope(self, document_ids: Iterable[str]) -> "RetrievalContext":
        return replace(self, document_ids=frozenset(document_ids))

    def log_fields(self) -> dict[str, str | None]:
        return {
            "ctx_trace_id": self.trace_id,
            "ctx_span_id": self.span_id,
            "ctx_parent_span_id": self.parent_span_id,
        }


@contextmanager
def span(logger: logging.Logger, context: RetrievalContext, name: str) -> Iterator[RetrievalContext]:
    """Log a named span around a block; yields the child context."""
    child = context.child()
    start = time.perf_counter()
    logger.debug("%s started", name, extra=child.log_fields())
    try:
        yield child
    except Exception:
        logger.debug("%s failed after %sms", name, elapsed_ms(start), extra=child.log_fields())
        raise
    logger.debug(
        "%s finished in %sms",
        name,
        elapsed_ms(start),
        extra={**child.log_fields(), "ctx_span": name, "ctx_duration_ms": elapsed_ms(start)},
    )


__all__ = ["RetrievalContext", "span"]
