"""Chunk store interface and its SQLite implementation."""

from __future__ import annotations

import sqlite3
from array import array
from typing import Collection, Protocol, Sequence

from passage_search.core.errors import StoreError
from passage_search.db.sqlite import SQLiteDatabase
from passage_search.models.entities import Chunk
from passage_search.retrieval.lexical import OR_SEPARATOR, segment
from passage_search.retrieval.mmr import cosine_similarity
from passage_search.utils.time import now_ms

_CHUNK_COLUMNS = "c.id, c.document_id, c.content, c.chunk_index, c.source_meta, c.keywords, c.chunker_name, c.created_at"


class ChunkStore(Protocol):
    """Read side of the chunk corpus, always restricted to a document scope."""

    def vector_search(
        self, query_vector: Sequence[float], document_ids: Collection[str], limit: int
    ) -> list[Chunk]: ...

    def lexical_search(self, query: str, document_ids: Collection[str], limit: int) -> list[Chunk]: ...


class SQLiteChunkStore:
    """Chunks in SQLite: float32 vector blobs plus an FTS5 table for lexical search."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def upsert_chunks(self, chunks: Sequence[Chunk]) -> int:
        if not chunks:
            return 0
        # last occurrence of an id wins, one FTS row per chunk
        chunks = list({chunk.id: chunk for chunk in chunks}.values())
        created_at = now_ms()
        rows = [
            [
                chunk.id,
                chunk.document_id,
                chunk.content,
                array("f", chunk.vector).tobytes() if chunk.vector is not None else None,
                len(chunk.vector) if chunk.vector is not None else None,
                chunk.chunk_index,
                chunk.source_meta,
                chunk.keywords,
                chunk.chunker_name,
                chunk.created_at if chunk.created_at is not None else created_at,
            ]
            for chunk in chunks
        ]
        try:
            with self.db.transaction():
                self.db.executemany(
                    """
                    INSERT OR REPLACE INTO chunks (
                      id, document_id, content, vector, dim, chunk_index,
                      source_meta, keywords, chunker_name, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                self.db.executemany(
                    "DELETE FROM chunks_fts WHERE chunk_id = ?",
                    [[chunk.id] for chunk in chunks],
                )
                self.db.executemany(
                    "INSERT INTO chunks_fts (chunk_id, content_search) VALUES (?, ?)",
                    [[chunk.id, " ".join(segment(chunk.content))] for chunk in chunks],
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to store {len(chunks)} chunks") from exc
        return len(chunks)

    def vector_search(
        self, query_vector: Sequence[float], document_ids: Collection[str], limit: int
    ) -> list[Chunk]:
        if not document_ids or limit <= 0:
            return []
        ids = list(document_ids)
        placeholders = ",".join("?" for _ in ids)
        try:
            rows = self.db.query(
                f"""
                SELECT {_CHUNK_COLUMNS}, c.vector
                FROM chunks c
                WHERE c.document_id IN ({placeholders}) AND c.vector IS NOT NULL
                ORDER BY c.document_id, c.chunk_index, c.id
                """,
                ids,
            )
        except sqlite3.Error as exc:
            raise StoreError("Vector search query failed") from exc
        scored: list[tuple[float, Chunk]] = []
        for row in rows:
            chunk = _row_to_chunk(row)
            try:
                similarity = cosine_similarity(query_vector, chunk.vector)
            except ValueError as exc:
                raise StoreError(f"Stored vector for chunk {chunk.id} has the wrong dimension") from exc
            scored.append((similarity, chunk))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [chunk for _, chunk in scored[:limit]]

    def lexical_search(self, query: str, document_ids: Collection[str], limit: int) -> list[Chunk]:
        match = to_fts5_query(query)
        if not document_ids or limit <= 0 or not match:
            return []
        ids = list(document_ids)
        placeholders = ",".join("?" for _ in ids)
        try:
            rows = self.db.query(
                f"""
                SELECT {_CHUNK_COLUMNS}, NULL AS vector
                FROM chunks_fts
                JOIN chunks c ON c.id = chunks_fts.chunk_id
                WHERE chunks_fts MATCH ? AND c.document_id IN ({placeholders})
                ORDER BY bm25(chunks_fts), c.id
                LIMIT ?
                """,
                [match, *ids, limit],
            )
        except sqlite3.Error as exc:
            raise StoreError("Lexical search query failed") from exc
        return [_row_to_chunk(row) for row in rows]


def to_fts5_query(query: str) -> str:
    """Quote each disjunct so user text cannot inject FTS5 syntax."""
    terms = [term.strip() for term in query.split(OR_SEPARATOR) if term.strip()]
    return OR_SEPARATOR.join('"' + term.replace('"', '""') + '"' for term in terms)


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    vector = None
    if row["vector"] is not None:
        floats = array("f")
        floats.frombytes(row["vector"])
        vector = list(floats)
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        content=row["content"],
        vector=vector,
        chunk_index=row["chunk_index"],
        source_meta=row["source_meta"],
        keywords=row["keywords"],
        chunker_name=row["chunker_name"],
        created_at=row["created_at"],
    )


__all__ = ["ChunkStore", "SQLiteChunkStore", "to_fts5_query"]
