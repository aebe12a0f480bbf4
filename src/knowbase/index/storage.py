"""SQLite store for content-addressed chunks and their embeddings."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

import numpy as np

from knowbase.models import ChunkRecord, EmbeddingRecord

DEFAULT_ID_BATCH_SIZE = 500


def _batched(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _placeholders(count: int) -> str:
    return ",".join("?" * count)


class SQLiteIndexStore:
    """Persistence layer for the ``chunks`` and ``embeddings`` relations."""

    def __init__(self, db_path: Path, *, id_batch_size: int = DEFAULT_ID_BATCH_SIZE) -> None:
        if id_batch_size <= 0:
            raise ValueError("id_batch_size must be positive")
        self.db_path = Path(db_path)
        self.id_batch_size = id_batch_size
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def ensure_schema(self) -> None:
        """Create both relations and the bucket index if they are absent."""
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id TEXT PRIMARY KEY,
                    bucket TEXT NOT NULL,
                    source TEXT NOT NULL,
                    text TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS embeddings (
                    id TEXT PRIMARY KEY,
                    model TEXT NOT NULL,
                    vector BLOB NOT NULL,
                    FOREIGN KEY(id) REFERENCES chunks(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_chunks_bucket ON chunks(bucket)")

    def chunk_ids(self) -> set[str]:
        return {row["id"] for row in self._conn.execute("SELECT id FROM chunks")}

    def delete_chunks(self, ids: Sequence[str]) -> int:
        """Delete chunks and their embeddings, ``id_batch_size`` ids per statement."""
        if not ids:
            return 0
        removed = 0
        with self.transaction() as conn:
            for batch in _batched(list(ids), self.id_batch_size):
                marks = _placeholders(len(batch))
                conn.execute(f"DELETE FROM embeddings WHERE id IN ({marks})", batch)
                removed += conn.execute(f"DELETE FROM chunks WHERE id IN ({marks})", batch).rowcount
        return removed

    def upsert_chunks(self, chunks: Iterable[ChunkRecord]) -> int:
        """Insert chunks atomically; rows whose id already exists are left untouched.

        Returns the number of rows actually inserted.
        """
        inserted = 0
        with self.transaction() as conn:
            for chunk in chunks:
                inserted += conn.execute(
                    """
                    INSERT INTO chunks(id, bucket, source, text)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(id) DO NOTHING
                    """,
                    (chunk.id, chunk.bucket, chunk.source, chunk.text),
                ).rowcount
        return inserted

    def missing_embeddings(self, ids: Sequence[str]) -> list[str]:
        """Return the ids among ``ids`` that have no stored embedding, in input order."""
        embedded: set[str] = set()
        for batch in _batched(list(ids), self.id_batch_size):
            rows = self._conn.execute(
                f"SELECT id FROM embeddings WHERE id IN ({_placeholders(len(batch))})",
                batch,
            )
            embedded.update(row["id"] for row in rows)
        return [chunk_id for chunk_id in ids if chunk_id not in embedded]

    def insert_embeddings(self, records: Iterable[EmbeddingRecord]) -> None:
        """Persist one batch of vectors in a single transaction."""
        with self.transaction() as conn:
            for record in records:
                conn.execute(
                    "INSERT INTO embeddings(id, model, vector) VALUES (?, ?, ?)",
                    (
                        record.id,
                        record.model,
                        sqlite3.Binary(np.asarray(record.vector, dtype="float32").tobytes()),
                    ),
                )

    def fetch_embedded_chunks(self, buckets: Sequence[str]) -> List[dict]:
        """Return embedded chunks whose bucket is one of ``buckets``, oldest first."""
        if not buckets:
            return []
        rows = self._conn.execute(
            f"""
            SELECT c.id AS id, c.bucket AS bucket, c.source AS source,
                   c.text AS text, e.vector AS vector
            FROM chunks c
            JOIN embeddings e ON e.id = c.id
            WHERE c.bucket IN ({_placeholders(len(buckets))})
            ORDER BY c.rowid
            """,
            list(buckets),
        ).fetchall()
        return [
            {
                "id": row["id"],
                "bucket": row["bucket"],
                "source": row["source"],
                "text": row["text"],
                "vector": np.frombuffer(row["vector"], dtype="float32"),
            }
            for row in rows
        ]

    def get_stats(self) -> dict[str, object]:
        """Row counts overall and per bucket."""
        chunk_count = self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
        embedding_count = self._conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()[0]
        buckets = {
            row["bucket"]: row["count"]
            for row in self._conn.execute(
                "SELECT bucket, COUNT(*) AS count FROM chunks GROUP BY bucket ORDER BY bucket"
            )
        }
        models = {
            row["model"]: row["count"]
            for row in self._conn.execute(
                "SELECT model, COUNT(*) AS count FROM embeddings GROUP BY model ORDER BY model"
            )
        }
        return {
            "chunk_count": chunk_count,
            "embedding_count": embedding_count,
            "buckets": buckets,
            "models": models,
        }
