"""Bucket-scoped semantic search over the index."""

from __future__ import annotations

import enum
import logging
import sqlite3
from dataclasses import dataclass
from typing import Iterable, List, Sequence

import numpy as np

from knowbase.embedding.encoder import EmbeddingClient
from knowbase.errors import RetrievalError
from knowbase.index.storage import SQLiteIndexStore

LOGGER = logging.getLogger(__name__)


class VisibilityMode(str, enum.Enum):
    """Caller-facing access scopes and the buckets each one may read."""

    PUBLIC = "public"
    PRIVATE = "private"

    @property
    def buckets(self) -> tuple[str, ...]:
        return ("base", self.value)

    @property
    def default_k(self) -> int:
        return 6 if self is VisibilityMode.PUBLIC else 8

    @property
    def context_header(self) -> str:
        return "Context:" if self is VisibilityMode.PUBLIC else "Internal Context:"


@dataclass(slots=True)
class SearchResult:
    id: str
    bucket: str
    source: str
    score: float
    text: str


def cosine_scores(query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    """Cosine similarity of ``query`` against each row of ``vectors``.

    Rows with zero norm (or a zero query) score 0.0.
    """
    query = np.asarray(query, dtype="float32")
    vectors = np.asarray(vectors, dtype="float32")
    norms = np.linalg.norm(vectors, axis=1) * np.linalg.norm(query)
    dots = vectors @ query
    scores = np.zeros(len(vectors), dtype="float32")
    np.divide(dots, norms, out=scores, where=norms > 0)
    return scores


def rank_top_k(scores: np.ndarray, k: int) -> np.ndarray:
    """Indices of the ``k`` best scores, highest first; ties keep their input order."""
    if k <= 0:
        return np.zeros(0, dtype=int)
    return np.argsort(-scores, kind="stable")[:k]


def format_context(texts: Iterable[str], header: str = "Context:") -> str:
    """Join retrieved texts into the block inserted into a system prompt."""
    return header + "\n" + "\n\n".join(texts)


class Searcher:
    """High-level API to query the index."""

    def __init__(self, embedder: EmbeddingClient, store: SQLiteIndexStore) -> None:
        self.embedder = embedder
        self.store = store

    def search(self, query: str, *, k: int = 6, buckets: Sequence[str] = ("base",)) -> List[SearchResult]:
        if k <= 0 or not buckets:
            return []

        embedding = np.asarray(self.embedder.embed_query(query), dtype="float32")
        try:
            rows = self.store.fetch_embedded_chunks(list(buckets))
        except sqlite3.Error as exc:
            raise RetrievalError(f"Failed to read the index: {exc}") from exc

        candidates = [row for row in rows if row["vector"].shape == embedding.shape]
        if len(candidates) != len(rows):
            LOGGER.warning(
                "Skipped %d chunks whose vectors do not match the query dimension %d",
                len(rows) - len(candidates),
                embedding.shape[0],
            )
        if not candidates:
            return []

        scores = cosine_scores(embedding, np.vstack([row["vector"] for row in candidates]))
        results: List[SearchResult] = []
        for idx in rank_top_k(scores, k):
            row = candidates[idx]
            results.append(
                SearchResult(
                    id=row["id"],
                    bucket=row["bucket"],
                    source=row["source"],
                    score=float(scores[idx]),
                    text=row["text"],
                )
            )
        return results

    def query(self, text: str, k: int = 6, allowed_buckets: Sequence[str] = ("base",)) -> List[str]:
        """Texts of the ``k`` chunks most similar to ``text`` within ``allowed_buckets``."""
        return [result.text for result in self.search(text, k=k, buckets=allowed_buckets)]

    def retrieve_context(self, text: str, mode: VisibilityMode, k: int | None = None) -> str:
        texts = self.query(text, k if k is not None else mode.default_k, mode.buckets)
        return format_context(texts, mode.context_header)
