"""Knowledge ingestion pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from knowbase.embedding.encoder import EmbeddingClient
from knowbase.errors import EmbeddingError
from knowbase.index.storage import SQLiteIndexStore
from knowbase.ingestion.loader import iter_chunk_records, load_knowledge
from knowbase.models import BUCKETS, ChunkRecord, EmbeddingRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_EMBED_BATCH_SIZE = 96


@dataclass(slots=True)
class BuildStats:
    documents: int = 0
    chunks: int = 0
    stale_removed: int = 0
    inserted: int = 0
    embedded: int = 0
    embedding_calls: int = 0


class Indexer:
    """Keeps the store in sync with the knowledge directory.

    Chunks are addressed by content, so a rebuild only touches what changed:
    ids no longer produced by the files are deleted, new ids are inserted,
    and only ids without a stored vector are sent to the embedding provider.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: SQLiteIndexStore,
        *,
        chunk_chars: int = 900,
        embed_batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
        buckets: Sequence[str] = BUCKETS,
    ) -> None:
        if embed_batch_size <= 0:
            raise ValueError("embed_batch_size must be positive")
        self.embedder = embedder
        self.store = store
        self.chunk_chars = chunk_chars
        self.embed_batch_size = embed_batch_size
        self.buckets = tuple(buckets)

    def collect_chunks(self, root: Path) -> tuple[int, list[ChunkRecord]]:
        """Load and chunk the knowledge tree; duplicate ids keep their first occurrence."""
        documents = load_knowledge(root, self.buckets)
        LOGGER.info("Loaded %d knowledge documents", len(documents))
        unique: dict[str, ChunkRecord] = {}
        for chunk in iter_chunk_records(documents, max_chars=self.chunk_chars):
            unique.setdefault(chunk.id, chunk)
        return len(documents), list(unique.values())

    def build(self, root: Path) -> BuildStats:
        """Ingest ``root`` and embed every chunk that lacks a vector.

        Any error aborts the build. Embedding batches already committed are
        kept, so calling ``build`` again only embeds what is still missing.
        """
        stats = BuildStats()
        self.store.ensure_schema()

        stats.documents, chunks = self.collect_chunks(Path(root))
        stats.chunks = len(chunks)
        LOGGER.info("Created %d chunks from knowledge documents", stats.chunks)

        current_ids = [chunk.id for chunk in chunks]
        stale = sorted(self.store.chunk_ids() - set(current_ids))
        if stale:
            LOGGER.info("Cleaning up %d stale chunks...", len(stale))
            stats.stale_removed = self.store.delete_chunks(stale)

        stats.inserted = self.store.upsert_chunks(chunks)

        missing = self.store.missing_embeddings(current_ids)
        if not missing:
            LOGGER.info("No new chunks to embed - knowledge base is up to date")
            return stats

        model = self.embedder.model_name
        LOGGER.info("Embedding %d new/updated chunks with %s...", len(missing), model)
        text_by_id = {chunk.id: chunk.text for chunk in chunks}
        for start in range(0, len(missing), self.embed_batch_size):
            batch_ids = missing[start : start + self.embed_batch_size]
            vectors = self.embedder.embed([text_by_id[chunk_id] for chunk_id in batch_ids])
            stats.embedding_calls += 1
            if len(vectors) != len(batch_ids):
                raise EmbeddingError(
                    f"Embedding provider returned {len(vectors)} vectors for {len(batch_ids)} inputs"
                )
            self.store.insert_embeddings(
                EmbeddingRecord(id=chunk_id, model=model, vector=vector)
                for chunk_id, vector in zip(batch_ids, vectors)
            )
            stats.embedded += len(batch_ids)
            LOGGER.debug("Committed embedding batch of %d chunks", len(batch_ids))

        LOGGER.info("Successfully embedded %d new chunks", stats.embedded)
        return stats
