"""Knowledge directory loading and chunking."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from knowbase.models import BUCKETS, ChunkRecord, Document
from knowbase.utils.files import DOCUMENT_EXTENSION, content_id, iter_document_paths
from knowbase.utils.text import chunk_lines

LOGGER = logging.getLogger(__name__)


def load_knowledge(
    root: Path,
    buckets: Sequence[str] = BUCKETS,
    *,
    extension: str = DOCUMENT_EXTENSION,
) -> list[Document]:
    """Read every document under ``root/<bucket>`` for each bucket.

    Missing bucket directories are treated as empty. Read errors propagate.
    """
    root = Path(root)
    documents: list[Document] = []
    for bucket in buckets:
        bucket_dir = root / bucket
        if not bucket_dir.is_dir():
            LOGGER.debug("Bucket directory %s not found, skipping", bucket_dir)
            continue
        for path in iter_document_paths(bucket_dir, extension):
            documents.append(
                Document(
                    path=path,
                    source=path.relative_to(root).as_posix(),
                    bucket=bucket,
                    text=path.read_text(encoding="utf-8"),
                )
            )
    return documents


def iter_chunk_records(
    documents: Iterable[Document], *, max_chars: int = 900
) -> Iterator[ChunkRecord]:
    """Yield content-addressed chunks for each document in order."""
    for document in documents:
        for text in chunk_lines(document.text, max_chars=max_chars):
            yield ChunkRecord(
                id=content_id(document.bucket, document.source, text),
                bucket=document.bucket,
                source=document.source,
                text=text,
            )
