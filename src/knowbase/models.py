"""Core knowbase data models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

BUCKETS: tuple[str, ...] = ("base", "public", "private")


@dataclass(slots=True)
class Document:
    """A knowledge file read from one bucket directory."""

    path: Path
    source: str
    bucket: str
    text: str


@dataclass(slots=True)
class ChunkRecord:
    """Content-addressed chunk of document text."""

    id: str
    bucket: str
    source: str
    text: str


@dataclass(slots=True)
class EmbeddingRecord:
    id: str
    model: str
    vector: np.ndarray
