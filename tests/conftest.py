"""Shared fixtures for knowbase tests."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence

import numpy as np
import pytest

from knowbase.index.storage import SQLiteIndexStore
from knowbase.models import EmbeddingRecord

VOCABULARY = ("hours", "ship", "worldwide", "open", "price", "secret", "team", "office")


class VocabularyEmbedder:
    """Deterministic bag-of-words embedder over a fixed vocabulary.

    Records every ``embed`` call so tests can count provider round trips.
    """

    def __init__(self, vocabulary: Sequence[str] = VOCABULARY, model_name: str = "vocab-test") -> None:
        self.vocabulary = list(vocabulary)
        self.model_name = model_name
        self.calls: list[list[str]] = []
        self.fail_on_call: int | None = None

    def _vector(self, text: str) -> np.ndarray:
        words = re.findall(r"[a-z0-9]+", text.lower())
        return np.array([words.count(term) for term in self.vocabulary], dtype="float32")

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        inputs = list(texts)
        self.calls.append(inputs)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RuntimeError("provider unavailable")
        if not inputs:
            return np.zeros((0, len(self.vocabulary)), dtype="float32")
        return np.vstack([self._vector(text) for text in inputs])

    def embed_query(self, text: str) -> np.ndarray:
        return self.embed([text])[0]


def embedding_records(ids: Sequence[str], model: str, vectors: np.ndarray) -> list[EmbeddingRecord]:
    return [EmbeddingRecord(id=i, model=model, vector=v) for i, v in zip(ids, vectors)]


def write_doc(root: Path, relative: str, text: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def embedder() -> VocabularyEmbedder:
    return VocabularyEmbedder()


@pytest.fixture
def knowledge_dir(tmp_path: Path) -> Path:
    root = tmp_path / "knowledge"
    root.mkdir()
    return root


@pytest.fixture
def store(tmp_path: Path):
    """Create a temporary index store with its schema in place."""
    index_store = SQLiteIndexStore(tmp_path / "index.db")
    index_store.ensure_schema()
    yield index_store
    index_store.close()
