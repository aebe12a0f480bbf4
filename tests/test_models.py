"""Tests for core data models."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from knowbase.models import BUCKETS, ChunkRecord, Document, EmbeddingRecord


class TestBuckets:
    def test_fixed_order(self) -> None:
        assert BUCKETS == ("base", "public", "private")


class TestDocument:
    def test_fields(self) -> None:
        doc = Document(path=Path("/kb/base/x.md"), source="base/x.md", bucket="base", text="Hi")

        assert doc.path == Path("/kb/base/x.md")
        assert doc.source == "base/x.md"
        assert doc.bucket == "base"
        assert doc.text == "Hi"

    def test_slots(self) -> None:
        doc = Document(path=Path("x"), source="x", bucket="base", text="")
        with pytest.raises(AttributeError):
            doc.extra = 1  # type: ignore[attr-defined]


class TestChunkRecord:
    def test_equality(self) -> None:
        first = ChunkRecord(id="abc", bucket="public", source="public/y.md", text="We ship")
        second = ChunkRecord(id="abc", bucket="public", source="public/y.md", text="We ship")
        assert first == second


class TestEmbeddingRecord:
    def test_fields(self) -> None:
        record = EmbeddingRecord(id="abc", model="m", vector=np.array([1.0, 0.0], dtype="float32"))

        assert record.id == "abc"
        assert record.model == "m"
        assert record.vector.dtype == np.float32
