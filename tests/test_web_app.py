"""Tests for the FastAPI retrieval application."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import VocabularyEmbedder, write_doc
from knowbase.config import AppConfig
from knowbase.errors import RetrievalError
from knowbase.web.app import create_app


@pytest.fixture
def config(tmp_path: Path, knowledge_dir: Path) -> AppConfig:
    write_doc(knowledge_dir, "base/x.md", "Our hours are 9-5")
    write_doc(knowledge_dir, "public/y.md", "We ship worldwide")
    write_doc(knowledge_dir, "private/z.md", "secret team office hours")
    return AppConfig(db_path=tmp_path / "db" / "kb.db", knowledge_dir=knowledge_dir)


@pytest.fixture
def embedder() -> VocabularyEmbedder:
    return VocabularyEmbedder()


@pytest.fixture
def client(config: AppConfig, embedder: VocabularyEmbedder):
    with TestClient(create_app(config, embedder=embedder)) as test_client:
        yield test_client


class TestStartup:
    """The index is built before requests are served."""

    def test_build_runs_on_startup(self, client: TestClient, config: AppConfig, embedder: VocabularyEmbedder) -> None:
        assert config.db_path.exists()
        assert len(embedder.calls) == 1
        assert client.get("/health").json() == {"status": "ok"}

    def test_not_ready_without_startup(self, config: AppConfig, embedder: VocabularyEmbedder) -> None:
        client = TestClient(create_app(config, embedder=embedder))

        response = client.get("/health")

        assert response.status_code == 503

    def test_build_failure_aborts_startup(self, config: AppConfig, knowledge_dir: Path) -> None:
        (knowledge_dir / "base" / "broken.md").write_bytes(b"\xff\xfe")

        with pytest.raises(UnicodeDecodeError):
            with TestClient(create_app(config, embedder=VocabularyEmbedder())):
                pass


class TestQueryEndpoint:
    """Tests for POST /query."""

    def test_public_query(self, client: TestClient) -> None:
        response = client.post("/query", json={"query": "what are your hours", "k": 1})

        assert response.status_code == 200
        body = response.json()
        assert body["results"] == ["Our hours are 9-5"]
        assert body["context"] == "Context:\nOur hours are 9-5"

    def test_public_mode_hides_private(self, client: TestClient) -> None:
        response = client.post("/query", json={"query": "secret team office hours", "mode": "public"})

        assert "secret team office hours" not in response.json()["results"]

    def test_private_mode(self, client: TestClient) -> None:
        response = client.post("/query", json={"query": "secret team office", "mode": "private"})

        body = response.json()
        assert body["results"][0] == "secret team office hours"
        assert "We ship worldwide" not in body["results"]
        assert body["context"].startswith("Internal Context:\n")

    def test_empty_query(self, client: TestClient) -> None:
        response = client.post("/query", json={"query": "   "})

        assert response.status_code == 400
        assert "Empty query" in response.json()["detail"]

    @pytest.mark.parametrize("k", [0, -3])
    def test_non_positive_k_rejected(self, client: TestClient, k: int) -> None:
        response = client.post("/query", json={"query": "hours", "k": k})

        assert response.status_code == 400
        assert "k must be at least 1" in response.json()["detail"]

    def test_large_k_is_capped(self, client: TestClient) -> None:
        response = client.post("/query", json={"query": "hours", "k": 500})

        assert response.status_code == 200
        assert len(response.json()["results"]) == 2

    def test_invalid_mode(self, client: TestClient) -> None:
        response = client.post("/query", json={"query": "hours", "mode": "admin"})
        assert response.status_code == 422

    def test_no_matches_is_success(self, config: AppConfig, tmp_path: Path) -> None:
        empty = AppConfig(db_path=tmp_path / "empty.db", knowledge_dir=tmp_path / "nothing")
        with TestClient(create_app(empty, embedder=VocabularyEmbedder())) as client:
            response = client.post("/query", json={"query": "hours"})

        assert response.status_code == 200
        assert response.json()["results"] == []

    def test_retrieval_failure(self, client: TestClient) -> None:
        searcher = MagicMock()
        searcher.query.side_effect = RetrievalError("database is locked")
        client.app.state.searcher = searcher

        response = client.post("/query", json={"query": "hours"})

        assert response.status_code == 503
        assert "database is locked" in response.json()["detail"]


class TestStatsEndpoint:
    def test_stats(self, client: TestClient) -> None:
        response = client.get("/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["chunk_count"] == 3
        assert body["embedding_count"] == 3
        assert body["buckets"] == {"base": 1, "private": 1, "public": 1}
