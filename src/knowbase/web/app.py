"""FastAPI application exposing retrieval to the chat service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from knowbase.config import AppConfig
from knowbase.embedding.encoder import EmbeddingClient, create_embedder
from knowbase.errors import RetrievalError
from knowbase.index.indexer import Indexer
from knowbase.index.search import Searcher, VisibilityMode, format_context
from knowbase.index.storage import SQLiteIndexStore

LOGGER = logging.getLogger(__name__)


class QueryPayload(BaseModel):
    query: str
    mode: VisibilityMode = VisibilityMode.PUBLIC
    k: int | None = None


class QueryResponse(BaseModel):
    results: List[str]
    context: str


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _searcher(request: Request) -> Searcher:
    searcher = getattr(request.app.state, "searcher", None)
    if searcher is None:
        raise HTTPException(status_code=503, detail="Knowledge base is not ready")
    return searcher


def create_app(config: AppConfig | None = None, *, embedder: EmbeddingClient | None = None) -> FastAPI:
    """Application whose startup builds the index before any request is served."""
    config = config or AppConfig.from_env()
    app = FastAPI(title="knowbase", version="0.1.0")

    @app.on_event("startup")
    async def startup_event() -> None:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        resolved_db = config.resolve_db_path(Path.cwd())
        _ensure_db_parent(resolved_db)
        client = embedder or create_embedder(config)
        store = SQLiteIndexStore(resolved_db, id_batch_size=config.id_batch_size)
        indexer = Indexer(
            client,
            store,
            chunk_chars=config.chunk_chars,
            embed_batch_size=config.embed_batch_size,
        )
        try:
            indexer.build(config.resolve_knowledge_dir(Path.cwd()))
        except Exception:
            store.close()
            raise
        app.state.store = store
        app.state.searcher = Searcher(client, store)
        LOGGER.info("Knowledge base ready")

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        store = getattr(app.state, "store", None)
        if store is not None:
            store.close()

    @app.get("/health")
    async def health(request: Request) -> dict[str, str]:
        _searcher(request)
        return {"status": "ok"}

    @app.get("/stats")
    async def index_stats(request: Request) -> dict[str, Any]:
        return _searcher(request).store.get_stats()

    @app.post("/query", response_model=QueryResponse)
    async def query_knowledge(payload: QueryPayload, request: Request) -> QueryResponse:
        text = payload.query.strip()
        if not text:
            raise HTTPException(status_code=400, detail="Empty query")

        searcher = _searcher(request)
        k = payload.k if payload.k is not None else payload.mode.default_k
        if k < 1:
            raise HTTPException(status_code=400, detail="k must be at least 1")
        k = min(k, 50)
        try:
            results = searcher.query(text, k, payload.mode.buckets)
        except RetrievalError as exc:
            LOGGER.error("Retrieval failed: %s", exc)
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return QueryResponse(
            results=results,
            context=format_context(results, payload.mode.context_header),
        )

    return app
