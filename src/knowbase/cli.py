"""Command line interface for knowbase."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from knowbase.config import AppConfig
from knowbase.embedding.encoder import create_embedder
from knowbase.index.indexer import Indexer
from knowbase.index.search import Searcher, VisibilityMode
from knowbase.index.storage import SQLiteIndexStore

console = Console()
app = typer.Typer(help="knowbase - content-addressed knowledge index for retrieval-augmented chat")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


@app.command()
def build(
    knowledge_dir: Optional[Path] = typer.Option(
        None, "--knowledge-dir", "-k", help="Root containing base/, public/ and private/"
    ),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
    provider: Optional[str] = typer.Option(None, help="Embedding provider: openai or local"),
    model: Optional[str] = typer.Option(None, help="Embedding model name"),
    chunk_chars: Optional[int] = typer.Option(None, help="Maximum chunk size in characters"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Ingest the knowledge directory and embed new chunks."""
    _setup_logging(verbose)
    config = AppConfig.from_env(
        knowledge_dir=knowledge_dir,
        db_path=db,
        embedding_provider=provider,
        model_name=model,
        chunk_chars=chunk_chars,
    )
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)
    root = config.resolve_knowledge_dir(Path.cwd())

    embedder = create_embedder(config)
    store = SQLiteIndexStore(resolved_db, id_batch_size=config.id_batch_size)
    indexer = Indexer(
        embedder,
        store,
        chunk_chars=config.chunk_chars,
        embed_batch_size=config.embed_batch_size,
    )

    console.print(f"Building [bold]{root}[/bold] into [bold]{resolved_db}[/bold]...")
    try:
        stats = indexer.build(root)
    finally:
        store.close()
    console.print(
        f"Documents: {stats.documents}, chunks: {stats.chunks}, "
        f"removed: {stats.stale_removed}, embedded: {stats.embedded}"
    )


@app.command()
def query(
    text: str = typer.Argument(..., help="Query text"),
    mode: VisibilityMode = typer.Option(VisibilityMode.PUBLIC, help="Visibility scope"),
    bucket: Optional[List[str]] = typer.Option(
        None, "--bucket", "-b", help="Explicit bucket to search (repeatable, overrides --mode)"
    ),
    top_k: Optional[int] = typer.Option(None, "--top-k", help="Number of results to display"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
    provider: Optional[str] = typer.Option(None, help="Embedding provider: openai or local"),
    model: Optional[str] = typer.Option(None, help="Embedding model name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run a bucket-scoped similarity query."""
    _setup_logging(verbose)
    config = AppConfig.from_env(db_path=db, embedding_provider=provider, model_name=model)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")

    buckets = list(bucket) if bucket else list(mode.buckets)
    k = top_k if top_k is not None else mode.default_k

    embedder = create_embedder(config)
    store = SQLiteIndexStore(resolved_db, id_batch_size=config.id_batch_size)
    try:
        results = Searcher(embedder, store).search(text, k=k, buckets=buckets)
    finally:
        store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Bucket")
    table.add_column("Source")
    table.add_column("Snippet")
    for result in results:
        snippet = result.text.replace("\n", " ")
        table.add_row(f"{result.score:.4f}", result.bucket, result.source, snippet[:180])
    console.print(table)


@app.command()
def stats(
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show row counts of the index."""
    config = AppConfig.from_env(db_path=db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Database not found.[/yellow]")
        return

    store = SQLiteIndexStore(resolved_db)
    try:
        store.ensure_schema()
        summary = store.get_stats()
    finally:
        store.close()

    console.print(f"Chunks: {summary['chunk_count']}, embeddings: {summary['embedding_count']}")
    for name, count in summary["buckets"].items():
        console.print(f"  {name}: {count}")
    for name, count in summary["models"].items():
        console.print(f"  model {name}: {count}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    knowledge_dir: Optional[Path] = typer.Option(None, "--knowledge-dir", "-k"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Build the index, then serve retrieval over HTTP."""
    import uvicorn

    from knowbase.web.app import create_app

    config = AppConfig.from_env(knowledge_dir=knowledge_dir, db_path=db)
    console.print(f"Starting retrieval API on http://{host}:{port}")
    uvicorn.run(create_app(config), host=host, port=port, reload=False, log_level="info")


if __name__ == "__main__":
    app()
