"""Command line interface for DocSearch."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from docsearch.config import AppConfig
from docsearch.index.indexer import Indexer
from docsearch.models import SearchOptions
from docsearch.service import build_orchestrator

console = Console()
app = typer.Typer(help="DocSearch - keyword and semantic search over uploaded documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _make_config(data_dir: Optional[Path], model: Optional[str], no_embeddings: bool) -> AppConfig:
    defaults = AppConfig.from_env()
    return AppConfig(
        data_dir=data_dir or defaults.data_dir,
        snapshot_dir=None if data_dir else defaults.snapshot_dir,
        uploads_dir=None if data_dir else defaults.uploads_dir,
        registry_kind="local",
        model_name=None if no_embeddings else (model or defaults.model_name),
        chunk_chars=defaults.chunk_chars,
        overlap=defaults.overlap,
        snapshot_retention=defaults.snapshot_retention,
        embed_timeout=defaults.embed_timeout,
    )


DataDirOption = typer.Option(None, "--data-dir", help="Directory holding uploads and vector snapshots")
ModelOption = typer.Option(None, "--model", help="Sentence-transformer model name")
NoEmbeddingsOption = typer.Option(False, "--no-embeddings", help="Disable semantic indexing")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


@app.command()
def index(
    inputs: List[Path] = typer.Argument(
        ..., help="Files or directories with documents to index.", resolve_path=True
    ),
    data_dir: Optional[Path] = DataDirOption,
    model: Optional[str] = ModelOption,
    no_embeddings: bool = NoEmbeddingsOption,
    verbose: bool = VerboseOption,
) -> None:
    """Store and index PDF, DOCX, TXT and MD files."""
    _setup_logging(verbose)
    config = _make_config(data_dir, model, no_embeddings)
    orchestrator = build_orchestrator(config, base_dir=Path.cwd(), warm_up=False)
    try:
        report = Indexer(orchestrator).index_paths(inputs)
        if not report.processed:
            console.print("[yellow]No supported documents found.[/yellow]")
            return
        console.print(
            f"Indexed: {report.indexed} (semantic: {report.vector_indexed}), "
            f"skipped: {report.skipped}, failed: {report.failed}"
        )
    finally:
        orchestrator.shutdown()


@app.command()
def search(
    query: str = typer.Argument(..., help="Keywords to look for"),
    limit: int = typer.Option(20, min=1, max=100, help="Page size"),
    offset: int = typer.Option(0, min=0, help="Results to skip"),
    file_type: Optional[List[str]] = typer.Option(None, "--type", help="Restrict to extension"),
    data_dir: Optional[Path] = DataDirOption,
    verbose: bool = VerboseOption,
) -> None:
    """Keyword search over indexed documents."""
    _setup_logging(verbose)
    if not query.strip():
        raise typer.BadParameter("Empty query")
    config = _make_config(data_dir, None, True)
    orchestrator = build_orchestrator(config, base_dir=Path.cwd(), load_model=False)
    try:
        response = orchestrator.search(
            query, SearchOptions(limit=limit, offset=offset, file_types=file_type or None)
        )
    finally:
        orchestrator.shutdown()

    if not response.results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Size")
    table.add_column("Uploaded")
    for doc in response.results:
        table.add_row(
            doc.id,
            doc.original_name,
            doc.file_extension,
            str(doc.file_size),
            doc.upload_date.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
    console.print(f"Showing {len(response.results)} of {response.total} ({response.elapsed_ms}ms)")


@app.command("vector-search")
def vector_search(
    query: str = typer.Argument(..., help="Query text"),
    top_k: int = typer.Option(4, min=1, max=20, help="Number of chunks to display"),
    data_dir: Optional[Path] = DataDirOption,
    model: Optional[str] = ModelOption,
    verbose: bool = VerboseOption,
) -> None:
    """Execute a semantic search."""
    _setup_logging(verbose)
    config = _make_config(data_dir, model, False)
    orchestrator = build_orchestrator(config, base_dir=Path.cwd(), warm_up=False)
    try:
        result = orchestrator.vector_search(query, top_k)
    finally:
        orchestrator.shutdown()

    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise typer.Exit(code=1)
    if not result.data:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Document")
    table.add_column("Chunk")
    table.add_column("Snippet")
    for item in result.data:
        snippet = item.chunk.text.replace("\n", " ")
        name = item.chunk.metadata.get("original_name", item.chunk.document_id)
        table.add_row(f"{item.score:.4f}", str(name), str(item.chunk.sequence), snippet[:180])
    console.print(table)


@app.command()
def rebuild(
    data_dir: Optional[Path] = DataDirOption,
    model: Optional[str] = ModelOption,
    verbose: bool = VerboseOption,
) -> None:
    """Rebuild the vector index from every stored document."""
    _setup_logging(verbose)
    config = _make_config(data_dir, model, False)
    orchestrator = build_orchestrator(config, base_dir=Path.cwd(), warm_up=False)
    try:
        result = orchestrator.rebuild_vector_index()
    finally:
        orchestrator.shutdown()
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Vector index rebuilt with {result.data} chunks.")


@app.command()
def stats(data_dir: Optional[Path] = DataDirOption) -> None:
    """Show index statistics."""
    config = _make_config(data_dir, None, True)
    orchestrator = build_orchestrator(config, base_dir=Path.cwd(), load_model=False)
    try:
        index_stats = orchestrator.get_stats()
        snapshot = orchestrator.semantic.snapshots.latest_timestamp()
    finally:
        orchestrator.shutdown()
    console.print(f"Documents: {index_stats.document_count}")
    console.print(f"Latest vector snapshot: {snapshot if snapshot is not None else 'none'}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter("uvicorn is not installed") from exc

    from docsearch.web.app import create_app

    config = _make_config(data_dir, None, False) if data_dir is not None else AppConfig.from_env()
    console.print(f"Starting DocSearch API on http://{host}:{port} (data: {config.data_dir})")
    uvicorn.run(create_app(config=config), host=host, port=port, reload=False, log_level="info")
