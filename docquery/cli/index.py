"""CLI command for rebuilding the vector index from stored chunks."""

import logging
from typing import Annotated

import typer
from rich.console import Console

from config.settings import get_settings
from docquery.cli.components import load_components
from docquery.ingestion.pipeline import DocumentIngestor

console = Console()
app = typer.Typer()


@app.command()
def rebuild_index(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Rebuild the vector index from the embeddings held by the record store."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    settings = get_settings()
    components = load_components(settings)
    chunks = components.store.list_chunks()
    console.print(f"Loaded {len(chunks)} chunks from storage")

    if not chunks:
        console.print("[bold red]No chunks found to rebuild from.[/bold red]")
        raise typer.Exit(1)

    ingestor = DocumentIngestor(
        store=components.store,
        index=components.index,
        snapshot=components.snapshot,
    )
    with console.status("[bold green]Rebuilding index..."):
        restored = ingestor.rebuild_index()

    skipped = len(chunks) - restored
    console.print(f"[bold green]Index rebuilt![/bold green] {restored} vectors")
    if skipped:
        console.print(f"  Skipped (missing or invalid embeddings): {skipped}")
    console.print(f"  Snapshot: {components.snapshot.path}")
