"""CLI command for document ingestion."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from config.settings import get_settings
from docquery.cli.components import build_ingestor, load_components, load_embedding_provider
from docquery.errors import DocQueryError

console = Console()
app = typer.Typer()

logger = logging.getLogger(__name__)


@app.command()
def ingest(
    paths: Annotated[
        list[Path],
        typer.Argument(help="Files to ingest (.pdf, .docx, .txt, .html)", exists=True, dir_okay=False),
    ],
    title: Annotated[
        Optional[str],
        typer.Option("--title", "-t", help="Document title (single file only; defaults to the file name)"),
    ] = None,
    tags: Annotated[
        str,
        typer.Option("--tags", help="Comma-separated tags"),
    ] = "",
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Extract, chunk, embed and index documents."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    if title and len(paths) > 1:
        console.print("[bold red]--title can only be used with a single file.[/bold red]")
        raise typer.Exit(1)

    settings = get_settings()
    components = load_components(settings)
    tag_list = [tag.strip() for tag in tags.split(",") if tag.strip()]

    with console.status("[bold green]Loading embedding model..."):
        ingestor = build_ingestor(components, load_embedding_provider(settings))

    console.print("[bold]DocQuery Ingestion[/bold]")
    console.print(
        f"Chunk size: {settings.docquery_chunk_size} characters, "
        f"overlap: {settings.docquery_chunk_overlap} characters"
    )
    console.print()

    errors = 0
    for path in paths:
        try:
            with console.status(f"[bold green]Ingesting {path.name}..."):
                result = ingestor.ingest_file(path, title=title, tags=tag_list)
        except DocQueryError as e:
            logger.error("Error ingesting %s: %s", path, e)
            console.print(f"[red]✗[/red] {path.name}: {e}")
            errors += 1
            continue
        console.print(
            f"[green]✓[/green] {path.name} → {result.document.id} "
            f"({result.chunks_created} chunks, {result.vectors_indexed} vectors)"
        )

    console.print()
    console.print(f"  Errors: {errors}")
    console.print(f"  Total in index: {components.index.count} vectors")
    if errors:
        raise typer.Exit(1)
