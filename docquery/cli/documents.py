"""CLI commands for listing, showing, updating and deleting documents."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from config.settings import get_settings
from docquery.cli.components import build_ingestor, load_components, load_embedding_provider
from docquery.errors import DocQueryError
from docquery.ingestion.pipeline import DocumentIngestor

console = Console()
app = typer.Typer()

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 80


@app.command()
def documents(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """List ingested documents with their chunk counts."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    components = load_components(get_settings())
    docs = components.store.list_documents()

    if not docs:
        console.print("No documents ingested.")
        return

    table = Table(title=f"Documents ({len(docs)})")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Type")
    table.add_column("Tags")
    table.add_column("Chunks", justify="right")
    table.add_column("Updated")
    for doc in docs:
        table.add_row(
            doc.id,
            doc.title,
            doc.document_type.value,
            ", ".join(doc.tags),
            str(components.store.count_chunks(doc.id)),
            doc.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def delete(
    document_id: Annotated[
        str,
        typer.Argument(help="ID of the document to delete"),
    ],
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Delete a document, its chunks and its vectors."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    components = load_components(get_settings())
    ingestor = DocumentIngestor(
        store=components.store,
        index=components.index,
        snapshot=components.snapshot,
    )

    deleted = ingestor.delete_document(document_id)
    if deleted is None:
        console.print(f"[bold red]Document not found:[/bold red] {document_id}")
        raise typer.Exit(1)

    console.print(f"[bold green]Deleted[/bold green] {document_id} and {deleted} chunks")
    console.print(f"  Total in index: {components.index.count} vectors")


@app.command()
def show(
    document_id: Annotated[
        str,
        typer.Argument(help="ID of the document to show"),
    ],
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Show one document and its chunks."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    components = load_components(get_settings())
    doc = components.store.get_document(document_id)
    if doc is None:
        console.print(f"[bold red]Document not found:[/bold red] {document_id}")
        raise typer.Exit(1)

    chunks = components.store.get_chunks_by_document(document_id)
    console.print(f"[bold]{doc.title}[/bold] ({doc.document_type.value})")
    console.print(f"  ID: {doc.id}")
    console.print(f"  Tags: {', '.join(doc.tags) or '-'}")
    console.print(f"  Created: {doc.created_at:%Y-%m-%d %H:%M}  Updated: {doc.updated_at:%Y-%m-%d %H:%M}")
    console.print(f"  Chunks: {len(chunks)}")

    if not chunks:
        return

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Span")
    table.add_column("Indexed", justify="center")
    table.add_column("Preview")
    for chunk in chunks:
        start = chunk.metadata.get("startPosition", "?")
        end = chunk.metadata.get("endPosition", "?")
        preview = chunk.text if len(chunk.text) <= PREVIEW_CHARS else chunk.text[:PREVIEW_CHARS] + "..."
        table.add_row(
            str(chunk.chunk_index),
            f"{start}-{end}",
            "yes" if chunk.external_id in components.index else "no",
            preview,
        )
    console.print(table)


@app.command()
def update(
    document_id: Annotated[
        str,
        typer.Argument(help="ID of the document to update"),
    ],
    path: Annotated[
        Optional[Path],
        typer.Argument(help="Replacement file (.pdf, .docx, .txt, .html)", exists=True, dir_okay=False),
    ] = None,
    title: Annotated[
        Optional[str],
        typer.Option("--title", "-t", help="New document title"),
    ] = None,
    tags: Annotated[
        Optional[str],
        typer.Option("--tags", help="Comma-separated tags, replacing the current ones"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Replace a document's file, title or tags, then re-chunk and re-index it."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    settings = get_settings()
    components = load_components(settings)
    if components.store.get_document(document_id) is None:
        console.print(f"[bold red]Document not found:[/bold red] {document_id}")
        raise typer.Exit(1)

    tag_list = None
    if tags is not None:
        tag_list = [tag.strip() for tag in tags.split(",") if tag.strip()]

    with console.status("[bold green]Loading embedding model..."):
        ingestor = build_ingestor(components, load_embedding_provider(settings))

    try:
        with console.status(f"[bold green]Updating {document_id}..."):
            result = ingestor.update_file(document_id, path=path, title=title, tags=tag_list)
    except DocQueryError as e:
        logger.error("Error updating %s: %s", document_id, e)
        console.print(f"[red]✗[/red] {document_id}: {e}")
        raise typer.Exit(1)

    console.print(
        f"[bold green]Updated[/bold green] {result.document.title} → {result.document.id} "
        f"({result.chunks_created} chunks, {result.vectors_indexed} vectors)"
    )
    console.print(f"  Total in index: {components.index.count} vectors")
