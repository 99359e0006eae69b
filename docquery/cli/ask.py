"""CLI command for asking questions about the ingested documents."""

import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from config.settings import get_settings
from docquery.cli.components import load_components, load_embedding_provider
from docquery.llm.config import get_llm
from docquery.llm.generator import AnswerGenerator
from docquery.retrieval.orchestrator import DEFAULT_K, QueryOrchestrator

console = Console()
app = typer.Typer()

logger = logging.getLogger(__name__)

CONFIDENCE_COLORS = {
    "high": "green",
    "medium": "yellow",
    "low": "red",
    "insufficient": "red",
}


@app.command()
def ask(
    question: Annotated[
        str,
        typer.Argument(help="Your question about the uploaded documents"),
    ],
    k: Annotated[
        int,
        typer.Option("--k", "-k", help="Number of chunks to retrieve (1-20)"),
    ] = DEFAULT_K,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Ask a question about the ingested documents."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    settings = get_settings()
    components = load_components(settings)

    if components.index.count == 0:
        console.print(
            "[bold red]No documents in the index.[/bold red]\n"
            "Run 'docquery ingest <file>' first."
        )
        raise typer.Exit(1)

    llm = get_llm(settings)
    orchestrator = QueryOrchestrator(
        index=components.index,
        embedding_provider=load_embedding_provider(settings),
        store=components.store,
        generator=AnswerGenerator(llm) if llm is not None else None,
        excerpt_chars=settings.docquery_answer_excerpt_chars,
        temperature=settings.docquery_llm_temperature,
        max_tokens=settings.docquery_llm_max_tokens,
    )

    if not orchestrator.generation_enabled:
        console.print("[dim]No chat model configured; answering with an excerpt of the best match.[/dim]")

    with console.status("[bold green]Thinking..."):
        result = orchestrator.answer(question, k=k)

    color = CONFIDENCE_COLORS.get(result.confidence.value, "white")

    header = Text()
    header.append("DocQuery", style="bold")
    header.append("  Confidence: ", style="dim")
    header.append(result.confidence.value, style=f"bold {color}")
    if not result.generated:
        header.append("  (excerpt)", style="dim")

    console.print()
    console.print(Panel(result.answer, title=header, border_style=color, padding=(1, 2)))

    if result.chunks:
        table = Table(title="Sources")
        table.add_column("#", justify="right")
        table.add_column("Document")
        table.add_column("Chunk", justify="right")
        table.add_column("Score", justify="right")
        for i, chunk in enumerate(result.chunks, start=1):
            table.add_row(
                str(i),
                chunk.title or chunk.chunk.document_id,
                str(chunk.chunk.chunk_index),
                f"{chunk.score:.3f}",
            )
        console.print(table)
