"""DocQuery CLI entry point."""

import typer

from docquery.cli.ask import ask
from docquery.cli.documents import delete, documents, show, update
from docquery.cli.index import rebuild_index
from docquery.cli.ingest import ingest

app = typer.Typer(
    name="docquery",
    help="Semantic search and question answering over a small corpus of uploaded documents.",
)

app.command(name="ingest")(ingest)
app.command(name="ask")(ask)
app.command(name="documents")(documents)
app.command(name="show")(show)
app.command(name="update")(update)
app.command(name="delete")(delete)
app.command(name="rebuild-index")(rebuild_index)


if __name__ == "__main__":
    app()
