"""forkgraph CLI entry-point for all operations.

Usage:
    forkgraph --help

Sub-command groups:
    db       → project registry database
    graph    → the working conversation graph
    project  → saving / loading graphs as projects
    serve    → run the HTTP API
"""

from __future__ import annotations

import logging

import typer

from forkgraph.config import settings
from forkgraph.db import get_connection, init_db
from forkgraph_cli.commands.graph import graph_app
from forkgraph_cli.commands.project import project_app

app = typer.Typer(
    name="forkgraph",
    help="Branching AI conversation graphs.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite registry (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


app.add_typer(graph_app, name="graph")
app.add_typer(project_app, name="project")


# ---------------------------------------------------------------------------
# API server
# ---------------------------------------------------------------------------
@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind."),
    port: int = typer.Option(8000, help="Port to bind."),
) -> None:
    """Start the HTTP API."""
    import uvicorn

    typer.echo(f"[serve] Starting server at http://{host}:{port}/docs")
    uvicorn.run("forkgraph.api.app:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
