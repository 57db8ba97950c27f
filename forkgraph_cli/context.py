"""Persistent state management for the forkgraph CLI.

Tracks the "active project", user preferences and the working graph.
Stored in ``~/.forkgraph_cli/``:

    context.json   active project, preferences, pending drafts
    graph.json     the working graph as a serialized document
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from functools import wraps
from pathlib import Path
from typing import Any, Callable

import typer

from forkgraph.config import settings
from forkgraph.errors import GraphError
from forkgraph.graph import serializer
from forkgraph.graph.controller import GraphController
from forkgraph.llm.groq import GroqClient

logger = logging.getLogger(__name__)


@dataclass
class CliContext:
    active_project_id: str | None = None
    active_project_name: str | None = None
    user_preferences: dict[str, Any] = field(default_factory=dict)
    drafts: dict[str, str] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            raw = json.loads(data)
            return cls(**raw)
        except (json.JSONDecodeError, TypeError):
            return cls()


def _get_context_path() -> Path:
    """Return the path to the context JSON file."""
    return settings.cli_config_dir / "context.json"


def _get_graph_path() -> Path:
    """Return the path to the working graph document."""
    return settings.cli_config_dir / "graph.json"


def load_context() -> CliContext:
    """Load the CLI context from disk. Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()
    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError:
        return CliContext()


def save_context(ctx: CliContext) -> None:
    """Save the CLI context to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


# ---------------------------------------------------------------------------
# Working graph
# ---------------------------------------------------------------------------

def load_controller() -> GraphController:
    """Rebuild the working graph (and its drafts) from disk.

    A missing graph file yields an empty graph.  An unreadable one aborts the
    command rather than silently discarding the user's work.
    """
    controller = GraphController(inference=GroqClient(), default_model=settings.default_model)
    path = _get_graph_path()
    if path.exists():
        try:
            controller.import_document(serializer.loads(path.read_text(encoding="utf-8")))
        except GraphError as exc:
            typer.echo(f"❌ Working graph at {path} could not be read: {exc}")
            typer.echo("Run 'graph reset' to start over.")
            raise typer.Exit(code=1)

    for node_id, text in load_context().drafts.items():
        if node_id in controller.store:
            controller.store.set_draft(node_id, text)
    return controller


def save_controller(controller: GraphController) -> None:
    """Write the working graph and its drafts back to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_graph_path().write_text(
        serializer.dumps(controller.export_document()), encoding="utf-8"
    )
    ctx = load_context()
    ctx.drafts = {
        n.id: controller.store.draft(n.id)
        for n in controller.store
        if controller.store.draft(n.id)
    }
    save_context(ctx)
    logger.debug("Saved working graph with %d nodes", len(controller.store))


def require_context(func: Callable) -> Callable:
    """Decorator for CLI commands that require an active project.

    Aborts execution if no project is active; the command calls
    ``load_context()`` itself when it needs the project details.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = load_context()
        if not ctx.active_project_id:
            typer.echo("❌ No active project selected.")
            typer.echo("Run 'project save <name>' or 'project load <id>' first.")
            raise typer.Exit(code=1)
        return func(*args, **kwargs)

    return wrapper
