"""Working-graph commands: start, fork, chat, inspect, import/export."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import NoReturn, Optional

import typer

from forkgraph.errors import GraphError, ReferenceNotFoundError
from forkgraph.graph import serializer
from forkgraph.graph.controller import GraphController
from forkgraph.graph.models import Position
from forkgraph.llm.catalog import AI_MODELS
from forkgraph_cli.context import load_controller, save_controller
from forkgraph_cli.rendering import render_conversation, render_tree, short_id

graph_app = typer.Typer(help="Build and explore the working conversation graph.")


def _fail(exc: Exception) -> NoReturn:
    typer.echo(f"❌ {exc}")
    raise typer.Exit(code=1)


def _resolve(controller: GraphController, ref: str) -> str:
    """Accept a full node id, a unique id prefix, or an exact title."""
    store = controller.store
    if ref in store:
        return ref
    matches = [n.id for n in store if n.id.startswith(ref) or short_id(n.id) == ref]
    if not matches:
        matches = [n.id for n in store if n.title == ref]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        typer.echo(f"❌ '{ref}' is ambiguous ({len(matches)} nodes match).")
        raise typer.Exit(code=1)
    _fail(ReferenceNotFoundError(ref))


def _position(x: Optional[float], y: Optional[float]) -> Optional[Position]:
    if x is None and y is None:
        return None
    return Position(x=x or 0.0, y=y or 0.0)


@graph_app.command("new")
def graph_new(
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id (see 'graph models')."),
    x: Optional[float] = typer.Option(None, help="Canvas x position."),
    y: Optional[float] = typer.Option(None, help="Canvas y position."),
) -> None:
    """Start a new root conversation."""
    controller = load_controller()
    try:
        node_id = controller.new_conversation(_position(x, y), model)
    except GraphError as exc:
        _fail(exc)
    save_controller(controller)
    node = controller.get(node_id)
    typer.echo(f"✅ Created {node.title} ({node.id})")


@graph_app.command("fork")
def graph_fork(
    node: str = typer.Argument(..., help="Node id, id prefix or title to fork from."),
    selection: Optional[str] = typer.Option(
        None, "--selection", "-s",
        help="Start an empty branch with this text as the draft input.",
    ),
) -> None:
    """Branch a new conversation off an existing one."""
    controller = load_controller()
    source_id = _resolve(controller, node)
    try:
        result = controller.fork(source_id, selected_text=selection)
    except GraphError as exc:
        _fail(exc)
    save_controller(controller)
    child = controller.get(result.node_id)
    typer.echo(f"🌿 Forked {child.title} ({child.id}) from {short_id(source_id)}")
    if result.from_selection:
        typer.echo(f"✏️  Draft: {result.draft}")
    else:
        typer.echo(f"   Copied {len(child.messages)} message(s).")


@graph_app.command("say")
def graph_say(
    node: str = typer.Argument(..., help="Node id, id prefix or title."),
    message: Optional[str] = typer.Argument(None, help="Message text (defaults to the node's draft)."),
    reply: bool = typer.Option(True, "--reply/--no-reply", help="Ask the node's model for a reply."),
) -> None:
    """Send a message to a conversation and stream the assistant's reply."""
    controller = load_controller()
    node_id = _resolve(controller, node)
    text = message if message is not None else controller.store.draft(node_id)
    try:
        controller.send(node_id, text)
    except GraphError as exc:
        _fail(exc)
    save_controller(controller)

    if not reply:
        typer.echo("✅ Message added.")
        return

    async def _stream() -> None:
        async for delta in controller.stream_reply(node_id):
            typer.echo(delta, nl=False)

    try:
        asyncio.run(_stream())
    except GraphError as exc:
        typer.echo("")
        _fail(exc)
    finally:
        save_controller(controller)
    typer.echo("")


@graph_app.command("rename")
def graph_rename(
    node: str = typer.Argument(..., help="Node id, id prefix or title."),
    title: str = typer.Argument(..., help="New title."),
) -> None:
    """Rename a conversation."""
    controller = load_controller()
    node_id = _resolve(controller, node)
    try:
        updated = controller.rename(node_id, title)
    except GraphError as exc:
        _fail(exc)
    save_controller(controller)
    typer.echo(f"✅ Renamed {short_id(node_id)} to {updated.title!r}")


@graph_app.command("model")
def graph_model(
    node: str = typer.Argument(..., help="Node id, id prefix or title."),
    model: str = typer.Argument(..., help="Model id (see 'graph models')."),
) -> None:
    """Switch the model a conversation talks to."""
    controller = load_controller()
    node_id = _resolve(controller, node)
    try:
        controller.set_model(node_id, model)
    except GraphError as exc:
        _fail(exc)
    save_controller(controller)
    typer.echo(f"✅ {short_id(node_id)} now uses {model}")


@graph_app.command("models")
def graph_models() -> None:
    """List the models a conversation can use."""
    for m in AI_MODELS:
        typer.echo(f"  {m.id:<28} {m.name}  ({m.provider})")


@graph_app.command("show")
def graph_show(
    node: Optional[str] = typer.Argument(None, help="Show one conversation instead of the tree."),
) -> None:
    """Show the graph as a tree, or one conversation in full."""
    controller = load_controller()
    if node is None:
        typer.echo(render_tree(controller.store))
        summary = controller.store.summary()
        typer.echo(
            f"\n{summary.total_nodes} node(s), {summary.total_edges} edge(s), "
            f"{summary.total_messages} message(s)"
        )
        return
    node_id = _resolve(controller, node)
    typer.echo(render_conversation(controller.store, controller.get(node_id)))


@graph_app.command("export")
def graph_export(
    output: Path = typer.Argument(..., help="File to write the graph document to."),
) -> None:
    """Export the working graph as a JSON document."""
    controller = load_controller()
    document = controller.export_document()
    output.write_text(serializer.dumps(document), encoding="utf-8")
    meta = document["metadata"]
    typer.echo(
        f"✅ Exported {meta['totalNodes']} node(s), {meta['totalEdges']} edge(s), "
        f"{meta['totalMessages']} message(s) to {output}"
    )


@graph_app.command("import")
def graph_import(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Graph document to load."),
) -> None:
    """Replace the working graph with an exported document."""
    controller = GraphController()
    try:
        controller.import_document(serializer.loads(source.read_text(encoding="utf-8")))
    except GraphError as exc:
        _fail(exc)
    save_controller(controller)
    summary = controller.store.summary()
    typer.echo(f"✅ Imported {summary.total_nodes} node(s) from {source}")


@graph_app.command("reset")
def graph_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete every conversation in the working graph."""
    if not yes:
        typer.confirm("Discard the whole working graph?", abort=True)
    # Must work even when graph.json is unreadable.
    save_controller(GraphController())
    typer.echo("🗑️  Working graph cleared.")
