"""Project management commands."""

from typing import Optional

import typer

from forkgraph import projects as project_service
from forkgraph.db import get_connection, init_db
from forkgraph.db.projects import latest_snapshot, list_projects, require_project
from forkgraph.errors import GraphError
from forkgraph.storage import get_content_store, shorten_cid
from forkgraph_cli.context import (
    load_context,
    load_controller,
    require_context,
    save_context,
    save_controller,
)

project_app = typer.Typer(help="Save, list and reopen conversation graphs as projects.")


def _creator(explicit: Optional[str]) -> str:
    ctx = load_context()
    return explicit or ctx.user_preferences.get("creator") or "anonymous"


@project_app.command("save")
def project_save(
    name: Optional[str] = typer.Argument(None, help="Project name (defaults to the active project's)."),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Short description."),
    creator: Optional[str] = typer.Option(None, "--creator", help="Creator identity (remembered)."),
    new: bool = typer.Option(False, "--new", help="Always create a new project."),
) -> None:
    """Store the working graph and record it in the project registry.

    Saving again while a project is active adds a new snapshot to it.
    """
    ctx = load_context()
    target_id = None if new else ctx.active_project_id
    name = name or (ctx.active_project_name if target_id else None)
    if not name:
        typer.echo("❌ A project name is required.")
        raise typer.Exit(code=1)

    controller = load_controller()
    conn = get_connection()
    init_db(conn)
    try:
        project = project_service.save_project(
            conn,
            controller,
            get_content_store(),
            name=name,
            creator=_creator(creator),
            description=description,
            project_id=target_id,
        )
        snapshot = latest_snapshot(conn, project.id)
    except GraphError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()

    ctx = load_context()
    ctx.active_project_id = project.id
    ctx.active_project_name = project.name
    if creator:
        ctx.user_preferences["creator"] = creator
    save_context(ctx)

    typer.echo(f"✅ Project saved: {project.name} ({project.id})")
    typer.echo(f"   Data CID: {shorten_cid(project.data_cid or '')}")
    typer.echo(f"   Snapshot: v{snapshot.version if snapshot else 1}")


@project_app.command("list")
def project_list(
    owner: Optional[str] = typer.Option(None, "--owner", help="Only show projects owned by this identity."),
) -> None:
    """List all saved projects."""
    conn = get_connection()
    init_db(conn)

    try:
        projects = list_projects(conn, owner=owner)
        if not projects:
            typer.echo("No projects found.")
            return

        active_id = load_context().active_project_id

        typer.echo("Projects:")
        for p in projects:
            marker = "*" if p.id == active_id else " "
            derived = " (derived)" if p.is_derived else ""
            typer.echo(f"{marker} {p.name} \t[{p.id}]  {p.status}{derived}")
    finally:
        conn.close()


@project_app.command("load")
def project_load(
    project_id: str = typer.Argument(..., help="Project UUID."),
) -> None:
    """Replace the working graph with a saved project and make it active."""
    controller = load_controller()
    conn = get_connection()
    init_db(conn)
    try:
        project = project_service.load_project(conn, controller, get_content_store(), project_id)
    except GraphError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()

    save_controller(controller)
    ctx = load_context()
    ctx.active_project_id = project.id
    ctx.active_project_name = project.name
    save_context(ctx)

    summary = controller.store.summary()
    typer.echo(f"📂 Loaded project: {project.name}")
    typer.echo(f"   {summary.total_nodes} node(s), {summary.total_messages} message(s)")


@project_app.command("duplicate")
def project_duplicate(
    project_id: str = typer.Argument(..., help="Project UUID to copy."),
    owner: str = typer.Option(..., "--owner", help="Owner of the copy."),
    name: Optional[str] = typer.Option(None, "--name", help="Name of the copy."),
) -> None:
    """Copy a project for another owner (the copy starts as a draft)."""
    conn = get_connection()
    init_db(conn)
    try:
        copy = project_service.duplicate_project(conn, project_id, owner, name=name)
    except GraphError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()
    typer.echo(f"✅ Duplicated as {copy.name} ({copy.id}), owner {copy.owner}")


@project_app.command("status")
@require_context
def project_status() -> None:
    """Show the active project's registry record."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)
    try:
        project = require_project(conn, ctx.active_project_id)
        snapshot = latest_snapshot(conn, project.id)
    except GraphError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()

    typer.echo(f"\n📊 Project: {project.name}")
    typer.echo(f"   ID: {project.id}")
    typer.echo("-" * 40)
    typer.echo(f"   Status: {project.status}")
    typer.echo(f"   Owner: {project.owner}")
    typer.echo(f"   Data CID: {project.data_cid or '-'}")
    typer.echo(f"   Snapshots: {snapshot.version if snapshot else 0}")
