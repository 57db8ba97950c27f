"""Project registry endpoints.

Routes
------
GET    /projects                    List projects (optionally ``?owner=``)
POST   /projects                    Save the current graph as a project
GET    /projects/{id}               Project record + gateway link
POST   /projects/{id}/load          Replace the current graph with the saved one
POST   /projects/{id}/duplicate     Copy a project for a new owner
DELETE /projects/{id}               Remove a project and its snapshots

Saving and loading read or replace the shared graph on the event loop and
run the storage / registry I/O in a worker thread.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel

from forkgraph import projects as project_service
from forkgraph.api.errors import http_error
from forkgraph.db import projects as registry
from forkgraph.db.models import Project
from forkgraph.errors import GraphError
from forkgraph.storage import gateway_url

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class SaveProjectRequest(BaseModel):
    name: str
    creator: str
    description: Optional[str] = None
    project_id: Optional[str] = None


class DuplicateRequest(BaseModel):
    new_owner: str
    name: Optional[str] = None


# ---------------------------------------------------------------------------
# Serialisation helper
# ---------------------------------------------------------------------------

def _project_out(project: Project) -> dict[str, Any]:
    out = project.to_dict()
    out["data_url"] = gateway_url(project.data_cid) if project.data_cid else None
    return out


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("")
def list_projects_endpoint(request: Request, owner: Optional[str] = None) -> list[dict[str, Any]]:
    """List registry projects, newest first."""
    return [_project_out(p) for p in registry.list_projects(request.app.state.db, owner=owner)]


@router.post("", status_code=201)
async def save_project_endpoint(body: SaveProjectRequest, request: Request) -> dict[str, Any]:
    """Store the current graph and record it in the registry."""
    document = request.app.state.controller.export_document()
    try:
        project = await asyncio.to_thread(
            project_service.save_document,
            request.app.state.db,
            request.app.state.content_store,
            document,
            name=body.name,
            creator=body.creator,
            description=body.description,
            project_id=body.project_id,
        )
    except GraphError as exc:
        raise http_error(exc) from exc
    return _project_out(project)


@router.get("/{project_id}")
def get_project_endpoint(project_id: str, request: Request) -> dict[str, Any]:
    """Fetch one project, including its latest snapshot version."""
    conn = request.app.state.db
    try:
        project = registry.require_project(conn, project_id)
    except GraphError as exc:
        raise http_error(exc) from exc
    out = _project_out(project)
    snapshot = registry.latest_snapshot(conn, project_id)
    out["snapshot_version"] = snapshot.version if snapshot else None
    return out


@router.post("/{project_id}/load")
async def load_project_endpoint(project_id: str, request: Request) -> dict[str, Any]:
    """Open a saved project in place of the current graph."""
    controller = request.app.state.controller
    try:
        project, document = await asyncio.to_thread(
            project_service.fetch_document,
            request.app.state.db,
            request.app.state.content_store,
            project_id,
        )
        controller.import_document(document)
    except GraphError as exc:
        raise http_error(exc) from exc
    summary = controller.store.summary()
    return {
        "project": _project_out(project),
        "totalNodes": summary.total_nodes,
        "totalEdges": summary.total_edges,
        "totalMessages": summary.total_messages,
    }


@router.post("/{project_id}/duplicate", status_code=201)
def duplicate_project_endpoint(
    project_id: str,
    body: DuplicateRequest,
    request: Request,
) -> dict[str, Any]:
    """Create a derived draft of *project_id* for ``new_owner``."""
    try:
        project = project_service.duplicate_project(
            request.app.state.db, project_id, body.new_owner, name=body.name
        )
    except GraphError as exc:
        raise http_error(exc) from exc
    return _project_out(project)


@router.delete("/{project_id}", status_code=204, response_class=Response, response_model=None)
def delete_project_endpoint(project_id: str, request: Request) -> Response:
    """Delete a project and all its snapshots."""
    conn = request.app.state.db
    try:
        registry.require_project(conn, project_id)
    except GraphError as exc:
        raise http_error(exc) from exc
    registry.delete_project(conn, project_id)
    return Response(status_code=204)
