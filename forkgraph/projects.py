"""Save and reopen conversation graphs as registry projects.

Saving runs in a fixed order: validate the name and creator, serialize the
graph, store the document, store its token metadata, then record the project
and a snapshot in the registry.  The graph itself is never modified by a save.

:func:`save_document` and :func:`fetch_document` do only storage and registry
I/O, so the API can run them off the event loop while the graph is read and
replaced on it.  :func:`save_project` and :func:`load_project` wrap them for
synchronous callers such as the CLI.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Optional

from forkgraph.db import projects as registry
from forkgraph.db.models import Project
from forkgraph.errors import CollaboratorError, ValidationError
from forkgraph.graph import serializer
from forkgraph.graph.controller import GraphController
from forkgraph.storage import ContentStore

logger = logging.getLogger(__name__)


def _encode(document: dict[str, Any]) -> bytes:
    return serializer.dumps(document).encode("utf-8")


def save_document(
    conn: sqlite3.Connection,
    content_store: ContentStore,
    document: dict[str, Any],
    name: str,
    creator: str,
    description: Optional[str] = None,
    project_id: Optional[str] = None,
) -> Project:
    """Store an exported graph *document* and return the registry record.

    When *project_id* names an existing project its content ids are updated
    and a new snapshot version is added; otherwise a new project is created.

    Raises:
        ValidationError: If *name* or *creator* is blank.
        ReferenceNotFoundError: If *project_id* is given but unknown.
        CollaboratorError: If the content store or the registry fails.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Project name must not be empty.")
    creator = (creator or "").strip()
    if not creator:
        raise ValidationError("Creator must not be empty.")
    if project_id is not None:
        registry.require_project(conn, project_id)

    data_cid = content_store.put(_encode(document), name="project.json")
    metadata = registry.build_token_metadata(name, description, creator, data_cid)
    metadata_cid = content_store.put(
        json.dumps(metadata, indent=2).encode("utf-8"), name="metadata.json"
    )

    try:
        if project_id is None:
            project = registry.create_project(
                conn,
                name=name,
                creator=creator,
                description=description,
                data_cid=data_cid,
                metadata_cid=metadata_cid,
            )
        else:
            project = registry.update_project_cids(conn, project_id, data_cid, metadata_cid)
        registry.add_snapshot(conn, project.id, document)
    except sqlite3.Error as exc:
        logger.error("Registry write for %r failed: %s", name, exc)
        raise CollaboratorError(f"Failed to record project: {exc}") from exc

    logger.info(
        "Saved project %s (%d nodes) as %s",
        project.id, document["metadata"]["totalNodes"], data_cid,
    )
    return project


def save_project(
    conn: sqlite3.Connection,
    controller: GraphController,
    content_store: ContentStore,
    name: str,
    creator: str,
    description: Optional[str] = None,
    project_id: Optional[str] = None,
) -> Project:
    """Persist the controller's graph; see :func:`save_document`."""
    return save_document(
        conn,
        content_store,
        controller.export_document(),
        name=name,
        creator=creator,
        description=description,
        project_id=project_id,
    )


def fetch_document(
    conn: sqlite3.Connection,
    content_store: ContentStore,
    project_id: str,
) -> tuple[Project, dict[str, Any]]:
    """Return *project_id*'s record and its saved graph document.

    The document is read from the content store; if that fails the latest
    registry snapshot is used instead.

    Raises:
        ReferenceNotFoundError: If *project_id* is unknown.
        CollaboratorError: If neither the content store nor a snapshot can
            provide the document.
    """
    project = registry.require_project(conn, project_id)

    if project.data_cid:
        try:
            return project, serializer.loads(
                content_store.get(project.data_cid).decode("utf-8")
            )
        except (CollaboratorError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning(
                "Could not read %s for project %s, trying snapshot: %s",
                project.data_cid, project_id, exc,
            )

    snapshot = registry.latest_snapshot(conn, project_id)
    if snapshot is None:
        raise CollaboratorError(f"No saved graph available for project {project_id!r}")
    return project, snapshot.snapshot


def load_project(
    conn: sqlite3.Connection,
    controller: GraphController,
    content_store: ContentStore,
    project_id: str,
) -> Project:
    """Replace the controller's graph with the saved contents of *project_id*.

    Raises:
        ReferenceNotFoundError / CollaboratorError: As :func:`fetch_document`.
        SchemaVersionError / ValidationError: If the saved document cannot
            be imported; the graph is left untouched.
    """
    project, document = fetch_document(conn, content_store, project_id)
    controller.import_document(document)
    return project


def duplicate_project(
    conn: sqlite3.Connection,
    project_id: str,
    new_owner: str,
    name: Optional[str] = None,
) -> Project:
    """Registry-level copy of *project_id* for *new_owner*."""
    if not (new_owner or "").strip():
        raise ValidationError("New owner must not be empty.")
    try:
        return registry.duplicate_project(conn, project_id, new_owner, name=name)
    except sqlite3.Error as exc:
        raise CollaboratorError(f"Failed to duplicate project: {exc}") from exc
