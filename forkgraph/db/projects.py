"""CRUD operations for the ``projects`` and ``project_snapshots`` tables.

A project row points at a saved conversation graph: ``data_cid`` is the
content id of the serialized graph document, ``metadata_cid`` the id of the
token metadata describing it.  Every save also keeps a versioned snapshot of
the document in ``project_snapshots`` so a project can be reopened without
the content store.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from time import time
from typing import Any, Optional

from forkgraph.db.models import PROJECT_STATUSES, Project, Snapshot
from forkgraph.errors import ReferenceNotFoundError, ValidationError
from forkgraph.storage.lighthouse import gateway_url


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        creator=row["creator"],
        owner=row["owner"],
        status=row["status"],
        data_cid=row["data_cid"],
        metadata_cid=row["metadata_cid"],
        derived_from=row["derived_from"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def require_project(conn: sqlite3.Connection, project_id: str) -> Project:
    """Like :func:`get_project` but raises :class:`ReferenceNotFoundError`."""
    project = get_project(conn, project_id)
    if project is None:
        raise ReferenceNotFoundError(project_id, kind="Project")
    return project


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

def create_project(
    conn: sqlite3.Connection,
    name: str,
    creator: str,
    description: Optional[str] = None,
    owner: Optional[str] = None,
    data_cid: Optional[str] = None,
    metadata_cid: Optional[str] = None,
    derived_from: Optional[str] = None,
    project_id: Optional[str] = None,
) -> Project:
    """Insert a new project in ``draft`` status and return it.

    Args:
        conn: Open DB connection.
        name: Display name; must not be blank.
        creator: Identity of the account that authored the graph.
        description: Optional free text.
        owner: Current owner; defaults to ``creator``.
        data_cid: Content id of the serialized graph document.
        metadata_cid: Content id of the token metadata.
        derived_from: Id of the project this one was duplicated from.
        project_id: Explicit UUID override (auto-generated when omitted).

    Raises:
        ValidationError: If ``name`` or ``creator`` is blank.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Project name must not be empty.")
    if not (creator or "").strip():
        raise ValidationError("Project creator must not be empty.")

    pid = project_id or str(uuid.uuid4())
    now = int(time())

    with conn:
        conn.execute(
            """
            INSERT INTO projects (id, name, description, creator, owner, status,
                                  data_cid, metadata_cid, derived_from,
                                  created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, 'draft', ?, ?, ?, ?, ?)
            """,
            (pid, name, description, creator, owner or creator,
             data_cid, metadata_cid, derived_from, now, now),
        )

    return get_project(conn, pid)  # type: ignore[return-value]


def get_project(conn: sqlite3.Connection, project_id: str) -> Optional[Project]:
    """Fetch a single project by id.  Returns ``None`` if not found."""
    row = conn.execute(
        "SELECT * FROM projects WHERE id = ?", (project_id,)
    ).fetchone()
    return _row_to_project(row) if row else None


def list_projects(
    conn: sqlite3.Connection,
    owner: Optional[str] = None,
) -> list[Project]:
    """Return all projects, newest first, optionally filtered by ``owner``."""
    if owner:
        rows = conn.execute(
            "SELECT * FROM projects WHERE owner = ? ORDER BY created_at DESC, rowid DESC",
            (owner,),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM projects ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
    return [_row_to_project(r) for r in rows]


def update_project_cids(
    conn: sqlite3.Connection,
    project_id: str,
    data_cid: str,
    metadata_cid: Optional[str] = None,
) -> Project:
    """Point *project_id* at a newly stored document (and metadata).

    Raises:
        ReferenceNotFoundError: If ``project_id`` does not exist.
    """
    require_project(conn, project_id)
    with conn:
        conn.execute(
            """
            UPDATE projects
               SET data_cid = ?, metadata_cid = COALESCE(?, metadata_cid), updated_at = ?
             WHERE id = ?
            """,
            (data_cid, metadata_cid, int(time()), project_id),
        )
    return get_project(conn, project_id)  # type: ignore[return-value]


def set_status(conn: sqlite3.Connection, project_id: str, status: str) -> Project:
    """Move a project through its lifecycle (draft, minted, listed, sold)."""
    if status not in PROJECT_STATUSES:
        raise ValidationError(f"Unknown project status: {status!r}")
    require_project(conn, project_id)
    with conn:
        conn.execute(
            "UPDATE projects SET status = ?, updated_at = ? WHERE id = ?",
            (status, int(time()), project_id),
        )
    return get_project(conn, project_id)  # type: ignore[return-value]


def duplicate_project(
    conn: sqlite3.Connection,
    project_id: str,
    new_owner: str,
    name: Optional[str] = None,
) -> Project:
    """Copy *project_id* into a new draft owned by *new_owner*.

    The copy shares the source's content ids and latest snapshot, and records
    the source in ``derived_from``.

    Raises:
        ReferenceNotFoundError: If ``project_id`` does not exist.
    """
    source = require_project(conn, project_id)
    copy = create_project(
        conn,
        name=name or f"{source.name} (copy)",
        creator=source.creator,
        description=source.description,
        owner=new_owner,
        data_cid=source.data_cid,
        metadata_cid=source.metadata_cid,
        derived_from=source.id,
    )
    snapshot = latest_snapshot(conn, source.id)
    if snapshot is not None:
        add_snapshot(conn, copy.id, snapshot.snapshot)
    return copy


def delete_project(conn: sqlite3.Connection, project_id: str) -> None:
    """Delete a project (and its snapshots via CASCADE).

    This is a no-op if the project does not exist.
    """
    with conn:
        conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def add_snapshot(
    conn: sqlite3.Connection,
    project_id: str,
    document: dict[str, Any],
) -> Snapshot:
    """Store *document* as the next snapshot version of *project_id*."""
    require_project(conn, project_id)
    now = int(time())
    with conn:
        row = conn.execute(
            "SELECT COALESCE(MAX(version), 0) FROM project_snapshots WHERE project_id = ?",
            (project_id,),
        ).fetchone()
        version = row[0] + 1
        conn.execute(
            """
            INSERT INTO project_snapshots (project_id, version, snapshot, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (project_id, version, json.dumps(document), now),
        )
    return Snapshot(project_id=project_id, version=version, snapshot=document, created_at=now)


def latest_snapshot(conn: sqlite3.Connection, project_id: str) -> Optional[Snapshot]:
    row = conn.execute(
        """
        SELECT * FROM project_snapshots
         WHERE project_id = ?
         ORDER BY version DESC
         LIMIT 1
        """,
        (project_id,),
    ).fetchone()
    if row is None:
        return None
    return Snapshot(
        project_id=row["project_id"],
        version=row["version"],
        snapshot=json.loads(row["snapshot"]),
        created_at=row["created_at"],
    )


# ---------------------------------------------------------------------------
# Token metadata
# ---------------------------------------------------------------------------

def build_token_metadata(
    name: str,
    description: Optional[str],
    creator: str,
    data_cid: str,
) -> dict[str, Any]:
    """Return the NFT metadata document describing a saved graph."""
    return {
        "name": name,
        "description": description or "",
        "image": "",
        "external_url": gateway_url(data_cid),
        "attributes": [
            {"trait_type": "Creator", "value": creator},
            {"trait_type": "Data CID", "value": data_cid},
            {"trait_type": "Created At", "value": datetime.now(timezone.utc).isoformat()},
        ],
    }
