"""Versioned document format for a whole conversation graph.

The document is what gets exported to a file, uploaded to content-addressed
storage and snapshotted in the project registry::

    {
        "version": "1.0.0",
        "exportedAt": "2025-01-01T12:00:00+00:00",
        "nodes": [{"id": ..., "title": ..., "model": ..., "messages": [...],
                   "parentId": ..., "position": {"x": ..., "y": ...},
                   "createdAt": ...}],
        "edges": [{"id": ..., "source": ..., "target": ...}],
        "metadata": {"totalNodes": 3, "totalEdges": 2, "totalMessages": 2}
    }
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Literal, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from forkgraph.errors import SchemaVersionError, ValidationError
from forkgraph.graph.models import (
    Attachment,
    ConversationNode,
    Edge,
    Message,
    Position,
)
from forkgraph.graph.store import GraphStore

SCHEMA_VERSION = "1.0.0"
SUPPORTED_VERSIONS = frozenset({SCHEMA_VERSION})


# ---------------------------------------------------------------------------
# Pydantic schemas (wire format)
# ---------------------------------------------------------------------------

class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AttachmentDoc(_Wire):
    id: str
    name: str
    type: str
    url: str


class MessageDoc(_Wire):
    id: str
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: int
    attachments: Optional[list[AttachmentDoc]] = None


class PositionDoc(_Wire):
    x: float
    y: float


class NodeDoc(_Wire):
    id: str
    title: str
    model: str
    messages: list[MessageDoc]
    parent_id: Optional[str] = Field(alias="parentId")
    position: PositionDoc
    created_at: int = Field(alias="createdAt")


class EdgeDoc(_Wire):
    id: str
    source: str
    target: str


class MetadataDoc(_Wire):
    total_nodes: int = Field(alias="totalNodes")
    total_edges: int = Field(alias="totalEdges")
    total_messages: int = Field(alias="totalMessages")


class GraphDocument(_Wire):
    version: str
    exported_at: str = Field(alias="exportedAt")
    nodes: list[NodeDoc]
    edges: list[EdgeDoc]
    metadata: Optional[MetadataDoc] = None


# ---------------------------------------------------------------------------
# Model <-> wire conversion
# ---------------------------------------------------------------------------

def message_to_dict(m: Message) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": m.id,
        "role": m.role,
        "content": m.content,
        "timestamp": m.timestamp,
    }
    if m.attachments:
        out["attachments"] = [
            {"id": a.id, "name": a.name, "type": a.type, "url": a.url}
            for a in m.attachments
        ]
    return out


def node_to_dict(node: ConversationNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "title": node.title,
        "model": node.model,
        "messages": [message_to_dict(m) for m in node.messages],
        "parentId": node.parent_id,
        "position": {"x": node.position.x, "y": node.position.y},
        "createdAt": node.created_at,
    }


def edge_to_dict(edge: Edge) -> dict[str, Any]:
    return {"id": edge.id, "source": edge.source, "target": edge.target}


def _node_from_doc(doc: NodeDoc) -> ConversationNode:
    return ConversationNode(
        id=doc.id,
        title=doc.title,
        model=doc.model,
        messages=[
            Message(
                id=m.id,
                role=m.role,
                content=m.content,
                timestamp=m.timestamp,
                attachments=tuple(
                    Attachment(id=a.id, name=a.name, type=a.type, url=a.url)
                    for a in (m.attachments or [])
                ),
            )
            for m in doc.messages
        ],
        parent_id=doc.parent_id,
        position=Position(x=doc.position.x, y=doc.position.y),
        created_at=doc.created_at,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def serialize(
    nodes: Iterable[ConversationNode],
    edges: Iterable[Edge],
) -> dict[str, Any]:
    """Return the JSON-ready document for *nodes* and *edges*."""
    node_list = list(nodes)
    edge_list = list(edges)
    return {
        "version": SCHEMA_VERSION,
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "nodes": [node_to_dict(n) for n in node_list],
        "edges": [edge_to_dict(e) for e in edge_list],
        "metadata": {
            "totalNodes": len(node_list),
            "totalEdges": len(edge_list),
            "totalMessages": sum(len(n.messages) for n in node_list),
        },
    }


def serialize_store(store: GraphStore) -> dict[str, Any]:
    return serialize(store.nodes(), store.edges())


def deserialize(document: Any) -> tuple[list[ConversationNode], list[Edge]]:
    """Rebuild nodes and edges from a document produced by :func:`serialize`.

    Raises:
        SchemaVersionError: If the document's ``version`` is not supported.
        ValidationError: If the document is malformed or its edges, ids or
            parent links are inconsistent.
    """
    if not isinstance(document, dict):
        raise ValidationError("Graph document must be a JSON object.")
    version = document.get("version")
    if not isinstance(version, str) or version not in SUPPORTED_VERSIONS:
        raise SchemaVersionError(version)

    try:
        doc = GraphDocument.model_validate(document)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Malformed graph document: {exc}") from exc

    nodes = [_node_from_doc(n) for n in doc.nodes]
    edges = [Edge(id=e.id, source=e.source, target=e.target) for e in doc.edges]
    _check_consistency(nodes, edges)
    return nodes, edges


def _check_consistency(nodes: list[ConversationNode], edges: list[Edge]) -> None:
    node_ids: set[str] = set()
    for n in nodes:
        if n.id in node_ids:
            raise ValidationError(f"Duplicate node id: {n.id!r}")
        node_ids.add(n.id)
        msg_ids = [m.id for m in n.messages]
        if len(msg_ids) != len(set(msg_ids)):
            raise ValidationError(f"Duplicate message id in node {n.id!r}")

    for n in nodes:
        if n.parent_id is not None and n.parent_id not in node_ids:
            raise ValidationError(f"Node {n.id!r} references missing parent {n.parent_id!r}")

    expected = {(n.parent_id, n.id) for n in nodes if n.parent_id is not None}
    actual = {(e.source, e.target) for e in edges}
    if len(actual) != len(edges) or actual != expected:
        raise ValidationError("Edges do not match the nodes' parent links.")


def load_into(store: GraphStore, document: Any) -> None:
    """Replace the contents of *store* with *document*.

    The document is fully validated first, so a rejected import leaves the
    store exactly as it was.
    """
    nodes, edges = deserialize(document)
    replace_contents(store, nodes, edges)


def replace_contents(
    store: GraphStore,
    nodes: list[ConversationNode],
    edges: list[Edge],
) -> None:
    """Reset *store* and re-insert already-validated *nodes* and *edges*."""
    with store.batch():
        store.reset()
        for node in nodes:
            store.put(node)
        for edge in edges:
            store.add_edge(edge.source, edge.target)


def dumps(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2)


def loads(text: str) -> dict[str, Any]:
    """Parse JSON *text*; malformed JSON is reported as a :class:`ValidationError`."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("Graph document must be a JSON object.")
    return data
