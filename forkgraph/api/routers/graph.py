"""Conversation-graph endpoints.

Routes
------
GET    /graph                           Canvas view: visual nodes, edges, totals
POST   /graph/nodes                     Start a new root conversation
GET    /graph/nodes/{node_id}           Full node record (messages + draft)
PATCH  /graph/nodes/{node_id}           Rename / switch model / move
POST   /graph/nodes/{node_id}/fork      Branch from a node (optionally from selected text)
POST   /graph/nodes/{node_id}/messages  Send a user message (SSE reply stream)
GET    /graph/export                    Serialized graph document
POST   /graph/import                    Replace the graph with a document
POST   /graph/reset                     Clear the graph

The graph lives in ``request.app.state.controller`` (one per process).  Every
handler is ``async`` so graph changes run on the event loop, interleaved only
at the ``await`` points of an in-flight reply stream.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel

from forkgraph.api.errors import http_error
from forkgraph.errors import GraphError
from forkgraph.graph.controller import GraphController
from forkgraph.graph.models import ConversationNode, GraphView, Position
from forkgraph.graph.serializer import edge_to_dict, message_to_dict, node_to_dict

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class PositionIn(BaseModel):
    x: float
    y: float

    def to_position(self) -> Position:
        return Position(x=self.x, y=self.y)


class NewNodeRequest(BaseModel):
    position: Optional[PositionIn] = None
    model: Optional[str] = None


class ForkRequest(BaseModel):
    position: Optional[PositionIn] = None
    selected_text: Optional[str] = None


class NodeUpdate(BaseModel):
    title: Optional[str] = None
    model: Optional[str] = None
    position: Optional[PositionIn] = None


class MessageRequest(BaseModel):
    content: str


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _controller(request: Request) -> GraphController:
    return request.app.state.controller


def _node_out(controller: GraphController, node: ConversationNode) -> dict[str, Any]:
    out = node_to_dict(node)
    out["draft"] = controller.store.draft(node.id)
    return out


def _view_out(view: GraphView) -> dict[str, Any]:
    return {
        "nodes": [
            {
                "id": v.id,
                "title": v.title,
                "model": v.model,
                "modelName": v.model_name,
                "position": {"x": v.position.x, "y": v.position.y},
                "messageCount": v.message_count,
                "preview": v.preview,
                "parentId": v.parent_id,
            }
            for v in view.nodes
        ],
        "edges": [edge_to_dict(e) for e in view.edges],
    }


def _sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("")
async def get_graph_endpoint(request: Request) -> dict[str, Any]:
    """Everything a canvas needs to draw the graph."""
    controller = _controller(request)
    out = _view_out(controller.store.view())
    summary = controller.store.summary()
    out["summary"] = {
        "totalNodes": summary.total_nodes,
        "totalEdges": summary.total_edges,
        "totalMessages": summary.total_messages,
        "byModel": summary.by_model,
    }
    return out


@router.post("/nodes", status_code=201)
async def create_node_endpoint(body: NewNodeRequest, request: Request) -> dict[str, Any]:
    """Create a new root conversation."""
    controller = _controller(request)
    position = body.position.to_position() if body.position else None
    try:
        node_id = controller.new_conversation(position, body.model)
    except GraphError as exc:
        raise http_error(exc) from exc
    return _node_out(controller, controller.get(node_id))


@router.get("/nodes/{node_id}")
async def get_node_endpoint(node_id: str, request: Request) -> dict[str, Any]:
    """Fetch a single node with its full message history."""
    controller = _controller(request)
    try:
        node = controller.get(node_id)
    except GraphError as exc:
        raise http_error(exc) from exc
    return _node_out(controller, node)


@router.patch("/nodes/{node_id}")
async def update_node_endpoint(node_id: str, body: NodeUpdate, request: Request) -> dict[str, Any]:
    """Apply any of ``title``, ``model`` and ``position`` to a node."""
    if body.title is None and body.model is None and body.position is None:
        raise HTTPException(status_code=422, detail="No fields provided to update.")

    controller = _controller(request)
    try:
        node = controller.update(
            node_id,
            title=body.title,
            model=body.model,
            position=body.position.to_position() if body.position else None,
        )
    except GraphError as exc:
        raise http_error(exc) from exc
    return _node_out(controller, node)


@router.post("/nodes/{node_id}/fork", status_code=201)
async def fork_node_endpoint(
    node_id: str,
    request: Request,
    body: Optional[ForkRequest] = None,
) -> dict[str, Any]:
    """Branch a new conversation off *node_id*.

    Without ``selected_text`` the child starts with a copy of the parent's
    messages; with it the child starts empty and the selection becomes its
    draft input.
    """
    controller = _controller(request)
    body = body or ForkRequest()
    position = body.position.to_position() if body.position else None
    try:
        result = controller.fork(node_id, position, body.selected_text)
    except GraphError as exc:
        raise http_error(exc) from exc
    return _node_out(controller, controller.get(result.node_id))


@router.post("/nodes/{node_id}/messages")
async def send_message_endpoint(
    node_id: str,
    body: MessageRequest,
    request: Request,
) -> StreamingResponse:
    """Append a user message and stream back the assistant reply as SSE.

    SSE event shapes::

        data: {"event": "token", "text": " ..."}
        data: {"event": "done",  "message": {...} | null}
        data: {"event": "error", "detail": "..."}
    """
    controller = _controller(request)
    try:
        controller.send(node_id, body.content)
    except GraphError as exc:
        raise http_error(exc) from exc

    return StreamingResponse(
        _reply_sse_generator(controller, node_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


async def _reply_sse_generator(controller: GraphController, node_id: str) -> AsyncIterator[str]:
    """Forward reply deltas as token frames, then a done or error frame."""
    try:
        turn = controller.begin_reply(node_id)
        async for delta in controller.run_reply(turn):
            yield _sse({"event": "token", "text": delta})
    except GraphError as exc:
        logger.warning("Reply for %s failed: %s", node_id, exc)
        yield _sse({"event": "error", "detail": str(exc)})
        return

    message = controller.reply_message(turn)
    yield _sse({"event": "done", "message": message_to_dict(message) if message else None})


@router.get("/export")
async def export_endpoint(request: Request) -> dict[str, Any]:
    """Return the versioned graph document."""
    return _controller(request).export_document()


@router.post("/import")
async def import_endpoint(request: Request, document: dict[str, Any] = Body(...)) -> dict[str, Any]:
    """Replace the whole graph with *document*.

    A rejected document leaves the current graph untouched.
    """
    controller = _controller(request)
    try:
        controller.import_document(document)
    except GraphError as exc:
        raise http_error(exc) from exc
    return await get_graph_endpoint(request)


@router.post("/reset", status_code=204, response_class=Response, response_model=None)
async def reset_endpoint(request: Request) -> Response:
    """Remove every node and edge (in-flight replies are discarded)."""
    _controller(request).reset()
    return Response(status_code=204)
