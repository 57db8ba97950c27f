"""In-memory source of truth for the conversation graph.

``GraphStore`` owns two mappings – node id → :class:`ConversationNode` and
edge id → :class:`Edge` – plus the transient per-node draft input.  Callers
outside :mod:`forkgraph.graph` read through it but mutate only via the
factory / branching / message components.

Every mutation recomputes a :class:`GraphView` and hands it to the
subscribed listeners, which is how a canvas keeps its visual nodes and
edges in step with the data.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from forkgraph.graph import ids
from forkgraph.graph.models import (
    ConversationNode,
    Edge,
    GraphSummary,
    GraphView,
    VisualNode,
)
from forkgraph.llm.catalog import get_model_info

logger = logging.getLogger(__name__)

Listener = Callable[[GraphView], None]


def _visual(node: ConversationNode) -> VisualNode:
    visible = [m for m in node.messages if m.role != "system"]
    return VisualNode(
        id=node.id,
        title=node.title,
        model=node.model,
        model_name=get_model_info(node.model).name,
        position=node.position,
        message_count=len(visible),
        preview=visible[-1].content if visible else None,
        parent_id=node.parent_id,
    )


class GraphStore:
    def __init__(self) -> None:
        self._nodes: dict[str, ConversationNode] = {}
        self._edges: dict[str, Edge] = {}
        self._drafts: dict[str, str] = {}
        self._listeners: list[Listener] = []
        self._batch_depth = 0
        self._dirty = False

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    def get(self, node_id: str) -> Optional[ConversationNode]:
        """Return the node, or ``None`` when it does not (or no longer) exist."""
        return self._nodes.get(node_id)

    def nodes(self) -> list[ConversationNode]:
        """All nodes in creation order."""
        return list(self._nodes.values())

    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    def children(self, node_id: str) -> list[ConversationNode]:
        return [n for n in self._nodes.values() if n.parent_id == node_id]

    def roots(self) -> list[ConversationNode]:
        return [n for n in self._nodes.values() if n.parent_id is None]

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[ConversationNode]:
        return iter(self.nodes())

    def view(self) -> GraphView:
        """Derive the visual graph from the current records."""
        return GraphView(
            nodes=tuple(_visual(n) for n in self._nodes.values()),
            edges=tuple(self._edges.values()),
        )

    def summary(self) -> GraphSummary:
        by_model: dict[str, int] = {}
        for n in self._nodes.values():
            by_model[n.model] = by_model.get(n.model, 0) + 1
        return GraphSummary(
            total_nodes=len(self._nodes),
            total_edges=len(self._edges),
            total_messages=sum(len(n.messages) for n in self._nodes.values()),
            by_model=by_model,
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def put(self, node: ConversationNode) -> None:
        """Insert or replace *node* by id and broadcast the new view."""
        self._nodes[node.id] = node
        self._notify()

    def add_edge(self, source_id: str, target_id: str) -> Optional[Edge]:
        """Link *source_id* → *target_id* if both nodes exist.

        Returns the edge, or ``None`` (with a logged warning) when either
        endpoint is missing.  Adding an existing edge again is a no-op that
        returns the stored edge.
        """
        missing = [i for i in (source_id, target_id) if i not in self._nodes]
        if missing:
            logger.warning("Edge %s -> %s skipped, node not found: %s",
                           source_id, target_id, ", ".join(missing))
            return None

        eid = ids.edge_id(source_id, target_id)
        if eid not in self._edges:
            self._edges[eid] = Edge(id=eid, source=source_id, target=target_id)
            self._notify()
        return self._edges[eid]

    def reset(self) -> None:
        """Drop every node, edge and draft."""
        self._nodes.clear()
        self._edges.clear()
        self._drafts.clear()
        self._notify()

    # ------------------------------------------------------------------
    # Draft input (uncommitted text shown in a node's input box)
    # ------------------------------------------------------------------
    def set_draft(self, node_id: str, text: str) -> None:
        if node_id in self._nodes:
            self._drafts[node_id] = text

    def draft(self, node_id: str) -> str:
        return self._drafts.get(node_id, "")

    def pop_draft(self, node_id: str) -> str:
        return self._drafts.pop(node_id, "")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Group several mutations so listeners see a single new view."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self._notify()

    def _notify(self) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        if not self._listeners:
            return
        view = self.view()
        for listener in list(self._listeners):
            listener(view)
