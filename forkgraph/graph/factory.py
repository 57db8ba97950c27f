"""Construction of new conversation nodes (roots and children)."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from forkgraph.config import settings
from forkgraph.graph import ids
from forkgraph.errors import ReferenceNotFoundError
from forkgraph.graph.models import ConversationNode, Message, Position, now_ms
from forkgraph.graph.store import GraphStore

logger = logging.getLogger(__name__)


class NodeFactory:
    """Creates nodes with fresh ids, default titles and default model."""

    def __init__(self, store: GraphStore, default_model: Optional[str] = None) -> None:
        self.store = store
        self.default_model = default_model or settings.default_model

    def _next_title(self) -> str:
        return f"untitled{len(self.store) + 1}"

    def _build(
        self,
        parent_id: Optional[str],
        position: Position,
        messages: list[Message],
        model: Optional[str],
    ) -> ConversationNode:
        return ConversationNode(
            id=ids.node_id(),
            title=self._next_title(),
            model=model or self.default_model,
            messages=messages,
            parent_id=parent_id,
            position=position,
            created_at=now_ms(),
        )

    def create_root(self, position: Position, model: Optional[str] = None) -> str:
        """Insert a parentless, empty node at *position* and return its id."""
        node = self._build(None, position, [], model)
        self.store.put(node)
        logger.debug("Created root node %s", node.id)
        return node.id

    def create_child(
        self,
        parent_id: str,
        position: Position,
        initial_messages: Iterable[Message] = (),
        model: Optional[str] = None,
    ) -> str:
        """Insert a child of *parent_id* seeded with *initial_messages*.

        The child gets its own list; the parent's model is inherited unless
        *model* is given.

        Raises:
            ReferenceNotFoundError: If *parent_id* is not in the store.
        """
        parent = self.store.get(parent_id)
        if parent is None:
            raise ReferenceNotFoundError(parent_id)

        node = self._build(parent_id, position, list(initial_messages), model or parent.model)
        with self.store.batch():
            self.store.put(node)
            self.store.add_edge(parent_id, node.id)
        logger.debug("Created child node %s of %s", node.id, parent_id)
        return node.id
