"""Forking a conversation node into a new child branch."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from forkgraph.config import settings
from forkgraph.errors import ReferenceNotFoundError
from forkgraph.graph.factory import NodeFactory
from forkgraph.graph.models import ConversationNode, Position

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForkResult:
    node_id: str
    parent_id: str
    draft: str = ""

    @property
    def from_selection(self) -> bool:
        return bool(self.draft)


class BranchEngine:
    def __init__(
        self,
        factory: NodeFactory,
        offset_x: Optional[float] = None,
        jitter_y: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.factory = factory
        self.store = factory.store
        self.offset_x = settings.fork_offset_x if offset_x is None else offset_x
        self.jitter_y = settings.fork_jitter_y if jitter_y is None else jitter_y
        self._rng = rng or random.Random()

    def placement(self, source: ConversationNode) -> Position:
        """Default spot for a fork: to the right of *source*, jittered vertically."""
        return Position(
            x=source.position.x + self.offset_x,
            y=source.position.y + (self._rng.random() - 0.5) * self.jitter_y,
        )

    def fork(
        self,
        source_id: str,
        position: Optional[Position] = None,
        selected_text: Optional[str] = None,
    ) -> ForkResult:
        """Create a child of *source_id*.

        Without a selection the child continues the conversation: it starts
        with a copy of the source's messages.  With a non-blank selection the
        child starts empty and the selected text becomes its draft input.

        Raises:
            ReferenceNotFoundError: If *source_id* is not in the store.
        """
        source = self.store.get(source_id)
        if source is None:
            raise ReferenceNotFoundError(source_id)

        selection = (selected_text or "").strip()
        seed = [] if selection else list(source.messages)
        where = position or self.placement(source)

        with self.store.batch():
            child_id = self.factory.create_child(source_id, where, seed)
            if selection:
                self.store.set_draft(child_id, selection)

        logger.info("Forked %s -> %s (%s)", source_id, child_id,
                    "selection" if selection else f"{len(seed)} messages")
        return ForkResult(node_id=child_id, parent_id=source_id, draft=selection)
