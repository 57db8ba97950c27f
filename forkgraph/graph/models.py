"""Dataclass models for the conversation graph.

These are plain Python objects – no callbacks, no view state.  Node records
are replaced wholesale on every mutation (see :mod:`forkgraph.graph.store`),
so the value types here are frozen and only :class:`ConversationNode` carries
mutable containers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Literal

Role = Literal["user", "assistant", "system"]
ROLES: tuple[str, ...] = ("user", "assistant", "system")


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass(frozen=True)
class Attachment:
    id: str
    name: str
    type: str
    url: str


@dataclass(frozen=True)
class Message:
    id: str
    role: Role
    content: str
    timestamp: int
    attachments: tuple[Attachment, ...] = ()


@dataclass
class ConversationNode:
    id: str
    title: str
    model: str
    messages: list[Message]
    parent_id: str | None
    position: Position
    created_at: int

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str


# ---------------------------------------------------------------------------
# Derived view model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VisualNode:
    """What a canvas needs to draw one conversation card."""

    id: str
    title: str
    model: str
    model_name: str
    position: Position
    message_count: int
    preview: str | None
    parent_id: str | None


@dataclass(frozen=True)
class GraphView:
    nodes: tuple[VisualNode, ...] = ()
    edges: tuple[Edge, ...] = ()


@dataclass
class GraphSummary:
    total_nodes: int = 0
    total_edges: int = 0
    total_messages: int = 0
    by_model: dict[str, int] = field(default_factory=dict)


def now_ms() -> int:
    """Current time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)
