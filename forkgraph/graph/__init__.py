"""Conversation-graph core.

Public re-exports so callers can write::

    from forkgraph.graph import GraphController, GraphStore
    from forkgraph.graph import serializer
"""

from forkgraph.graph.branching import BranchEngine, ForkResult
from forkgraph.graph.controller import Command, CommandResult, GraphController
from forkgraph.errors import (
    CollaboratorError,
    GraphError,
    ReferenceNotFoundError,
    SchemaVersionError,
    ValidationError,
)
from forkgraph.graph.factory import NodeFactory
from forkgraph.graph.messages import MessageAppender, PendingTurn
from forkgraph.graph.models import ConversationNode, Edge, GraphView, Message, Position
from forkgraph.graph.store import GraphStore
from forkgraph.graph import serializer

__all__ = [
    "BranchEngine",
    "CollaboratorError",
    "Command",
    "CommandResult",
    "ConversationNode",
    "Edge",
    "ForkResult",
    "GraphController",
    "GraphError",
    "GraphStore",
    "GraphView",
    "Message",
    "MessageAppender",
    "NodeFactory",
    "PendingTurn",
    "Position",
    "ReferenceNotFoundError",
    "SchemaVersionError",
    "ValidationError",
    "serializer",
]
