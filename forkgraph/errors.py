"""Error taxonomy shared by the graph core and its collaborators.

Every error is recoverable and scoped to the operation that raised it.  The
store is always left consistent because operations validate before they
mutate.
"""

from __future__ import annotations


class GraphError(Exception):
    """Base class for all forkgraph errors."""


class ReferenceNotFoundError(GraphError, ValueError):
    """An operation named a node (or project) that does not exist."""

    def __init__(self, node_id: str, kind: str = "Node") -> None:
        super().__init__(f"{kind} not found: {node_id!r}")
        self.node_id = node_id
        self.kind = kind


class ValidationError(GraphError, ValueError):
    """Empty or malformed user input (blank message, blank project name...)."""


class SchemaVersionError(GraphError, ValueError):
    """A serialized document carries a version this build cannot read."""

    def __init__(self, version: object) -> None:
        super().__init__(f"Unsupported document version: {version!r}")
        self.version = version


class CollaboratorError(GraphError, RuntimeError):
    """An external collaborator (inference, storage, registry) failed."""
