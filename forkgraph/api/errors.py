"""Translate graph errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException

from forkgraph.errors import (
    CollaboratorError,
    GraphError,
    ReferenceNotFoundError,
    SchemaVersionError,
    ValidationError,
)

# Checked in order; the first matching class wins.
_STATUS_BY_ERROR: list[tuple[type[GraphError], int]] = [
    (ReferenceNotFoundError, 404),
    (SchemaVersionError, 400),
    (ValidationError, 422),
    (CollaboratorError, 502),
]


def status_for(exc: GraphError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 400


def http_error(exc: GraphError) -> HTTPException:
    """Return the :class:`HTTPException` to raise for *exc*."""
    return HTTPException(status_code=status_for(exc), detail=str(exc))
