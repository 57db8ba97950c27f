"""Identifier generation for nodes, messages and attachments.

Ids are ``<prefix>-<uuid4 hex>`` so they stay readable in exported JSON and
never depend on wall-clock resolution.
"""

from __future__ import annotations

import uuid


def new_id(prefix: str) -> str:
    """Return a fresh, globally unique identifier such as ``node-3f2a...``."""
    return f"{prefix}-{uuid.uuid4().hex}"


def node_id() -> str:
    return new_id("node")


def message_id() -> str:
    return new_id("msg")


def edge_id(source_id: str, target_id: str) -> str:
    """Edge ids are derived from their endpoints; one edge per parent/child pair."""
    return f"edge-{source_id}-{target_id}"
