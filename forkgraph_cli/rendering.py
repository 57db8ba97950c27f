"""Utilities for rendering conversation graphs in the CLI."""

from __future__ import annotations

from typing import List

from forkgraph.graph.messages import visible_messages
from forkgraph.graph.models import ConversationNode
from forkgraph.graph.store import GraphStore
from forkgraph.llm.catalog import get_model_info


def short_id(node_id: str, length: int = 8) -> str:
    """``node-1a2b3c4d`` style abbreviation used in listings."""
    prefix, _, rest = node_id.partition("-")
    return f"{prefix}-{rest[:length]}" if rest else node_id[:length]


def _label(store: GraphStore, node: ConversationNode) -> str:
    count = len(visible_messages(node))
    draft = " ✏️" if store.draft(node.id) else ""
    return (
        f"💬 {node.title} [{short_id(node.id)}] "
        f"({get_model_info(node.model).name}, {count} msg{'s' if count != 1 else ''}){draft}"
    )


def render_tree(store: GraphStore) -> str:
    """Render every conversation in *store* as an ASCII forest.

    Roots are listed in creation order; each fork is drawn under its parent.
    """
    lines: List[str] = []

    def _render_node(node: ConversationNode, prefix: str, is_last: bool, is_root: bool) -> None:
        if is_root:
            lines.append(_label(store, node))
            child_prefix = ""
        else:
            connector = "└── " if is_last else "├── "
            lines.append(f"{prefix}{connector}{_label(store, node)}")
            child_prefix = prefix + ("    " if is_last else "│   ")

        children = sorted(store.children(node.id), key=lambda n: n.created_at)
        for i, child in enumerate(children):
            _render_node(child, child_prefix, i == len(children) - 1, False)

    for root in sorted(store.roots(), key=lambda n: n.created_at):
        _render_node(root, "", True, True)

    if not lines:
        return "(empty graph)"
    return "\n".join(lines)


def render_conversation(store: GraphStore, node: ConversationNode) -> str:
    """Render one node's header and visible messages."""
    info = get_model_info(node.model)
    lines = [
        f"💬 {node.title}",
        f"   ID: {node.id}",
        f"   Model: {info.name} ({node.model})",
    ]
    if node.parent_id:
        lines.append(f"   Forked from: {node.parent_id}")
    lines.append("-" * 40)

    messages = visible_messages(node)
    if not messages:
        lines.append("(no messages yet)")
    for m in messages:
        who = "🧑 You" if m.role == "user" else "🤖 Assistant"
        lines.append(f"{who}:")
        lines.append(m.content)
        lines.append("")

    draft = store.draft(node.id)
    if draft:
        lines.append(f"✏️  Draft: {draft}")
    return "\n".join(lines).rstrip()
