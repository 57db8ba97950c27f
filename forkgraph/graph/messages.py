"""Appending messages to a node's history.

Messages are never edited in place.  A streamed assistant reply is tracked by
a :class:`PendingTurn` that remembers which message it last wrote; every new
chunk produces a fresh :class:`Message` (new id, full running content) that
replaces exactly that entry.

Turn lifecycle::

    appender.append_user_message(node_id, "What is photosynthesis?")
    for delta in stream:
        appender.append_assistant_chunk(node_id, appender.turn(node_id).feed(delta))
    appender.finish_turn(node_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional

from forkgraph.graph import ids
from forkgraph.errors import ReferenceNotFoundError, ValidationError
from forkgraph.graph.models import (
    ROLES,
    Attachment,
    ConversationNode,
    Message,
    Role,
    now_ms,
)
from forkgraph.graph.store import GraphStore

logger = logging.getLogger(__name__)


@dataclass
class PendingTurn:
    """Accumulator for one in-flight assistant reply on one node."""

    node_id: str
    content: str = ""
    message_id: Optional[str] = None
    cancelled: bool = False

    def feed(self, delta: str) -> str:
        """Add *delta* to the running content and return the new total."""
        self.content += delta
        return self.content


class MessageAppender:
    def __init__(self, store: GraphStore) -> None:
        self.store = store
        self._turns: dict[str, PendingTurn] = {}

    # ------------------------------------------------------------------
    # Complete messages
    # ------------------------------------------------------------------
    def append_message(
        self,
        node_id: str,
        role: Role,
        content: str,
        attachments: Iterable[Attachment] = (),
    ) -> Message:
        """Append a finished message of any role and return it.

        Raises:
            ValidationError: If *role* is unknown or *content* is blank.
            ReferenceNotFoundError: If *node_id* is not in the store.
        """
        if role not in ROLES:
            raise ValidationError(f"Unknown message role: {role!r}")
        if not content or not content.strip():
            raise ValidationError("Message content must not be empty.")
        node = self.store.get(node_id)
        if node is None:
            raise ReferenceNotFoundError(node_id)

        message = Message(
            id=ids.message_id(),
            role=role,
            content=content,
            timestamp=now_ms(),
            attachments=tuple(attachments),
        )
        self._put_messages(node, [*node.messages, message])
        return message

    def append_user_message(
        self,
        node_id: str,
        content: str,
        attachments: Iterable[Attachment] = (),
    ) -> Message:
        """Append the user's turn (content is stripped) and return it."""
        return self.append_message(node_id, "user", (content or "").strip(), attachments)

    # ------------------------------------------------------------------
    # Streamed assistant replies
    # ------------------------------------------------------------------
    def begin_turn(self, node_id: str) -> PendingTurn:
        """Start (or restart) the assistant turn for *node_id*."""
        if node_id not in self.store:
            raise ReferenceNotFoundError(node_id)
        turn = PendingTurn(node_id=node_id)
        self._turns[node_id] = turn
        return turn

    def turn(self, node_id: str) -> PendingTurn:
        """Return the pending turn for *node_id*, starting one if needed."""
        return self._turns.get(node_id) or self.begin_turn(node_id)

    def append_assistant_chunk(
        self,
        node_id: str,
        running_content: str,
        turn: Optional[PendingTurn] = None,
    ) -> Optional[Message]:
        """Show *running_content* as the current assistant reply on *node_id*.

        The previous partial message of the same turn is replaced by a new
        message object with a new id.  If the node disappeared (or the graph
        was reset) while the turn was in flight the chunk is dropped and
        ``None`` is returned.

        Raises:
            ReferenceNotFoundError: If there is no turn in flight and the node
                does not exist.
        """
        if turn is None:
            turn = self._turns.get(node_id) or self.begin_turn(node_id)
        if turn.cancelled:
            return None

        node = self.store.get(node_id)
        if node is None:
            logger.info("Dropping assistant chunk for vanished node %s", node_id)
            self._release(turn)
            turn.cancelled = True
            return None

        turn.content = running_content
        message = Message(
            id=ids.message_id(),
            role="assistant",
            content=running_content,
            timestamp=now_ms(),
        )
        messages = list(node.messages)
        index = _index_of(messages, turn.message_id)
        if index is None:
            messages.append(message)
        else:
            messages[index] = message
        turn.message_id = message.id
        self._put_messages(node, messages)
        return message

    def finish_turn(
        self,
        node_id: str,
        turn: Optional[PendingTurn] = None,
    ) -> Optional[Message]:
        """Close the turn and return its final message, if any was written."""
        turn = turn or self._turns.get(node_id)
        if turn is None:
            return None
        self._release(turn)
        if turn.cancelled or turn.message_id is None:
            return None
        node = self.store.get(node_id)
        if node is None:
            return None
        index = _index_of(node.messages, turn.message_id)
        return node.messages[index] if index is not None else None

    def abort_turn(self, node_id: str, turn: Optional[PendingTurn] = None) -> None:
        """Close the turn and remove its partial message from the node."""
        turn = turn or self._turns.get(node_id)
        if turn is None:
            return
        self._release(turn)
        turn.cancelled = True
        node = self.store.get(node_id)
        if node is None:
            return
        index = _index_of(node.messages, turn.message_id)
        if index is not None:
            messages = list(node.messages)
            del messages[index]
            self._put_messages(node, messages)

    def drop_turns(self) -> None:
        """Cancel every turn in flight; used when the whole graph is replaced."""
        for turn in self._turns.values():
            turn.cancelled = True
        self._turns.clear()

    def in_flight(self, node_id: str) -> bool:
        return node_id in self._turns

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _release(self, turn: PendingTurn) -> None:
        if self._turns.get(turn.node_id) is turn:
            del self._turns[turn.node_id]

    def _put_messages(self, node: ConversationNode, messages: list[Message]) -> None:
        self.store.put(replace(node, messages=messages))


def _index_of(messages: list[Message], message_id: Optional[str]) -> Optional[int]:
    if message_id is None:
        return None
    for i, m in enumerate(messages):
        if m.id == message_id:
            return i
    return None


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------

def visible_messages(node: ConversationNode) -> list[Message]:
    """Messages a user should see: everything except ``system`` entries."""
    return [m for m in node.messages if m.role != "system"]


def transcript(node: ConversationNode) -> str:
    """Plain-text copy of the visible conversation (``ROLE: content`` blocks)."""
    return "\n\n".join(f"{m.role.upper()}: {m.content}" for m in visible_messages(node))


def chat_payload(node: ConversationNode) -> list[dict[str, Any]]:
    """The ``{role, content}`` list sent to the inference collaborator."""
    return [{"role": m.role, "content": m.content} for m in node.messages]
