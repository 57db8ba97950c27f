"""Command dispatch over a single conversation graph.

The view layer never touches node records.  It sends a :class:`Command`
(``op``, ``node_id``, ``payload``) and gets back a :class:`CommandResult`
carrying either the outcome or a user-facing notice, plus the new
:class:`GraphView`.  Errors from the graph core never escape ``dispatch``.

Supported ops
-------------
``new``        payload: ``position`` (optional ``{"x", "y"}``), ``model``
``fork``       payload: ``position``, ``selected_text``
``send``       payload: ``content``
``rename``     payload: ``title``
``set_model``  payload: ``model``
``move``       payload: ``position``
``reset``      –
``import``     payload: ``document``

Assistant replies are asynchronous and go through :meth:`stream_reply` /
:meth:`generate_reply` (or :meth:`begin_reply` / :meth:`run_reply` when the
caller needs the finished message) instead of ``dispatch``.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Callable, Optional

from forkgraph.errors import (
    CollaboratorError,
    GraphError,
    ReferenceNotFoundError,
    ValidationError,
)
from forkgraph.graph import serializer
from forkgraph.graph.branching import BranchEngine, ForkResult
from forkgraph.graph.factory import NodeFactory
from forkgraph.graph.messages import MessageAppender, PendingTurn, chat_payload
from forkgraph.graph.models import ConversationNode, GraphView, Message, Position
from forkgraph.graph.store import GraphStore
from forkgraph.llm.catalog import is_known_model
from forkgraph.llm.groq import InferenceClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Command:
    op: str
    node_id: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class CommandResult:
    ok: bool
    op: str
    node_id: Optional[str] = None
    data: Any = None
    notice: str = ""
    error: Optional[GraphError] = None
    view: Optional[GraphView] = None


def _position(raw: Any) -> Optional[Position]:
    if raw is None or isinstance(raw, Position):
        return raw
    try:
        return Position(x=float(raw["x"]), y=float(raw["y"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid position: {raw!r}") from exc


class GraphController:
    def __init__(
        self,
        store: Optional[GraphStore] = None,
        inference: Optional[InferenceClient] = None,
        default_model: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store if store is not None else GraphStore()
        self.factory = NodeFactory(self.store, default_model)
        self._rng = rng or random.Random()
        self.branches = BranchEngine(self.factory, rng=self._rng)
        self.messages = MessageAppender(self.store)
        self.inference = inference

        self._handlers: dict[str, Callable[[Command], tuple[Optional[str], Any]]] = {
            "new": self._op_new,
            "fork": self._op_fork,
            "send": self._op_send,
            "rename": self._op_rename,
            "set_model": self._op_set_model,
            "move": self._op_move,
            "reset": self._op_reset,
            "import": self._op_import,
        }

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def dispatch(self, command: Command) -> CommandResult:
        """Run *command* and report the outcome without raising."""
        handler = self._handlers.get(command.op)
        if handler is None:
            return CommandResult(ok=False, op=command.op, node_id=command.node_id,
                                 notice=f"Unknown command: {command.op!r}",
                                 view=self.store.view())
        try:
            node_id, data = handler(command)
        except GraphError as exc:
            logger.info("Command %s on %s rejected: %s", command.op, command.node_id, exc)
            return CommandResult(ok=False, op=command.op, node_id=command.node_id,
                                 notice=str(exc), error=exc, view=self.store.view())
        return CommandResult(ok=True, op=command.op, node_id=node_id, data=data,
                             view=self.store.view())

    def _op_new(self, cmd: Command) -> tuple[Optional[str], Any]:
        nid = self.new_conversation(_position(cmd.payload.get("position")),
                                    cmd.payload.get("model"))
        return nid, None

    def _op_fork(self, cmd: Command) -> tuple[Optional[str], Any]:
        result = self.fork(self._require_id(cmd),
                           _position(cmd.payload.get("position")),
                           cmd.payload.get("selected_text"))
        return result.node_id, result

    def _op_send(self, cmd: Command) -> tuple[Optional[str], Any]:
        message = self.send(self._require_id(cmd), cmd.payload.get("content", ""))
        return cmd.node_id, message

    def _op_rename(self, cmd: Command) -> tuple[Optional[str], Any]:
        node = self.rename(self._require_id(cmd), cmd.payload.get("title", ""))
        return node.id, node

    def _op_set_model(self, cmd: Command) -> tuple[Optional[str], Any]:
        node = self.set_model(self._require_id(cmd), cmd.payload.get("model", ""))
        return node.id, node

    def _op_move(self, cmd: Command) -> tuple[Optional[str], Any]:
        position = _position(cmd.payload.get("position"))
        if position is None:
            raise ValidationError("A position is required.")
        node = self.move(self._require_id(cmd), position)
        return node.id, node

    def _op_reset(self, cmd: Command) -> tuple[Optional[str], Any]:
        self.reset()
        return None, None

    def _op_import(self, cmd: Command) -> tuple[Optional[str], Any]:
        self.import_document(cmd.payload.get("document"))
        return None, self.store.summary()

    @staticmethod
    def _require_id(cmd: Command) -> str:
        if not cmd.node_id:
            raise ValidationError(f"Command {cmd.op!r} needs a node id.")
        return cmd.node_id

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def get(self, node_id: str) -> ConversationNode:
        node = self.store.get(node_id)
        if node is None:
            raise ReferenceNotFoundError(node_id)
        return node

    def new_conversation(
        self,
        position: Optional[Position] = None,
        model: Optional[str] = None,
    ) -> str:
        if model is not None and not is_known_model(model):
            raise ValidationError(f"Unknown model: {model!r}")
        where = position or Position(x=self._rng.random() * 400, y=self._rng.random() * 400)
        return self.factory.create_root(where, model)

    def fork(
        self,
        source_id: str,
        position: Optional[Position] = None,
        selected_text: Optional[str] = None,
    ) -> ForkResult:
        return self.branches.fork(source_id, position, selected_text)

    def send(self, node_id: str, content: str) -> Message:
        """Commit the user's input on *node_id* and clear its draft."""
        message = self.messages.append_user_message(node_id, content)
        self.store.pop_draft(node_id)
        return message

    def rename(self, node_id: str, title: str) -> ConversationNode:
        return self.update(node_id, title=title or "")

    def set_model(self, node_id: str, model: str) -> ConversationNode:
        return self.update(node_id, model=model or "")

    def move(self, node_id: str, position: Position) -> ConversationNode:
        return self._update(node_id, position=position)

    def update(
        self,
        node_id: str,
        title: Optional[str] = None,
        model: Optional[str] = None,
        position: Optional[Position] = None,
    ) -> ConversationNode:
        """Apply several field changes at once; nothing changes if any is invalid."""
        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = title.strip()
            if not changes["title"]:
                raise ValidationError("Title must not be empty.")
        if model is not None:
            if not is_known_model(model):
                raise ValidationError(f"Unknown model: {model!r}")
            changes["model"] = model
        if position is not None:
            changes["position"] = position
        if not changes:
            return self.get(node_id)
        return self._update(node_id, **changes)

    def reset(self) -> None:
        self.messages.drop_turns()
        self.store.reset()

    def export_document(self) -> dict[str, Any]:
        return serializer.serialize_store(self.store)

    def import_document(self, document: Any) -> None:
        """Replace the graph with *document*; the graph is untouched on error."""
        nodes, edges = serializer.deserialize(document)
        self.messages.drop_turns()
        serializer.replace_contents(self.store, nodes, edges)
        logger.info("Imported graph with %d nodes and %d edges", len(nodes), len(edges))

    def _update(self, node_id: str, **changes: Any) -> ConversationNode:
        node = self.get(node_id)
        updated = replace(node, **changes)
        self.store.put(updated)
        return updated

    # ------------------------------------------------------------------
    # Assistant replies
    # ------------------------------------------------------------------
    def begin_reply(self, node_id: str) -> PendingTurn:
        """Open an assistant turn on *node_id*; drive it with :meth:`run_reply`."""
        if self.inference is None:
            raise CollaboratorError("No inference client configured.")
        self.get(node_id)
        return self.messages.begin_turn(node_id)

    async def run_reply(self, turn: PendingTurn) -> AsyncIterator[str]:
        """Stream the model's reply for *turn*, yielding text deltas.

        Each delta is merged into the node's *current* record.  If the node
        is removed (reset / import) mid-stream the remaining output is
        discarded.  On collaborator failure the partial reply is removed and
        the error is re-raised.
        """
        node_id = turn.node_id
        node = self.get(node_id)
        try:
            async for delta in self.inference.stream(chat_payload(node), node.model):
                turn.feed(delta)
                if self.messages.append_assistant_chunk(node_id, turn.content, turn) is None:
                    logger.info("Reply for %s abandoned; node no longer exists", node_id)
                    break
                yield delta
        except CollaboratorError:
            self.messages.abort_turn(node_id, turn)
            raise
        except Exception as exc:  # noqa: BLE001
            self.messages.abort_turn(node_id, turn)
            raise CollaboratorError(f"Inference stream failed: {exc}") from exc
        finally:
            self.messages.finish_turn(node_id, turn)

    def reply_message(self, turn: PendingTurn) -> Optional[Message]:
        """The message *turn* wrote, or ``None`` if it was empty or abandoned."""
        return self.messages.finish_turn(turn.node_id, turn)

    async def stream_reply(self, node_id: str) -> AsyncIterator[str]:
        """Ask the model bound to *node_id* for a reply, yielding text deltas."""
        turn = self.begin_reply(node_id)
        async for delta in self.run_reply(turn):
            yield delta

    async def generate_reply(self, node_id: str) -> Optional[Message]:
        """Run a reply to completion and return the message this turn wrote."""
        turn = self.begin_reply(node_id)
        async for _ in self.run_reply(turn):
            pass
        return self.reply_message(turn)
