"""Tests for GraphController: command dispatch and streamed replies."""

from __future__ import annotations

import random
from typing import Any, AsyncIterator, Callable, Optional

import pytest

from forkgraph.errors import (
    CollaboratorError,
    ReferenceNotFoundError,
    SchemaVersionError,
    ValidationError,
)
from forkgraph.graph.controller import Command, GraphController
from forkgraph.graph.models import Position


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeInference:
    """Yields fixed deltas; optionally runs a hook or raises midway."""

    def __init__(
        self,
        deltas: list[str],
        fail_after: Optional[int] = None,
        on_delta: Optional[Callable[[int], None]] = None,
        error: Exception = CollaboratorError("upstream 500"),
    ) -> None:
        self.deltas = deltas
        self.fail_after = fail_after
        self.on_delta = on_delta
        self.error = error
        self.calls: list[tuple[list[dict[str, Any]], str]] = []

    async def stream(self, messages: list[dict[str, Any]], model: str) -> AsyncIterator[str]:
        self.calls.append((messages, model))
        for i, delta in enumerate(self.deltas):
            if self.fail_after is not None and i == self.fail_after:
                raise self.error
            if self.on_delta is not None:
                self.on_delta(i)
            yield delta


def _controller(inference: Any = None) -> GraphController:
    return GraphController(
        inference=inference,
        default_model="llama-3.1-8b-instant",
        rng=random.Random(1),
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestDispatch:
    def test_new_returns_view(self) -> None:
        c = _controller()
        result = c.dispatch(Command("new", payload={"position": {"x": 5, "y": 6}}))
        assert result.ok
        assert result.node_id in c.store
        assert len(result.view.nodes) == 1
        assert c.get(result.node_id).position == Position(5, 6)

    def test_new_without_position_picks_one(self) -> None:
        c = _controller()
        nid = c.new_conversation()
        pos = c.get(nid).position
        assert 0 <= pos.x < 400
        assert 0 <= pos.y < 400

    def test_fork_and_send(self) -> None:
        c = _controller()
        root = c.dispatch(Command("new")).node_id
        c.dispatch(Command("send", root, {"content": "hello"}))
        fork = c.dispatch(Command("fork", root, {"selected_text": "hello"}))

        assert fork.ok
        assert fork.data.draft == "hello"
        assert c.store.draft(fork.node_id) == "hello"
        assert len(fork.view.edges) == 1

    def test_send_clears_draft(self) -> None:
        c = _controller()
        root = c.new_conversation()
        child = c.fork(root, selected_text="quoted").node_id
        c.send(child, "quoted")
        assert c.store.draft(child) == ""

    def test_errors_become_notices(self) -> None:
        c = _controller()
        result = c.dispatch(Command("fork", "node-missing"))
        assert not result.ok
        assert isinstance(result.error, ReferenceNotFoundError)
        assert "node-missing" in result.notice

    def test_blank_message_notice(self) -> None:
        c = _controller()
        root = c.new_conversation()
        result = c.dispatch(Command("send", root, {"content": "   "}))
        assert not result.ok
        assert isinstance(result.error, ValidationError)
        assert c.get(root).messages == []

    def test_unknown_op(self) -> None:
        result = _controller().dispatch(Command("explode"))
        assert not result.ok
        assert "explode" in result.notice

    def test_missing_node_id(self) -> None:
        result = _controller().dispatch(Command("rename", payload={"title": "x"}))
        assert not result.ok
        assert isinstance(result.error, ValidationError)

    def test_invalid_position(self) -> None:
        c = _controller()
        root = c.new_conversation()
        result = c.dispatch(Command("move", root, {"position": {"x": "left"}}))
        assert not result.ok
        assert isinstance(result.error, ValidationError)


class TestUpdates:
    def test_rename_strips(self) -> None:
        c = _controller()
        root = c.new_conversation()
        assert c.rename(root, "  Photosynthesis ").title == "Photosynthesis"

    def test_rename_blank_rejected(self) -> None:
        c = _controller()
        root = c.new_conversation()
        with pytest.raises(ValidationError):
            c.rename(root, "  ")

    def test_set_model_must_be_known(self) -> None:
        c = _controller()
        root = c.new_conversation()
        c.set_model(root, "gemma2-9b-it")
        assert c.get(root).model == "gemma2-9b-it"
        with pytest.raises(ValidationError):
            c.set_model(root, "gpt-99")

    def test_update_is_all_or_nothing(self) -> None:
        c = _controller()
        root = c.new_conversation(Position(0, 0))
        with pytest.raises(ValidationError):
            c.update(root, title="New", model="not-a-model")
        node = c.get(root)
        assert node.title == "untitled1"
        assert node.model == "llama-3.1-8b-instant"

    def test_move(self) -> None:
        c = _controller()
        root = c.new_conversation(Position(0, 0))
        c.move(root, Position(9, 9))
        assert c.get(root).position == Position(9, 9)

    def test_new_with_unknown_model(self) -> None:
        with pytest.raises(ValidationError):
            _controller().new_conversation(model="gpt-99")


class TestImportExport:
    def test_export_import_equivalence(self) -> None:
        c = _controller()
        root = c.new_conversation()
        c.send(root, "Hello")
        c.fork(root)
        doc = c.export_document()

        other = _controller()
        other.import_document(doc)
        assert other.store.nodes() == c.store.nodes()
        assert len(other.store.edges()) == 1

    def test_import_bad_version_keeps_graph(self) -> None:
        c = _controller()
        root = c.new_conversation()
        doc = c.export_document()
        doc["version"] = "9.9.9"
        result = c.dispatch(Command("import", payload={"document": doc}))
        assert not result.ok
        assert isinstance(result.error, SchemaVersionError)
        assert root in c.store

    def test_reset(self) -> None:
        c = _controller()
        c.new_conversation()
        assert c.dispatch(Command("reset")).ok
        assert len(c.store) == 0


# ---------------------------------------------------------------------------
# Streamed replies
# ---------------------------------------------------------------------------

class TestStreamReply:
    async def test_generate_reply(self) -> None:
        inference = FakeInference(["Light", " into", " sugar"])
        c = _controller(inference)
        root = c.new_conversation(model="gemma2-9b-it")
        c.send(root, "What is photosynthesis?")

        message = await c.generate_reply(root)

        assert message is not None
        assert message.role == "assistant"
        assert message.content == "Light into sugar"
        assert [m.role for m in c.get(root).messages] == ["user", "assistant"]
        sent, model = inference.calls[0]
        assert sent == [{"role": "user", "content": "What is photosynthesis?"}]
        assert model == "gemma2-9b-it"

    async def test_stream_yields_deltas(self) -> None:
        c = _controller(FakeInference(["a", "b"]))
        root = c.new_conversation()
        c.send(root, "hi")
        deltas = [d async for d in c.stream_reply(root)]
        assert deltas == ["a", "b"]
        assert not c.messages.in_flight(root)

    async def test_reset_mid_stream_discards_reply(self) -> None:
        holder: dict[str, GraphController] = {}

        def _reset_on_second(i: int) -> None:
            if i == 1:
                holder["c"].reset()

        c = _controller(FakeInference(["a", "b", "c"], on_delta=_reset_on_second))
        holder["c"] = c
        root = c.new_conversation()
        c.send(root, "hi")

        message = await c.generate_reply(root)
        assert message is None
        assert len(c.store) == 0

    async def test_failure_rolls_back_partial_reply(self) -> None:
        c = _controller(FakeInference(["par", "tial", "x"], fail_after=2))
        root = c.new_conversation()
        c.send(root, "hi")

        with pytest.raises(CollaboratorError):
            await c.generate_reply(root)
        assert [m.role for m in c.get(root).messages] == ["user"]
        assert not c.messages.in_flight(root)

    async def test_unexpected_error_is_wrapped(self) -> None:
        c = _controller(FakeInference(["x"], fail_after=0, error=RuntimeError("boom")))
        root = c.new_conversation()
        c.send(root, "hi")
        with pytest.raises(CollaboratorError, match="boom"):
            await c.generate_reply(root)

    async def test_no_inference_client(self) -> None:
        c = _controller()
        root = c.new_conversation()
        with pytest.raises(CollaboratorError):
            await c.generate_reply(root)

    async def test_unknown_node(self) -> None:
        c = _controller(FakeInference(["x"]))
        with pytest.raises(ReferenceNotFoundError):
            await c.generate_reply("node-missing")

    async def test_empty_stream_returns_none_not_copied_reply(self) -> None:
        c = _controller(FakeInference([]))
        root = c.new_conversation()
        c.send(root, "q")
        c.messages.append_message(root, "assistant", "old answer")
        child = c.fork(root).node_id

        assert await c.generate_reply(child) is None
        assert [m.content for m in c.get(child).messages] == ["q", "old answer"]

    async def test_returns_own_turn_message(self) -> None:
        c = _controller(FakeInference(["new"]))
        root = c.new_conversation()
        c.send(root, "q")
        c.messages.append_message(root, "assistant", "old answer")
        c.send(root, "again")

        message = await c.generate_reply(root)
        assert message.content == "new"
        assert message is c.get(root).messages[-1]

    async def test_rename_mid_stream_keeps_single_reply(self) -> None:
        holder: dict[str, Any] = {}

        def _rename_on_first(i: int) -> None:
            if i == 1:
                holder["c"].rename(holder["node"], "Plants")

        c = _controller(FakeInference(["a", "b", "c"], on_delta=_rename_on_first))
        root = c.new_conversation()
        holder.update(c=c, node=root)
        c.send(root, "hi")

        message = await c.generate_reply(root)
        node = c.get(root)
        assert node.title == "Plants"
        assert [m.role for m in node.messages] == ["user", "assistant"]
        assert message.content == "abc"
