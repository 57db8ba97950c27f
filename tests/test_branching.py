"""Tests for BranchEngine: forking conversations."""

from __future__ import annotations

import random

import pytest

from forkgraph.errors import ReferenceNotFoundError
from forkgraph.graph.branching import BranchEngine
from forkgraph.graph.factory import NodeFactory
from forkgraph.graph.messages import MessageAppender
from forkgraph.graph.models import Position
from forkgraph.graph.store import GraphStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def store() -> GraphStore:
    return GraphStore()


@pytest.fixture()
def factory(store: GraphStore) -> NodeFactory:
    return NodeFactory(store, default_model="llama-3.1-8b-instant")


@pytest.fixture()
def engine(factory: NodeFactory) -> BranchEngine:
    return BranchEngine(factory, offset_x=450, jitter_y=200, rng=random.Random(7))


@pytest.fixture()
def appender(store: GraphStore) -> MessageAppender:
    return MessageAppender(store)


@pytest.fixture()
def chatted(factory: NodeFactory, appender: MessageAppender) -> str:
    """A root node holding one user/assistant exchange."""
    nid = factory.create_root(Position(100, 100))
    appender.append_user_message(nid, "What is photosynthesis?")
    appender.append_message(nid, "assistant", "It converts light into chemical energy.")
    return nid


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestForkCopy:
    def test_child_copies_parent_messages(
        self, store: GraphStore, engine: BranchEngine, chatted: str
    ) -> None:
        result = engine.fork(chatted)
        parent = store.get(chatted)
        child = store.get(result.node_id)

        assert child.parent_id == chatted
        assert child.messages == parent.messages
        assert child.messages is not parent.messages
        assert result.draft == ""
        assert not result.from_selection

    def test_fork_isolation(
        self,
        store: GraphStore,
        engine: BranchEngine,
        appender: MessageAppender,
        chatted: str,
    ) -> None:
        child_id = engine.fork(chatted).node_id

        appender.append_user_message(child_id, "Only in the child")
        assert len(store.get(chatted).messages) == 2
        assert len(store.get(child_id).messages) == 3

        appender.append_user_message(chatted, "Only in the parent")
        assert len(store.get(chatted).messages) == 3
        assert len(store.get(child_id).messages) == 3
        assert [m.content for m in store.get(child_id).messages][-1] == "Only in the child"
        assert [m.content for m in store.get(chatted).messages][-1] == "Only in the parent"

    def test_child_inherits_model(
        self, store: GraphStore, factory: NodeFactory, engine: BranchEngine
    ) -> None:
        root = factory.create_root(Position(0, 0), model="gemma2-9b-it")
        child = engine.fork(root).node_id
        assert store.get(child).model == "gemma2-9b-it"


class TestForkSelection:
    def test_selection_starts_empty_with_draft(
        self, store: GraphStore, engine: BranchEngine, chatted: str
    ) -> None:
        result = engine.fork(chatted, selected_text="  chemical energy  ")
        child = store.get(result.node_id)

        assert child.messages == []
        assert result.draft == "chemical energy"
        assert result.from_selection
        assert store.draft(result.node_id) == "chemical energy"

    def test_blank_selection_is_a_plain_fork(
        self, store: GraphStore, engine: BranchEngine, chatted: str
    ) -> None:
        result = engine.fork(chatted, selected_text="   ")
        assert len(store.get(result.node_id).messages) == 2
        assert store.draft(result.node_id) == ""


class TestPlacement:
    def test_default_position_is_offset_right_with_jitter(
        self, store: GraphStore, engine: BranchEngine, chatted: str
    ) -> None:
        child = store.get(engine.fork(chatted).node_id)
        assert child.position.x == 550
        assert 0 <= child.position.y <= 200

    def test_explicit_position_wins(
        self, store: GraphStore, engine: BranchEngine, chatted: str
    ) -> None:
        child = store.get(engine.fork(chatted, position=Position(1, 2)).node_id)
        assert child.position == Position(1, 2)


class TestScenarios:
    def test_root_plus_two_forks(
        self,
        store: GraphStore,
        factory: NodeFactory,
        engine: BranchEngine,
        appender: MessageAppender,
    ) -> None:
        root = factory.create_root(Position(400, 250))
        appender.append_user_message(root, "What is photosynthesis?")
        appender.append_message(root, "assistant", "Photosynthesis is how plants turn light into sugar.")
        assert len(store.get(root).messages) == 2

        a = engine.fork(root).node_id
        child_a = store.get(a)
        assert child_a.parent_id == root
        assert len(child_a.messages) == 2
        assert child_a.messages == store.get(root).messages
        assert child_a.position.x == 850
        assert 150 <= child_a.position.y <= 350
        assert [(e.source, e.target) for e in store.edges()] == [(root, a)]

        b = engine.fork(root, selected_text="chlorophyll").node_id
        child_b = store.get(b)
        assert child_b.parent_id == root
        assert child_b.messages == []
        assert store.draft(b) == "chlorophyll"

        assert len(store) == 3
        assert len(store.edges()) == 2
        assert {(e.source, e.target) for e in store.edges()} == {(root, a), (root, b)}
        assert len({root, a, b}) == 3

    def test_unknown_source_raises(self, store: GraphStore, engine: BranchEngine) -> None:
        with pytest.raises(ReferenceNotFoundError):
            engine.fork("node-missing")
        assert len(store) == 0
