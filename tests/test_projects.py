"""Tests for saving and reopening graphs as projects."""

from __future__ import annotations

import json
import sqlite3
from typing import Generator
from unittest.mock import MagicMock

import pytest

from forkgraph import projects as project_service
from forkgraph.db.connection import get_connection
from forkgraph.db.migrations import init_db
from forkgraph.db.projects import create_project, latest_snapshot, list_projects
from forkgraph.errors import (
    CollaboratorError,
    ReferenceNotFoundError,
    SchemaVersionError,
    ValidationError,
)
from forkgraph.graph import serializer
from forkgraph.graph.controller import GraphController
from forkgraph.storage.local import LocalContentStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def blobs(tmp_path) -> LocalContentStore:
    return LocalContentStore(tmp_path / "blobs")


@pytest.fixture()
def controller() -> GraphController:
    c = GraphController(default_model="llama-3.1-8b-instant")
    root = c.new_conversation()
    c.send(root, "What is photosynthesis?")
    c.fork(root)
    return c


# ---------------------------------------------------------------------------
# save_project
# ---------------------------------------------------------------------------

class TestSaveProject:
    def test_save_records_cids_and_snapshot(
        self, conn: sqlite3.Connection, controller: GraphController, blobs: LocalContentStore
    ) -> None:
        project = project_service.save_project(
            conn, controller, blobs, name="Plants", creator="alice", description="d"
        )

        assert project.status == "draft"
        assert project.data_cid and project.metadata_cid
        document = serializer.loads(blobs.get(project.data_cid).decode())
        assert document["metadata"]["totalNodes"] == 2
        metadata = json.loads(blobs.get(project.metadata_cid))
        assert metadata["name"] == "Plants"
        assert latest_snapshot(conn, project.id).version == 1

    def test_save_again_adds_snapshot(
        self, conn: sqlite3.Connection, controller: GraphController, blobs: LocalContentStore
    ) -> None:
        first = project_service.save_project(conn, controller, blobs, name="P", creator="alice")
        controller.new_conversation()
        second = project_service.save_project(
            conn, controller, blobs, name="P", creator="alice", project_id=first.id
        )

        assert second.id == first.id
        assert second.data_cid != first.data_cid
        assert latest_snapshot(conn, first.id).version == 2
        assert len(list_projects(conn)) == 1

    def test_blank_name(
        self, conn: sqlite3.Connection, controller: GraphController, blobs: LocalContentStore
    ) -> None:
        with pytest.raises(ValidationError):
            project_service.save_project(conn, controller, blobs, name="  ", creator="alice")
        assert list_projects(conn) == []

    def test_blank_creator_writes_nothing(
        self, conn: sqlite3.Connection, controller: GraphController
    ) -> None:
        content_store = MagicMock()
        with pytest.raises(ValidationError, match="Creator"):
            project_service.save_project(conn, controller, content_store, name="P", creator="  ")

        content_store.put.assert_not_called()
        assert list_projects(conn) == []

    def test_unknown_project_id_writes_nothing(
        self, conn: sqlite3.Connection, controller: GraphController
    ) -> None:
        content_store = MagicMock()
        with pytest.raises(ReferenceNotFoundError):
            project_service.save_project(
                conn, controller, content_store, name="P", creator="alice", project_id="nope"
            )
        content_store.put.assert_not_called()

    def test_unknown_project_id(
        self, conn: sqlite3.Connection, controller: GraphController, blobs: LocalContentStore
    ) -> None:
        with pytest.raises(ReferenceNotFoundError):
            project_service.save_project(
                conn, controller, blobs, name="P", creator="alice", project_id="nope"
            )

    def test_storage_failure_leaves_graph_and_registry_untouched(
        self, conn: sqlite3.Connection, controller: GraphController
    ) -> None:
        failing = MagicMock()
        failing.put.side_effect = CollaboratorError("pinning service down")
        before = controller.store.nodes()

        with pytest.raises(CollaboratorError):
            project_service.save_project(conn, controller, failing, name="P", creator="alice")

        assert controller.store.nodes() == before
        assert list_projects(conn) == []


# ---------------------------------------------------------------------------
# load_project
# ---------------------------------------------------------------------------

class TestLoadProject:
    def test_load_restores_graph(
        self, conn: sqlite3.Connection, controller: GraphController, blobs: LocalContentStore
    ) -> None:
        project = project_service.save_project(conn, controller, blobs, name="P", creator="alice")
        fresh = GraphController()

        loaded = project_service.load_project(conn, fresh, blobs, project.id)

        assert loaded.id == project.id
        assert fresh.store.nodes() == controller.store.nodes()
        assert len(fresh.store.edges()) == 1

    def test_falls_back_to_snapshot(
        self, conn: sqlite3.Connection, controller: GraphController, blobs: LocalContentStore
    ) -> None:
        project = project_service.save_project(conn, controller, blobs, name="P", creator="alice")
        failing = MagicMock()
        failing.get.side_effect = CollaboratorError("gateway timeout")
        fresh = GraphController()

        project_service.load_project(conn, fresh, failing, project.id)
        assert len(fresh.store) == 2

    def test_no_source_available(self, conn: sqlite3.Connection, blobs: LocalContentStore) -> None:
        p = create_project(conn, "Empty", creator="alice")
        with pytest.raises(CollaboratorError):
            project_service.load_project(conn, GraphController(), blobs, p.id)

    def test_unknown_project(self, conn: sqlite3.Connection, blobs: LocalContentStore) -> None:
        with pytest.raises(ReferenceNotFoundError):
            project_service.load_project(conn, GraphController(), blobs, "nope")

    def test_unsupported_document_keeps_graph(
        self, conn: sqlite3.Connection, controller: GraphController, blobs: LocalContentStore
    ) -> None:
        cid = blobs.put(b'{"version": "0.1", "nodes": [], "edges": []}')
        p = create_project(conn, "Old", creator="alice", data_cid=cid)
        before = controller.store.nodes()

        with pytest.raises(SchemaVersionError):
            project_service.load_project(conn, controller, blobs, p.id)
        assert controller.store.nodes() == before


# ---------------------------------------------------------------------------
# duplicate_project
# ---------------------------------------------------------------------------

class TestDuplicateProject:
    def test_duplicate(
        self, conn: sqlite3.Connection, controller: GraphController, blobs: LocalContentStore
    ) -> None:
        src = project_service.save_project(conn, controller, blobs, name="P", creator="alice")
        copy = project_service.duplicate_project(conn, src.id, "bob")
        assert copy.derived_from == src.id
        assert copy.owner == "bob"

        fresh = GraphController()
        project_service.load_project(conn, fresh, blobs, copy.id)
        assert len(fresh.store) == 2

    def test_blank_owner(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValidationError):
            project_service.duplicate_project(conn, "any", " ")
