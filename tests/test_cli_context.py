"""Tests for the CLI context management module."""

import json

import pytest
import typer
from typer.testing import CliRunner

from forkgraph.graph.models import Position
from forkgraph_cli.context import (
    CliContext,
    _get_context_path,
    _get_graph_path,
    load_context,
    load_controller,
    require_context,
    save_context,
    save_controller,
)
from forkgraph_cli.rendering import short_id

runner = CliRunner()


@pytest.fixture
def temp_context_dir(tmp_path, monkeypatch):
    """Override the config directory to use a temporary path."""
    context_dir = tmp_path / ".forkgraph_cli"
    monkeypatch.setattr("forkgraph_cli.context.settings.cli_config_dir", context_dir)
    return context_dir


def test_load_default_context(temp_context_dir):
    """Should return defaults when no file exists."""
    ctx = load_context()
    assert isinstance(ctx, CliContext)
    assert ctx.active_project_id is None
    assert ctx.active_project_name is None
    assert ctx.user_preferences == {}
    assert ctx.drafts == {}


def test_save_and_load_roundtrip(temp_context_dir):
    """Should save context to disk and load it back correctly."""
    ctx = CliContext(
        active_project_id="uuid-1234",
        active_project_name="Test Project",
        user_preferences={"creator": "alice"},
    )
    save_context(ctx)

    assert _get_context_path().exists()
    assert json.loads(_get_context_path().read_text())["active_project_id"] == "uuid-1234"
    assert load_context() == ctx


def test_corrupt_context_falls_back_to_defaults(temp_context_dir):
    temp_context_dir.mkdir()
    _get_context_path().write_text("{not json")
    assert load_context() == CliContext()


def test_controller_round_trip_keeps_drafts(temp_context_dir):
    controller = load_controller()
    root = controller.new_conversation(Position(0, 0))
    child = controller.fork(root, selected_text="quoted").node_id
    save_controller(controller)

    assert _get_graph_path().exists()
    assert load_context().drafts == {child: "quoted"}

    reloaded = load_controller()
    assert len(reloaded.store) == 2
    assert reloaded.store.draft(child) == "quoted"


def test_require_context_blocks_without_project(temp_context_dir):
    app = typer.Typer()

    @app.command()
    @require_context
    def needs_project() -> None:
        typer.echo("ran")

    result = runner.invoke(app, [])
    assert result.exit_code == 1
    assert "No active project selected" in result.stdout

    save_context(CliContext(active_project_id="p-1", active_project_name="P"))
    result = runner.invoke(app, [])
    assert result.exit_code == 0
    assert "ran" in result.stdout


def test_short_id():
    assert short_id("node-1a2b3c4d5e6f") == "node-1a2b3c4d"
    assert short_id("plainid12345") == "plainid1"
