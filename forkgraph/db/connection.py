"""Connections to the project registry database."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from forkgraph.config import settings


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Return a registry connection with rows addressable by column name.

    Foreign keys are enforced so deleting a project drops its snapshots.
    ``db_path`` defaults to ``settings.db_path``; pass ``":memory:"`` for a
    throwaway database (the workspace directory is then left alone).
    """
    path = db_path or settings.db_path
    if str(path) != ":memory:":
        settings.ensure_workspace()

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn
