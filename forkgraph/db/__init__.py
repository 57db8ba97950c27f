"""Database layer package.

Public re-exports so callers can write::

    from forkgraph.db import get_connection, init_db
    from forkgraph.db import projects
"""

from forkgraph.db.connection import get_connection
from forkgraph.db.migrations import init_db
from forkgraph.db import projects

__all__ = ["get_connection", "init_db", "projects"]
