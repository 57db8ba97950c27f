"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from forkgraph.api import app

    uvicorn forkgraph.api:app --reload
"""

from forkgraph.api.app import app

__all__ = ["app"]
