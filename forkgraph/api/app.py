"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``) and initialises the registry schema.
It also builds the process-wide :class:`GraphController` (with the Groq
inference client) as ``app.state.controller`` and the configured content
store as ``app.state.content_store``.  On shutdown it closes the connection
cleanly.

Routers
-------
    /graph     the conversation graph (nodes, forks, SSE replies, import/export)
    /projects  saving, loading and duplicating graphs via the registry
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from forkgraph.config import settings
from forkgraph.db import get_connection, init_db
from forkgraph.graph.controller import GraphController
from forkgraph.llm.groq import GroqClient
from forkgraph.storage import get_content_store

from forkgraph.api.routers import graph as graph_router
from forkgraph.api.routers import projects as projects_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB and build the graph on startup; close the DB on shutdown."""
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    app.state.controller = GraphController(
        inference=GroqClient(),
        default_model=settings.default_model,
    )
    app.state.content_store = get_content_store()
    logger.info("forkgraph API ready (storage backend: %s)", settings.storage_backend)
    try:
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="forkgraph API",
        description=(
            "REST interface for branching AI conversations. "
            "Exposes the conversation graph (nodes, forks, streamed replies "
            "via Server-Sent Events, import/export) and the project registry."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(graph_router.router, prefix="/graph", tags=["graph"])
    app.include_router(projects_router.router, prefix="/projects", tags=["projects"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn forkgraph.api.app:app --reload
app = create_app()
