"""
Markstyle FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend import db
from backend.config import settings
from backend.repos.project_repo import ProjectRepo
from backend.routes import export as export_routes
from backend.routes import projects as project_routes
from backend.routes import ws as ws_routes
from backend.services.sessions import session_manager

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Initialize database pool and switch to the Postgres store (when DATABASE_URL is set)
    - Flush pending autosaves of live sessions on shutdown
    - Close database pool on shutdown
    """
    # Startup
    if settings.DATABASE_URL:
        await db.init_pool()
        session_manager.store = ProjectRepo()
        logger.info("Database pool initialized")
    else:
        logger.info("DATABASE_URL not set, projects are kept in memory")

    yield

    # Shutdown
    await session_manager.close_all()
    logger.info("Live sessions closed")

    if db.pool is not None:
        await db.close_pool()
        logger.info("Database pool closed")


app = FastAPI(
    title="Markstyle",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(project_routes.router)
app.include_router(export_routes.router)
app.include_router(ws_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok", "store": "postgres" if db.pool is not None else "memory"}
