"""agentwatch FastAPI application: session listings and usage telemetry."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agentwatch import __version__, config
from agentwatch.db.stats_store import stats_store
from agentwatch.parsers.platforms.registry import ensure_parsers_initialized
from agentwatch.routers.parsers import parsers_router
from agentwatch.routers.sessions import sessions_router
from agentwatch.routers.stats import stats_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("agentwatch")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("agentwatch starting up")
    ensure_parsers_initialized()

    # A failed migration aborts startup rather than serving a half-upgraded schema.
    if config.STATS_ENABLED:
        await stats_store.initialize()
    else:
        logger.info("Stats collection disabled")

    yield

    logger.info("agentwatch shutting down")
    await stats_store.close()


app = FastAPI(
    title="agentwatch API",
    description="Session listings and usage telemetry for AI coding agents",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(sessions_router)
app.include_router(parsers_router)
app.include_router(stats_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "stats": stats_store.state.value,
    }
