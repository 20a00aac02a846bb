"""
Memory Rescue API Server

FastAPI application exposing engine status and manual triggers.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException

from memory_rescue.config import configure_logging, load_config
from memory_rescue.engine.rescue_engine import TemporalRescueEngine

logger = logging.getLogger("memory_rescue.api")

# Global engine instance, created at startup
rescue_engine: Optional[TemporalRescueEngine] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the engine and its background jobs with the app."""
    global rescue_engine
    config = load_config()
    configure_logging(config.logging)
    rescue_engine = TemporalRescueEngine(config)
    await rescue_engine.initialize()
    yield

    # Cleanup on shutdown
    if rescue_engine:
        await rescue_engine.close()
        rescue_engine = None


app = FastAPI(
    title="Memory Rescue API",
    description="Status and control surface for the decay-prevention engine",
    version="0.1.0",
    lifespan=lifespan,
)


def get_system() -> TemporalRescueEngine:
    """Get the global engine instance for dependency injection."""
    if rescue_engine is None:
        raise HTTPException(status_code=503, detail="Rescue engine not initialized")
    return rescue_engine


# Import and include routers
from memory_rescue.api.routes import rescue  # noqa: E402

app.include_router(rescue.router, prefix="/rescue", tags=["Rescue"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Memory Rescue API"}
