"""
Standalone FastAPI app wiring for graphstore.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from graphstore.db import dispose_db, init_db
from app.middleware import configure_middleware
from app.routes.health import router as health_router
from app.routes.root import router as root_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    init_db()
    try:
        yield
    finally:
        dispose_db()


app = FastAPI(title="graphstore", redirect_slashes=False, lifespan=lifespan)
configure_middleware(app)

# Health and root endpoints
app.include_router(health_router)
app.include_router(root_router)


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        app,
        host=os.environ.get("GRAPHSTORE_HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8080")),
    )
