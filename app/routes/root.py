"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import graphstore.config as config


router = APIRouter()

SERVICE_VERSION = "0.1.0"


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "graphstore",
        "version": SERVICE_VERSION,
        "description": "Multi-tenant entity store with a relationship graph",
        "db_backend": config.DB_BACKEND_EFFECTIVE,
        "endpoints": {
            "health": "/health",
        },
    }
