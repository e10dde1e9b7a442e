# src/pack_review/main.py
"""Main entry point for the Pack Review application."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from pack_review.api.v1 import (
    contributions_router,
    council_router,
    fork_router,
    mods_router,
    polls_router,
    textures_router,
)
from pack_review.core.settings import settings
from pack_review.services.fork_sync import ForkSyncWorker, get_fork_sync_worker
from pack_review.services.git_gateway import get_git_gateway

# Initialize FastAPI app
app = FastAPI(
    title="Pack Review API",
    description="Review pipeline for resource pack contributions",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(contributions_router, prefix="/api/v1")
app.include_router(council_router, prefix="/api/v1")
app.include_router(polls_router, prefix="/api/v1")
app.include_router(fork_router, prefix="/api/v1")
app.include_router(mods_router, prefix="/api/v1")
app.include_router(textures_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.fork_sync_enabled:
        worker = get_fork_sync_worker()
        await worker.start()
        app.state.fork_sync_worker = worker
    else:
        app.state.fork_sync_worker = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: ForkSyncWorker | None = getattr(app.state, "fork_sync_worker", None)
    if worker:
        await worker.stop()
        await get_git_gateway().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("pack_review.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
